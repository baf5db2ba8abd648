"""
routes/calendar.py — Calendar page data and JSON API.

Provides:
- GET  /calendar/                              — Page payload: grid for the current view, header, locations
- GET  /calendar/api/events                    — Flat event list (?filter=)
- GET  /calendar/api/grid                      — Grid cells (?view=&date=&filter=)
- GET  /calendar/api/navigate                  — New anchor (?view=&date=&direction=)
- GET  /calendar/api/day/<date>                — One day's events with previous/next dates
- GET  /calendar/api/locations                 — Locations for the weather header
- GET  /calendar/api/locations/<id>/weather    — Current weather for a location
- POST /calendar/preferences                   — Remember view and filter in the session

View and filter default to the session preferences, then month / all.
A missing or malformed date means today. Views or moves that would leave
years 1-9999 answer 400.
"""

import logging
from collections.abc import Mapping
from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request, session, abort

from calendar_engine import (
    load_calendar_snapshot, filter_events, normalize_filter, CALENDAR_FILTERS, FILTER_ALL,
)
from calendar_grid import (
    build_grid, navigate, navigate_year, period_label, day_detail,
    VIEW_MODES, VIEW_MONTH,
)
from database import get_locations, get_location
from models import CalendarLocation
from utils.dates import today_utc, parse_iso_date, DateOutOfRange
from weather import fetch_weather_by_coords, is_safe_location_id, WeatherUnavailable

logger = logging.getLogger(__name__)

calendar_bp = Blueprint('calendar', __name__, url_prefix='/calendar')

SESSION_VIEW_KEY = 'calendar.view'
SESSION_FILTER_KEY = 'calendar.filter'


def _selected_view():
    view = request.args.get('view') or session.get(SESSION_VIEW_KEY) or VIEW_MONTH
    if view not in VIEW_MODES:
        abort(400, description=f"Unsupported calendar view: {view}")
    return view


def _selected_filter():
    return normalize_filter(request.args.get('filter') or session.get(SESSION_FILTER_KEY) or FILTER_ALL)


def _selected_date(today):
    value = request.args.get('date')
    if not value:
        return today
    return parse_iso_date(value).isoformat()


def _load_events(kind_filter, today):
    """Aggregate and filter events. Returns (events, snapshot)."""
    snapshot = load_calendar_snapshot()
    if snapshot.failed:
        abort(500, description="Calendar data could not be loaded.")
    return filter_events(snapshot.events(today), kind_filter), snapshot


def _status(snapshot):
    return {'partial': snapshot.partial, 'unavailable': snapshot.unavailable}


def _calendar_locations():
    limit = current_app.config.get('CALENDAR_LOCATIONS_LIMIT', 10)
    return [CalendarLocation(**row) for row in get_locations(limit)]


@calendar_bp.errorhandler(400)
@calendar_bp.errorhandler(404)
@calendar_bp.errorhandler(500)
def _json_error(error):
    return jsonify({'error': error.description}), error.code


@calendar_bp.errorhandler(DateOutOfRange)
def _date_out_of_range(error):
    logger.warning("Calendar request outside the supported date range: %s", error)
    return jsonify({'error': str(error)}), 400


@calendar_bp.route('/')
def index():
    """Calendar page payload for the selected view."""
    today = today_utc()
    view = _selected_view()
    kind_filter = _selected_filter()
    anchor = _selected_date(today)

    events, snapshot = _load_events(kind_filter, today)
    locations = _calendar_locations()
    primary = next((loc for loc in locations if loc.has_coordinates), None)

    return jsonify({
        'view': view,
        'filter': kind_filter,
        'date': anchor,
        'today': today,
        'label': period_label(view, anchor),
        'cells': [cell.to_dict() for cell in build_grid(view, anchor, events, today)],
        'primary_location': asdict(primary) if primary else None,
        **_status(snapshot),
    })


@calendar_bp.route('/api/events')
def api_events():
    """Flat list of calendar events."""
    today = today_utc()
    kind_filter = _selected_filter()
    events, snapshot = _load_events(kind_filter, today)
    return jsonify({
        'events': [e.to_dict() for e in events],
        'filter': kind_filter,
        **_status(snapshot),
    })


@calendar_bp.route('/api/grid')
def api_grid():
    """Grid cells for a view and anchor date."""
    today = today_utc()
    view = _selected_view()
    kind_filter = _selected_filter()
    anchor = _selected_date(today)

    events, snapshot = _load_events(kind_filter, today)
    cells = build_grid(view, anchor, events, today)
    return jsonify({
        'view': view,
        'date': anchor,
        'label': period_label(view, anchor),
        'cells': [cell.to_dict() for cell in cells],
        **_status(snapshot),
    })


@calendar_bp.route('/api/navigate')
def api_navigate():
    """Move the anchor: prev/next by one view unit, a year, or back to today."""
    today = today_utc()
    view = _selected_view()
    anchor = _selected_date(today)
    direction = request.args.get('direction', 'next')

    if direction == 'prev':
        anchor = navigate(view, anchor, -1)
    elif direction == 'next':
        anchor = navigate(view, anchor, 1)
    elif direction == 'prev_year':
        anchor = navigate_year(anchor, -1)
    elif direction == 'next_year':
        anchor = navigate_year(anchor, 1)
    elif direction == 'today':
        anchor = today
    else:
        abort(400, description=f"Unsupported direction: {direction}")

    return jsonify({'view': view, 'date': anchor, 'label': period_label(view, anchor)})


@calendar_bp.route('/api/day/<date>')
def api_day(date):
    """Events on one day, in display order."""
    today = today_utc()
    events, snapshot = _load_events(_selected_filter(), today)
    detail = day_detail(date, events)
    detail['events'] = [e.to_dict() for e in detail['events']]
    detail.update(_status(snapshot))
    return jsonify(detail)


@calendar_bp.route('/api/locations')
def api_locations():
    """Locations for the calendar header."""
    return jsonify({'locations': [asdict(loc) for loc in _calendar_locations()]})


@calendar_bp.route('/api/locations/<location_id>/weather')
def api_location_weather(location_id):
    """Current weather at a location."""
    if not is_safe_location_id(location_id):
        return jsonify({'error': 'Invalid location id'}), 400

    location = get_location(location_id)
    if not location:
        return jsonify({'error': 'Location not found'}), 404

    if location['latitude'] is None or location['longitude'] is None:
        return jsonify({'error': 'Location coordinates are missing'}), 400

    try:
        weather = fetch_weather_by_coords(
            location['latitude'], location['longitude'],
            api_key=current_app.config.get('OPENWEATHER_API_KEY'),
            units=current_app.config.get('WEATHER_UNITS', 'imperial'),
            timeout=current_app.config.get('WEATHER_TIMEOUT', 10),
        )
    except WeatherUnavailable as e:
        logger.warning("Weather unavailable for location %s: %s", location_id, e)
        return jsonify({'error': 'Weather unavailable'}), 503

    return jsonify(weather)


@calendar_bp.route('/preferences', methods=['POST'])
def save_preferences():
    """Remember the calendar view and filter for this session."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    if not isinstance(data, Mapping):
        return jsonify({'error': "Preferences must be an object"}), 400
    view = data.get('view')
    kind_filter = data.get('filter')

    if view:
        if view not in VIEW_MODES:
            return jsonify({'error': f"Unsupported calendar view: {view}"}), 400
        session[SESSION_VIEW_KEY] = view
    if kind_filter:
        if kind_filter not in CALENDAR_FILTERS:
            return jsonify({'error': f"Unsupported calendar filter: {kind_filter}"}), 400
        session[SESSION_FILTER_KEY] = kind_filter

    return jsonify({
        'view': session.get(SESSION_VIEW_KEY, VIEW_MONTH),
        'filter': session.get(SESSION_FILTER_KEY, FILTER_ALL),
    })
