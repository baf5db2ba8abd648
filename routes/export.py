"""
routes/export.py — Calendar and activity exports.

Provides:
- GET /export/calendar.xlsx    — Excel workbook of a calendar view (?view=&date=&filter=)
- GET /export/activities.csv   — CSV of activities (?type=&from=&to=&location_id=)
"""

import logging

from flask import Blueprint, Response, jsonify, request, send_file

from calendar_engine import load_calendar_snapshot, filter_events, normalize_filter
from calendar_grid import VIEW_MODES, VIEW_MONTH
from database import get_activities
from utils.dates import today_utc, parse_iso_date, DateOutOfRange
from utils.export import generate_calendar_excel, generate_activities_csv

logger = logging.getLogger(__name__)

export_bp = Blueprint('export', __name__, url_prefix='/export')


@export_bp.errorhandler(DateOutOfRange)
def _date_out_of_range(error):
    logger.warning("Export outside the supported date range: %s", error)
    return jsonify({'error': str(error)}), 400


@export_bp.route('/calendar.xlsx')
def export_calendar_excel():
    """Export the events of one calendar view as Excel."""
    today = today_utc()
    view = request.args.get('view') or VIEW_MONTH
    if view not in VIEW_MODES:
        return jsonify({'error': f"Unsupported calendar view: {view}"}), 400
    anchor = parse_iso_date(request.args.get('date') or today).isoformat()

    snapshot = load_calendar_snapshot()
    if snapshot.failed:
        return jsonify({'error': "Calendar data could not be loaded."}), 500
    events = filter_events(snapshot.events(today), normalize_filter(request.args.get('filter')))

    buffer, filename = generate_calendar_excel(view, anchor, events, today)
    if not buffer:
        return jsonify({'error': "No events to export for this period."}), 404

    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )


@export_bp.route('/activities.csv')
def export_activities_csv():
    """Export activities as CSV, optionally filtered."""
    activities = get_activities(
        start=request.args.get('from') or None,
        end=request.args.get('to') or None,
        activity_type=request.args.get('type') or None,
        location_id=request.args.get('location_id') or None,
    )
    return Response(
        generate_activities_csv(activities),
        mimetype='text/csv',
        headers={
            'Content-Disposition': 'attachment; filename="activities.csv"',
            'Cache-Control': 'no-store',
        },
    )
