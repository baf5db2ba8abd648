"""
calendar_grid.py — Calendar views: which dates to draw and what goes in each.

View modes:
- month: 42 consecutive days (6 full weeks) from the Sunday on or before the 1st
- week:  7 days from the Sunday on or before the anchor
- day:   the anchor alone

Events are bucketed by their start date only; a harvest window's end is
metadata and does not place the event a second time. Inside a bucket the
order is harvest, planting, activity, then title, then id.

Navigation moves the anchor by one month, 7 days or 1 day depending on the
view. Switching views keeps the anchor, so a day in June opens the June
month grid. Grids and moves that would leave years 1-9999 raise
DateOutOfRange.
"""

import calendar
from typing import Dict, Iterable, List, Optional

from models import CalendarEvent, GridCell, KIND_HARVEST, KIND_PLANTING, KIND_ACTIVITY
from utils.dates import (
    add_days, add_months, parse_iso_date, start_of_week, start_of_month_grid, to_date_key,
    DateOutOfRange,
)

VIEW_MONTH = 'month'
VIEW_WEEK = 'week'
VIEW_DAY = 'day'
VIEW_MODES = (VIEW_MONTH, VIEW_WEEK, VIEW_DAY)

MONTH_GRID_DAYS = 42
WEEK_DAYS = 7

DISPLAY_PRIORITY = {KIND_HARVEST: 0, KIND_PLANTING: 1, KIND_ACTIVITY: 2}


def validate_view(view_mode):
    """Return view_mode if known, else raise ValueError."""
    if view_mode not in VIEW_MODES:
        raise ValueError(f"Unsupported calendar view: {view_mode}")
    return view_mode


def resolve_grid_dates(view_mode, anchor) -> List[str]:
    """Ordered list of YYYY-MM-DD dates to render for a view."""
    validate_view(view_mode)
    anchor = parse_iso_date(anchor).isoformat()

    if view_mode == VIEW_DAY:
        return [anchor]

    if view_mode == VIEW_WEEK:
        first = start_of_week(anchor)
        count = WEEK_DAYS
    else:
        d = parse_iso_date(anchor)
        first = start_of_month_grid(d.year, d.month)
        count = MONTH_GRID_DAYS

    return [add_days(first, i) for i in range(count)]


def _display_key(event: CalendarEvent):
    return (DISPLAY_PRIORITY.get(event.kind, len(DISPLAY_PRIORITY)), event.title or '', event.id)


def sort_for_display(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """Harvests first, then plantings, then activities; ties by title, then id."""
    return sorted(events, key=_display_key)


def bucket_events(events: Iterable[CalendarEvent]) -> Dict[str, List[CalendarEvent]]:
    """Group events by start date, each bucket in display order."""
    buckets = {}
    for event in events:
        buckets.setdefault(to_date_key(event.start), []).append(event)
    return {day: sort_for_display(day_events) for day, day_events in buckets.items()}


def build_grid(view_mode, anchor, events: Iterable[CalendarEvent], today) -> List[GridCell]:
    """
    Grid cells for a view, each holding its bucket of events.

    Args:
        view_mode: 'month', 'week' or 'day'.
        anchor: Focused date (YYYY-MM-DD).
        events: Aggregated calendar events.
        today: Current date, used for the is_today flag.
    """
    dates = resolve_grid_dates(view_mode, anchor)
    buckets = bucket_events(events)
    anchor_date = parse_iso_date(anchor)

    cells = []
    for day in dates:
        if view_mode == VIEW_MONTH:
            d = parse_iso_date(day)
            in_period = (d.year, d.month) == (anchor_date.year, anchor_date.month)
        else:
            in_period = True
        cells.append(GridCell(
            date=day,
            in_current_period=in_period,
            is_today=(day == today),
            events=buckets.get(day, []),
        ))
    return cells


def navigate(view_mode, anchor, step=1) -> str:
    """Move the anchor by `step` units of the view (months, weeks or days)."""
    validate_view(view_mode)
    step = int(step)
    if view_mode == VIEW_MONTH:
        return add_months(anchor, step)
    if view_mode == VIEW_WEEK:
        return add_days(anchor, WEEK_DAYS * step)
    return add_days(anchor, step)


def navigate_year(anchor, step=1) -> str:
    """Move the anchor by whole years."""
    return add_months(anchor, 12 * int(step))


def switch_view(view_mode, anchor):
    """Change view mode, keeping the anchor. Returns (view_mode, anchor)."""
    return validate_view(view_mode), parse_iso_date(anchor).isoformat()


def period_label(view_mode, anchor) -> str:
    """Header text for the current view."""
    validate_view(view_mode)
    d = parse_iso_date(anchor)
    if view_mode == VIEW_MONTH:
        return f"{calendar.month_name[d.month]} {d.year}"
    if view_mode == VIEW_WEEK:
        return f"Week of {start_of_week(d.isoformat())}"
    return f"{calendar.day_name[d.weekday()]} {d.isoformat()}"


def _neighbour(day, step) -> Optional[str]:
    try:
        return add_days(day, step)
    except DateOutOfRange:
        return None


def day_detail(anchor, events: Iterable[CalendarEvent]) -> dict:
    """
    One day's events in display order, with the neighbouring dates.

    previous / next are None at the ends of the date range.
    """
    day = parse_iso_date(anchor).isoformat()
    return {
        'date': day,
        'previous': _neighbour(day, -1),
        'next': _neighbour(day, 1),
        'events': bucket_events(events).get(day, []),
    }
