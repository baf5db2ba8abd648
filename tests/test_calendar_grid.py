"""
tests/test_calendar_grid.py — Tests for calendar views and event bucketing.

Tests cover:
- Month grid: 42 consecutive days from a Sunday, focused-month flags
- Week and day views
- Display order inside a day: harvest, planting, activity, then title
- Ranged events bucketed by start date only
- Navigation and view switching
- Anchors at the ends of the date range
"""

from datetime import date

import pytest

from calendar_grid import (
    build_grid, bucket_events, day_detail, navigate, navigate_year, period_label,
    resolve_grid_dates, switch_view,
)
from models import CalendarEvent
from utils.dates import add_days, DateOutOfRange


def _event(event_id, kind, title, start, end=None):
    return CalendarEvent(id=event_id, kind=kind, title=title, start=start, end=end)


def _assert_consecutive(dates):
    for previous, current in zip(dates, dates[1:]):
        assert add_days(previous, 1) == current


@pytest.mark.parametrize('year', [2023, 2024])
def test_month_grid_has_six_full_weeks(year):
    for month in range(1, 13):
        anchor = f'{year}-{month:02d}-15'
        dates = resolve_grid_dates('month', anchor)

        assert len(dates) == 42
        _assert_consecutive(dates)
        assert date.fromisoformat(dates[0]).weekday() == 6
        assert f'{year}-{month:02d}-01' in dates


def test_month_grid_flags_focused_month():
    cells = build_grid('month', '2024-06-15', [], today='2024-06-20')

    by_date = {c.date: c for c in cells}
    assert cells[0].date == '2024-05-26'
    assert not by_date['2024-05-31'].in_current_period
    assert by_date['2024-06-01'].in_current_period
    assert by_date['2024-06-30'].in_current_period
    assert not by_date['2024-07-06'].in_current_period
    assert by_date['2024-06-20'].is_today
    assert sum(c.is_today for c in cells) == 1


def test_week_view():
    dates = resolve_grid_dates('week', '2024-06-15')

    assert dates == [
        '2024-06-09', '2024-06-10', '2024-06-11', '2024-06-12',
        '2024-06-13', '2024-06-14', '2024-06-15',
    ]
    assert date.fromisoformat(dates[0]).weekday() == 6


def test_week_view_cells_are_all_in_period():
    cells = build_grid('week', '2024-06-01', [], today='2024-01-01')
    assert len(cells) == 7
    assert all(c.in_current_period for c in cells)
    assert not any(c.is_today for c in cells)


def test_day_view():
    assert resolve_grid_dates('day', '2024-06-15') == ['2024-06-15']


def test_unknown_view_raises():
    with pytest.raises(ValueError):
        resolve_grid_dates('year', '2024-06-15')


def test_bucket_display_order():
    events = [
        _event('a:1', 'activity', 'irrigation', '2024-06-10'),
        _event('p:1', 'planting', 'Direct seeded · Lettuce', '2024-06-10'),
        _event('h:2', 'harvest', 'Harvest · Tomato', '2024-06-10', '2024-06-20'),
        _event('h:1', 'harvest', 'Harvest · Basil', '2024-06-10', '2024-06-12'),
    ]
    bucket = bucket_events(events)['2024-06-10']
    assert [e.id for e in bucket] == ['h:1', 'h:2', 'p:1', 'a:1']


def test_bucket_title_ties_are_case_sensitive():
    events = [
        _event('a:1', 'activity', 'pest management', '2024-06-10'),
        _event('a:2', 'activity', 'Pest management', '2024-06-10'),
    ]
    assert [e.id for e in bucket_events(events)['2024-06-10']] == ['a:2', 'a:1']


def test_ranged_event_placed_on_start_only():
    harvest = _event('h:1', 'harvest', 'Harvest · Tomato', '2024-06-10', '2024-06-20')
    cells = build_grid('month', '2024-06-01', [harvest], today='2024-06-01')

    placed = [c.date for c in cells if c.events]
    assert placed == ['2024-06-10']


def test_timestamp_starts_are_bucketed_by_date():
    event = _event('a:1', 'activity', 'irrigation', '2024-06-10T07:00:00+00:00')
    assert list(bucket_events([event])) == ['2024-06-10']


def test_navigate_month_week_day():
    assert navigate('month', '2024-01-31', 1) == '2024-02-29'
    assert navigate('month', '2024-01-15', -1) == '2023-12-15'
    assert navigate('week', '2024-06-15', 1) == '2024-06-22'
    assert navigate('week', '2024-06-15', -1) == '2024-06-08'
    assert navigate('day', '2024-12-31', 1) == '2025-01-01'
    assert navigate_year('2024-02-29', 1) == '2025-02-28'


def test_switch_day_to_month_reanchors_grid():
    view, anchor = switch_view('month', '2024-06-15')
    dates = resolve_grid_dates(view, anchor)

    assert anchor == '2024-06-15'
    assert dates[0] == '2024-05-26'
    assert '2024-06-30' in dates


def test_switch_view_rejects_unknown_mode():
    with pytest.raises(ValueError):
        switch_view('agenda', '2024-06-15')


def test_period_label():
    assert period_label('month', '2024-06-15') == 'June 2024'
    assert period_label('week', '2024-06-15') == 'Week of 2024-06-09'
    assert period_label('day', '2024-06-15') == 'Saturday 2024-06-15'


def test_day_detail():
    events = [
        _event('a:1', 'activity', 'irrigation', '2024-06-10'),
        _event('h:1', 'harvest', 'Harvest · Basil', '2024-06-10'),
        _event('a:2', 'activity', 'irrigation', '2024-06-11'),
    ]
    detail = day_detail('2024-06-10', events)

    assert detail['previous'] == '2024-06-09'
    assert detail['next'] == '2024-06-11'
    assert [e.id for e in detail['events']] == ['h:1', 'a:1']


def test_grid_past_last_date_raises():
    with pytest.raises(DateOutOfRange):
        resolve_grid_dates('month', '9999-12-15')
    with pytest.raises(DateOutOfRange):
        build_grid('week', '9999-12-31', [], today='2024-01-01')
    assert resolve_grid_dates('day', '9999-12-31') == ['9999-12-31']
    assert len(resolve_grid_dates('month', '9999-10-15')) == 42


def test_navigate_past_last_date_raises():
    with pytest.raises(DateOutOfRange):
        navigate('month', '9999-12-15', 1)
    with pytest.raises(DateOutOfRange):
        navigate_year('9999-06-15', 1)
    assert navigate('day', '9999-12-30', 1) == '9999-12-31'


def test_day_detail_at_ends_of_range():
    assert day_detail('9999-12-31', [])['next'] is None
    assert day_detail('9999-12-31', [])['previous'] == '9999-12-30'
    assert day_detail('0001-01-01', [])['previous'] is None
