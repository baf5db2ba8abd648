"""
calendar_engine.py — Merge farm records into one calendar event list.

Sources:
- activities           -> one 'activity' event each          (id a:<activity id>)
- lifecycle rows       -> one 'planting' event per seeding or
                          transplant row                       (id p:<event row id>)
- planting records     -> at most one predicted 'harvest'
                          event per planting                   (id h:<planting id>)

Harvest events are computed per planting id from a dict keyed by that id,
so however many lifecycle rows a planting has, it yields one prediction at
most. Aggregation is a pure function of its inputs and of `today`.

load_calendar_snapshot() does the Record Store reads. A failed read is
logged and reported in the snapshot instead of aborting the others.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from database import get_activities, get_planting_events, get_plantings
from harvest_engine import resolve_timelines, predict_harvest_window
from models import (
    CalendarEvent, ActivityAttributes, PlantingAttributes, HarvestAttributes, Amendment,
    KIND_ACTIVITY, KIND_PLANTING, KIND_HARVEST, EVENT_KINDS,
    DIRECT_SEEDED, NURSERY_SEEDED, TRANSPLANTED, SEED_EVENT_TYPES, PREDICTED,
)
from utils.dates import to_date_key, today_utc, days_between
from utils.dtm import normalize_dtm

logger = logging.getLogger(__name__)

FILTER_ALL = 'all'
CALENDAR_FILTERS = (FILTER_ALL,) + EVENT_KINDS

TITLE_SEPARATOR = ' · '

LIFECYCLE_LABELS = {
    DIRECT_SEEDED: 'Direct seeded',
    NURSERY_SEEDED: 'Nursery seeded',
    TRANSPLANTED: 'Transplanted',
}

# Record Store sources, by name
SOURCE_ACTIVITIES = 'activities'
SOURCE_PLANTING_EVENTS = 'planting_events'
SOURCE_PLANTINGS = 'plantings'


def _title(*parts):
    return TITLE_SEPARATOR.join(str(p) for p in parts if p)


def activity_title(subtype, crop=None, asset_name=None):
    """'soil_amendment' + crop + asset -> 'soil amendment · Kale · Tiller'."""
    return _title((subtype or 'activity').replace('_', ' '), crop, asset_name)


def build_activity_events(activities: Iterable) -> List[CalendarEvent]:
    """One event per activity, dated by its start time."""
    events = []
    for a in activities:
        subtype = a.get('subtype') or a.get('activity_type')
        amendments = tuple(
            Amendment(name=am['name'], quantity=am.get('quantity'), unit=am.get('unit'))
            for am in (a.get('amendments') or [])
        )
        events.append(CalendarEvent(
            id=f"a:{a['id']}",
            kind=KIND_ACTIVITY,
            title=activity_title(subtype, a.get('crop'), a.get('asset_name')),
            start=to_date_key(a['started_at']),
            end=to_date_key(a['ended_at']) if a.get('ended_at') else None,
            attributes=ActivityAttributes(
                activity_id=a['id'],
                subtype=subtype,
                crop=a.get('crop'),
                asset_name=a.get('asset_name'),
                location_id=a.get('location_id'),
                notes=a.get('notes'),
                amendments=amendments,
            ),
        ))
    return events


def build_planting_events(planting_events: Iterable,
                          plantings_by_id: Optional[Dict] = None) -> List[CalendarEvent]:
    """
    One event per seeding or transplant lifecycle row.

    Crop, variety and status come from the planting record when it is known.
    Harvested and other lifecycle rows do not produce planting events.
    """
    plantings_by_id = plantings_by_id or {}
    events = []
    for row in planting_events:
        event_type = row['event_type']
        if event_type not in SEED_EVENT_TYPES:
            continue
        planting = plantings_by_id.get(row['planting_id'], {})
        crop = planting.get('crop')
        variety = planting.get('variety')
        events.append(CalendarEvent(
            id=f"p:{row['id']}",
            kind=KIND_PLANTING,
            title=_title(LIFECYCLE_LABELS[event_type], crop, variety),
            start=to_date_key(row['event_date']),
            attributes=PlantingAttributes(
                planting_id=row['planting_id'],
                event_type=event_type,
                status=planting.get('status'),
                crop=crop,
                variety=variety,
                qty=row.get('qty'),
                weight_grams=row.get('weight_grams'),
                bed_label=row.get('bed_label') or planting.get('bed_label'),
            ),
        ))
    return events


def _group_plantings(plantings: Iterable) -> Dict:
    """Planting records keyed by id; the first record seen for an id wins."""
    grouped = {}
    for p in plantings:
        grouped.setdefault(p['id'], p)
    return grouped


def _harvest_event(planting, timeline, today) -> Optional[CalendarEvent]:
    dtm = normalize_dtm(
        planting.get('dtm_direct_seed_min'), planting.get('dtm_direct_seed_max'),
        planting.get('dtm_transplant_min'), planting.get('dtm_transplant_max'),
    )
    fallback_planted = planting.get('fallback_planted_date')
    fallback_nursery = planting.get('fallback_nursery_date')
    window = predict_harvest_window(
        timeline, dtm, today,
        status=planting.get('status'),
        fallback_planted_date=fallback_planted,
        fallback_nursery_date=fallback_nursery,
        propagation_method=planting.get('propagation_method'),
    )
    if window is None:
        return None

    base = window.base
    crop = planting.get('crop')
    variety = planting.get('variety')
    return CalendarEvent(
        id=f"h:{planting['id']}",
        kind=KIND_HARVEST,
        title=_title('Harvest', crop, variety),
        start=window.start,
        end=window.end,
        attributes=HarvestAttributes(
            planting_id=planting['id'],
            window_start=window.start,
            window_end=window.end,
            base_date=base.date,
            base_event=base.source_event,
            source=PREDICTED,
            status=planting.get('status'),
            crop=crop,
            variety=variety,
            bed_label=planting.get('bed_label'),
            window_days=days_between(window.start, window.end) + 1,
        ),
    )


def build_harvest_events(plantings_by_id: Dict, timelines: Dict, today: str) -> List[CalendarEvent]:
    """At most one predicted harvest per planting id."""
    events = []
    for planting_id, planting in plantings_by_id.items():
        event = _harvest_event(planting, timelines.get(planting_id), today)
        if event is not None:
            events.append(event)
    return events


def aggregate_events(activities: Iterable = (),
                     planting_events: Iterable = (),
                     plantings: Iterable = (),
                     today: Optional[str] = None) -> List[CalendarEvent]:
    """
    Build the flat calendar event list from a Record Store snapshot.

    Args:
        activities: Activity rows (see database.get_activities).
        planting_events: Lifecycle rows (see database.get_planting_events).
        plantings: Planting master records (see database.get_plantings).
        today: Current date (YYYY-MM-DD); defaults to today's UTC date.

    Returns:
        List of CalendarEvent: activities, then planting events, then
        predicted harvests. Same input, same output.
    """
    today = today or today_utc()
    planting_events = list(planting_events)
    plantings_by_id = _group_plantings(plantings)
    timelines = resolve_timelines(planting_events)

    events = build_activity_events(activities)
    events.extend(build_planting_events(planting_events, plantings_by_id))
    events.extend(build_harvest_events(plantings_by_id, timelines, today))

    logger.debug("Aggregated %d calendar events (today=%s)", len(events), today)
    return events


def normalize_filter(kind_filter) -> str:
    """Return a known calendar filter; anything else means 'all'."""
    if not kind_filter:
        return FILTER_ALL
    if kind_filter not in CALENDAR_FILTERS:
        logger.warning("Unknown calendar filter %r, showing all events", kind_filter)
        return FILTER_ALL
    return kind_filter


def filter_events(events: Iterable[CalendarEvent], kind_filter=FILTER_ALL) -> List[CalendarEvent]:
    """Keep only events of the selected kind ('all' keeps everything)."""
    kind_filter = normalize_filter(kind_filter)
    if kind_filter == FILTER_ALL:
        return list(events)
    return [e for e in events if e.kind == kind_filter]


# ========================================
# Record Store snapshot
# ========================================

@dataclass
class CalendarSnapshot:
    """Rows read from the Record Store for one calendar request."""
    activities: List[dict] = field(default_factory=list)
    planting_events: List[dict] = field(default_factory=list)
    plantings: List[dict] = field(default_factory=list)
    unavailable: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.unavailable)

    @property
    def failed(self) -> bool:
        """True when no source could be read at all."""
        return len(self.unavailable) == 3

    @property
    def predictions_available(self) -> bool:
        return (SOURCE_PLANTING_EVENTS not in self.unavailable
                and SOURCE_PLANTINGS not in self.unavailable)

    def events(self, today: Optional[str] = None) -> List[CalendarEvent]:
        """Aggregate the snapshot. Without plantings or lifecycle rows, no harvests are predicted."""
        if self.predictions_available:
            return aggregate_events(self.activities, self.planting_events, self.plantings, today)
        plantings_by_id = _group_plantings(self.plantings)
        events = build_activity_events(self.activities)
        events.extend(build_planting_events(self.planting_events, plantings_by_id))
        return events


def load_calendar_snapshot() -> CalendarSnapshot:
    """
    Read activities, lifecycle rows and plantings from the Record Store.

    The three reads are independent. One failing does not stop the others;
    its name is recorded in `unavailable`.
    """
    snapshot = CalendarSnapshot()
    fetches = (
        (SOURCE_ACTIVITIES, get_activities),
        (SOURCE_PLANTING_EVENTS, get_planting_events),
        (SOURCE_PLANTINGS, get_plantings),
    )
    for name, fetch in fetches:
        try:
            setattr(snapshot, name, fetch())
        except sqlite3.Error:
            logger.exception("Failed to load %s for the calendar", name)
            snapshot.unavailable.append(name)
    return snapshot
