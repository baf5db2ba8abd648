"""
harvest_engine.py — Planting timelines and harvest window prediction.

This module implements:
- Timeline resolution: the earliest recorded date for each lifecycle event
  (direct_seeded, nursery_seeded, transplanted, harvested) per planting
- Base-date selection for a prediction
- Harvest window prediction from days-to-maturity (DTM) ranges

Base-date precedence (first match wins):
    1. transplanted     -> transplant DTM
    2. nursery_seeded   -> direct-seed DTM
    3. direct_seeded    -> direct-seed DTM
    4. planting columns -> planted_date (+ nursery_started_date and not a
                           "Direct Seed" planting: transplant DTM, otherwise
                           direct-seed DTM), else nursery_started_date with
                           direct-seed DTM

Nursery sowing counts toward the direct-seed DTM. That is how the existing
records were predicted and it is kept until the product says otherwise.

A planting that is already harvested (status or a harvested event) never gets
a prediction, and windows that end before today are dropped. So are windows
that would fall past 9999-12-31.
"""

import logging
from typing import Dict, Iterable, Optional

from models import (
    PlantingTimeline, BaseDate, HarvestWindow, DTMRange,
    DIRECT_SEEDED, NURSERY_SEEDED, TRANSPLANTED, HARVESTED,
    LIFECYCLE_EVENT_TYPES, STATUS_HARVESTED, PROPAGATION_DIRECT_SEED,
    PAIRING_DIRECT_SEED, PAIRING_TRANSPLANT,
)
from utils.dates import add_days, to_date_key, DateOutOfRange

logger = logging.getLogger(__name__)

# Source event label used when a base date comes from the plantings table
FALLBACK_PLANTED = 'planted_date'
FALLBACK_NURSERY = 'nursery_started_date'


def resolve_timelines(rows: Iterable) -> Dict[int, PlantingTimeline]:
    """
    Fold raw lifecycle rows into one timeline per planting.

    Args:
        rows: Mappings with planting_id, event_type and event_date.

    Returns:
        Dict planting_id -> PlantingTimeline. For each event type only the
        earliest date is kept. Unknown event types are ignored.
    """
    timelines = {}
    for row in rows:
        event_type = row['event_type']
        if event_type not in LIFECYCLE_EVENT_TYPES:
            logger.debug("Ignoring lifecycle event type %r for planting %s",
                         event_type, row['planting_id'])
            continue

        planting_id = row['planting_id']
        timeline = timelines.get(planting_id)
        if timeline is None:
            timeline = PlantingTimeline(planting_id=planting_id)
            timelines[planting_id] = timeline

        event_date = to_date_key(row['event_date'])
        current = getattr(timeline, event_type)
        if current is None or event_date < current:
            setattr(timeline, event_type, event_date)

    return timelines


def is_harvested(timeline: Optional[PlantingTimeline], status=None) -> bool:
    """True when the planting has a harvested status or a harvested event."""
    if status == STATUS_HARVESTED:
        return True
    return timeline is not None and timeline.harvested is not None


def select_base_date(timeline: Optional[PlantingTimeline],
                     fallback_planted_date=None,
                     fallback_nursery_date=None,
                     propagation_method=None) -> Optional[BaseDate]:
    """
    Pick the date a harvest prediction counts from.

    Timeline events win over the planting's own date columns; see the
    module docstring for the full precedence. propagation_method only
    matters for the columns: a "Direct Seed" planting keeps the
    direct-seed DTM even when a nursery start date is recorded.
    """
    if timeline is not None:
        if timeline.transplanted:
            return BaseDate(timeline.transplanted, TRANSPLANTED, PAIRING_TRANSPLANT)
        if timeline.nursery_seeded:
            return BaseDate(timeline.nursery_seeded, NURSERY_SEEDED, PAIRING_DIRECT_SEED)
        if timeline.direct_seeded:
            return BaseDate(timeline.direct_seeded, DIRECT_SEEDED, PAIRING_DIRECT_SEED)

    planted = to_date_key(fallback_planted_date) if fallback_planted_date else None
    nursery = to_date_key(fallback_nursery_date) if fallback_nursery_date else None

    if planted and nursery and propagation_method != PROPAGATION_DIRECT_SEED:
        # Started in the nursery, then planted out: a transplant
        return BaseDate(planted, FALLBACK_PLANTED, PAIRING_TRANSPLANT)
    if planted:
        return BaseDate(planted, FALLBACK_PLANTED, PAIRING_DIRECT_SEED)
    if nursery:
        return BaseDate(nursery, FALLBACK_NURSERY, PAIRING_DIRECT_SEED)
    return None


def window_from_base(base_date: str, dtm_min: int, dtm_max: int) -> Optional[HarvestWindow]:
    """
    Window [base + min, base + max].

    None when min is not a usable day count, or when the window would end
    past the last representable date.
    """
    if dtm_min <= 0:
        return None
    if dtm_max < dtm_min:
        dtm_max = dtm_min
    try:
        return HarvestWindow(start=add_days(base_date, dtm_min), end=add_days(base_date, dtm_max))
    except DateOutOfRange as e:
        logger.debug("No harvest window from %s: %s", base_date, e)
        return None


def predict_harvest_window(timeline: Optional[PlantingTimeline],
                           dtm: DTMRange,
                           today: str,
                           status=None,
                           fallback_planted_date=None,
                           fallback_nursery_date=None,
                           propagation_method=None) -> Optional[HarvestWindow]:
    """
    Predict the harvest window for one planting.

    Args:
        timeline: The planting's resolved timeline (or None).
        dtm: Normalized DTM range of the planting's variety.
        today: Current date (YYYY-MM-DD). Windows ending before it are dropped.
        status: Planting status; 'harvested' suppresses the prediction.
        fallback_planted_date: plantings.planted_date, used without timeline events.
        fallback_nursery_date: plantings.nursery_started_date, same.
        propagation_method: plantings.propagation_method, same.

    Returns:
        HarvestWindow (with the BaseDate it was counted from in `base`),
        or None when there is nothing to predict.
    """
    if is_harvested(timeline, status):
        return None

    base = select_base_date(timeline, fallback_planted_date, fallback_nursery_date,
                            propagation_method)
    if base is None:
        return None

    dtm_min, dtm_max = dtm.pairing(base.pairing)
    window = window_from_base(base.date, dtm_min, dtm_max)
    if window is None:
        return None

    if window.end < today:
        return None
    return HarvestWindow(start=window.start, end=window.end, base=base)
