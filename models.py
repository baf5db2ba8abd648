"""
models.py — Python dataclasses for the farm calendar.

Record Store rows stay plain dicts / sqlite3.Row objects; these dataclasses
describe what the calendar engine computes from them.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Tuple, List, Union


# Calendar event kinds, in display priority order (harvest first)
KIND_HARVEST = 'harvest'
KIND_PLANTING = 'planting'
KIND_ACTIVITY = 'activity'
EVENT_KINDS = (KIND_HARVEST, KIND_PLANTING, KIND_ACTIVITY)

# Planting lifecycle event types the calendar understands
DIRECT_SEEDED = 'direct_seeded'
NURSERY_SEEDED = 'nursery_seeded'
TRANSPLANTED = 'transplanted'
HARVESTED = 'harvested'
LIFECYCLE_EVENT_TYPES = (DIRECT_SEEDED, NURSERY_SEEDED, TRANSPLANTED, HARVESTED)
SEED_EVENT_TYPES = (DIRECT_SEEDED, NURSERY_SEEDED, TRANSPLANTED)

STATUS_HARVESTED = 'harvested'

# plantings.propagation_method values
PROPAGATION_DIRECT_SEED = 'Direct Seed'
PROPAGATION_TRANSPLANT = 'Transplant'

# DTM pairings
PAIRING_DIRECT_SEED = 'direct_seed'
PAIRING_TRANSPLANT = 'transplant'

PREDICTED = 'predicted'


@dataclass(frozen=True)
class DTMRange:
    """Normalized days-to-maturity bounds for both pairings. 0 means unknown."""
    direct_seed_min: int = 0
    direct_seed_max: int = 0
    transplant_min: int = 0
    transplant_max: int = 0

    def direct_seed(self) -> Tuple[int, int]:
        return self.direct_seed_min, self.direct_seed_max

    def transplant(self) -> Tuple[int, int]:
        return self.transplant_min, self.transplant_max

    def pairing(self, name: str) -> Tuple[int, int]:
        """Return the (min, max) pairing by name."""
        if name == PAIRING_TRANSPLANT:
            return self.transplant()
        if name == PAIRING_DIRECT_SEED:
            return self.direct_seed()
        raise ValueError(f"Unknown DTM pairing: {name}")


@dataclass
class PlantingTimeline:
    """Earliest recorded date of each lifecycle event for one planting."""
    planting_id: int = 0
    direct_seeded: Optional[str] = None
    nursery_seeded: Optional[str] = None
    transplanted: Optional[str] = None
    harvested: Optional[str] = None


@dataclass(frozen=True)
class BaseDate:
    """The date a harvest prediction counts from, and why."""
    date: str
    source_event: str
    pairing: str


@dataclass(frozen=True)
class HarvestWindow:
    """Inclusive predicted harvest range, and the base date it counts from."""
    start: str
    end: str
    base: Optional[BaseDate] = field(default=None, compare=False)


@dataclass(frozen=True)
class Amendment:
    """Soil amendment applied during an activity."""
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None


@dataclass(frozen=True)
class ActivityAttributes:
    activity_id: int
    subtype: str
    crop: Optional[str] = None
    asset_name: Optional[str] = None
    location_id: Optional[str] = None
    notes: Optional[str] = None
    amendments: Tuple[Amendment, ...] = ()


@dataclass(frozen=True)
class PlantingAttributes:
    planting_id: int
    event_type: str
    status: Optional[str] = None
    crop: Optional[str] = None
    variety: Optional[str] = None
    qty: Optional[int] = None
    weight_grams: Optional[int] = None
    bed_label: Optional[str] = None


@dataclass(frozen=True)
class HarvestAttributes:
    planting_id: int
    window_start: str
    window_end: str
    base_date: str
    base_event: str
    source: str = PREDICTED
    status: Optional[str] = None
    crop: Optional[str] = None
    variety: Optional[str] = None
    bed_label: Optional[str] = None
    window_days: int = 0


EventAttributes = Union[ActivityAttributes, PlantingAttributes, HarvestAttributes]


@dataclass(frozen=True)
class CalendarEvent:
    """One dated entry on the calendar."""
    id: str
    kind: str
    title: str
    start: str
    end: Optional[str] = None
    attributes: Optional[EventAttributes] = None

    def to_dict(self) -> dict:
        """JSON-ready representation."""
        return {
            'id': self.id,
            'kind': self.kind,
            'title': self.title,
            'start': self.start,
            'end': self.end,
            'attributes': asdict(self.attributes) if self.attributes is not None else {},
        }


@dataclass
class GridCell:
    """A rendered calendar day and the events bucketed onto it.

    in_current_period marks membership in the focused month (month view);
    every cell of a week or day view is in the current period.
    """
    date: str
    in_current_period: bool = True
    is_today: bool = False
    events: List[CalendarEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'date': self.date,
            'in_current_period': self.in_current_period,
            'is_today': self.is_today,
            'events': [e.to_dict() for e in self.events],
        }


@dataclass
class CalendarLocation:
    """Farm location shown in the calendar header (weather lookup)."""
    id: str = ""
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
