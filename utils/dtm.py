"""
utils/dtm.py — Days-to-maturity range normalization.

Crop varieties carry two DTM pairings (direct seed, transplant), each with a
min and max day count that may be partially filled in. normalize_dtm turns
whatever is there into a consistent DTMRange:
- neither bound known -> (0, 0), meaning "no prediction possible"
- one bound known     -> both bounds take that value
- min > max           -> swapped
"""

from models import DTMRange


def _coerce_days(value):
    """Coerce a raw day count to a non-negative int; unknown -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        days = int(value)
    except (TypeError, ValueError):
        return 0
    return days if days > 0 else 0


def _normalize_pair(raw_min, raw_max):
    low = _coerce_days(raw_min)
    high = _coerce_days(raw_max)
    if low == 0 and high == 0:
        return 0, 0
    if low == 0:
        return high, high
    if high == 0:
        return low, low
    if low > high:
        return high, low
    return low, high


def normalize_dtm(direct_seed_min=None, direct_seed_max=None,
                  transplant_min=None, transplant_max=None) -> DTMRange:
    """Normalize raw DTM bounds into a DTMRange. Never raises."""
    ds_min, ds_max = _normalize_pair(direct_seed_min, direct_seed_max)
    tp_min, tp_max = _normalize_pair(transplant_min, transplant_max)
    return DTMRange(
        direct_seed_min=ds_min,
        direct_seed_max=ds_max,
        transplant_min=tp_min,
        transplant_max=tp_max,
    )
