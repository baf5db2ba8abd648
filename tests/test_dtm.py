"""
tests/test_dtm.py — Tests for days-to-maturity normalization.
"""

from models import DTMRange
from utils.dtm import normalize_dtm


def test_only_max_given_sets_min():
    assert normalize_dtm(0, 14, 0, 0) == DTMRange(
        direct_seed_min=14, direct_seed_max=14, transplant_min=0, transplant_max=0
    )


def test_only_min_given_sets_max():
    dtm = normalize_dtm(None, None, 60, None)
    assert dtm.transplant() == (60, 60)
    assert dtm.direct_seed() == (0, 0)


def test_no_data_is_zero():
    assert normalize_dtm() == DTMRange(0, 0, 0, 0)


def test_inverted_range_is_swapped():
    dtm = normalize_dtm(70, 60, 90, 80)
    assert dtm.direct_seed() == (60, 70)
    assert dtm.transplant() == (80, 90)


def test_bad_values_are_coerced():
    dtm = normalize_dtm(-5, 'abc', '45', 50.0)
    assert dtm.direct_seed() == (0, 0)
    assert dtm.transplant() == (45, 50)


def test_pairing_by_name():
    dtm = normalize_dtm(30, 40, 50, 60)
    assert dtm.pairing('direct_seed') == (30, 40)
    assert dtm.pairing('transplant') == (50, 60)
