"""
tests/test_database.py — Tests for the Record Store queries.

Tests cover:
- Lifecycle event query filters to the requested types, with bed labels
- Planting records joined with crop, variety and DTM
- Activities ordered by start with soil amendments nested, date filters
- Location limit and lookup
- Idempotent demo seeding
"""

import pytest

from app import create_app
from database import (
    get_db_path, init_db, seed_defaults,
    create_location, create_plot, create_bed, create_crop, create_crop_variety,
    create_planting, add_planting_event, create_activity, add_soil_amendment,
    get_activities, get_planting_events, get_plantings, get_locations, get_location,
)


@pytest.fixture
def app_context(tmp_path):
    """App context bound to an empty, isolated database."""
    app = create_app({
        'TESTING': True,
        'DATABASE': str(tmp_path / 'calendar.db'),
        'SECRET_KEY': 'dev-key-for-testing',
        'SEED_DEMO_DATA': False,
    })
    with app.app_context():
        yield app


@pytest.fixture
def farm(app_context):
    """One planting with a full lifecycle, plus two activities."""
    location_id = create_location('Home Farm', latitude=21.3, longitude=-157.8)
    plot_id = create_plot('North Field', location_id)
    bed_1 = create_bed(plot_id, 'Bed 1')
    bed_2 = create_bed(plot_id, 'Bed 2')
    crop_id = create_crop('Tomato')
    variety_id = create_crop_variety(crop_id, 'Sungold', dtm_transplant_min=57, dtm_transplant_max=65)
    planting_id = create_planting(variety_id, propagation_method='Transplant',
                                  planted_date='2024-03-20', nursery_started_date='2024-02-01',
                                  bed_id=bed_1)
    add_planting_event(planting_id, 'nursery_seeded', '2024-02-01', qty=24)
    add_planting_event(planting_id, 'transplanted', '2024-03-20', bed_id=bed_2, qty=24)
    add_planting_event(planting_id, 'moved', '2024-03-25', bed_id=bed_1)

    late = create_activity('irrigation', '2024-03-22T07:00:00+00:00', location_id=location_id)
    early = create_activity('soil_amendment', '2024-03-21T09:00:00+00:00', crop='Tomato')
    add_soil_amendment(early, 'Compost', quantity=2, unit='yd3')
    return {
        'location_id': location_id,
        'planting_id': planting_id,
        'activities': (early, late),
    }


def test_database_path_follows_app_config(app_context, tmp_path):
    assert get_db_path() == str(tmp_path / 'calendar.db')


def test_planting_events_filtered_to_lifecycle_types(farm):
    rows = get_planting_events()

    assert [r['event_type'] for r in rows] == ['nursery_seeded', 'transplanted']
    transplant = rows[1]
    assert transplant['planting_id'] == farm['planting_id']
    assert transplant['event_date'] == '2024-03-20'
    assert transplant['qty'] == 24
    # Event bed wins over the planting's bed
    assert transplant['bed_label'] == 'North Field · Bed 2'
    assert rows[0]['bed_label'] == 'North Field · Bed 1'


def test_planting_events_custom_types(farm):
    assert [r['event_type'] for r in get_planting_events(['moved'])] == ['moved']
    assert get_planting_events([]) == []


def test_plantings(farm):
    plantings = get_plantings()

    assert len(plantings) == 1
    p = plantings[0]
    assert p['crop'] == 'Tomato'
    assert p['variety'] == 'Sungold'
    assert p['dtm_transplant_min'] == 57
    assert p['dtm_transplant_max'] == 65
    assert p['dtm_direct_seed_min'] is None
    assert p['fallback_planted_date'] == '2024-03-20'
    assert p['fallback_nursery_date'] == '2024-02-01'
    assert p['status'] == 'planted'
    assert p['propagation_method'] == 'Transplant'


def test_activities_ordered_with_amendments(farm):
    early, late = farm['activities']
    activities = get_activities()

    assert [a['id'] for a in activities] == [early, late]
    assert activities[0]['subtype'] == 'soil_amendment'
    assert activities[0]['amendments'] == [{'name': 'Compost', 'quantity': 2, 'unit': 'yd3'}]
    assert activities[1]['amendments'] == []


def test_activities_filters(farm):
    early, late = farm['activities']

    assert [a['id'] for a in get_activities(start='2024-03-22')] == [late]
    assert [a['id'] for a in get_activities(end='2024-03-21')] == [early]
    assert [a['id'] for a in get_activities(activity_type='irrigation')] == [late]
    assert [a['id'] for a in get_activities(location_id=farm['location_id'])] == [late]


def test_create_activity_rejects_unknown_columns(app_context):
    with pytest.raises(ValueError):
        create_activity('irrigation', '2024-03-22T07:00:00+00:00', colour='blue')


def test_locations(app_context):
    ids = [create_location(f'Site {i}') for i in range(12)]

    assert len(get_locations()) == 10
    assert [loc['id'] for loc in get_locations(limit=3)] == ids[:3]
    assert get_location(ids[0])['name'] == 'Site 0'
    assert get_location('missing') is None


def test_seed_defaults_is_idempotent(app_context):
    seed_defaults(today='2024-06-01')
    seed_defaults(today='2024-06-01')

    assert len(get_locations()) == 1
    assert len(get_plantings()) == 3
    assert len(get_activities()) == 3


def test_init_db_is_idempotent(farm):
    init_db()
    assert len(get_plantings()) == 1
