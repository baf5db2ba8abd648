"""
database.py — SQLite schema, demo seed data, and Record Store queries.

The calendar engine only reads from here: activities, planting lifecycle
events, planting master records and locations. The create_* helpers exist
for seeding and tests.
Uses WAL mode for concurrent read performance.
"""

import sqlite3
import os
import uuid

from flask import current_app, has_app_context

from models import LIFECYCLE_EVENT_TYPES, PROPAGATION_DIRECT_SEED, PROPAGATION_TRANSPLANT
from utils.dates import today_utc, add_days

DEFAULT_DB_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data', 'farm_calendar.db')

ACTIVITY_TYPES = ('irrigation', 'soil_amendment', 'pest_management', 'asset_maintenance')
PLANTING_STATUSES = ('nursery', 'planted', 'harvested', 'removed')
PROPAGATION_METHODS = (PROPAGATION_DIRECT_SEED, PROPAGATION_TRANSPLANT)
PLANTING_EVENT_TYPES = ('nursery_seeded', 'direct_seeded', 'transplanted', 'moved', 'harvested', 'removed')


def get_db_path():
    """Database path: app config inside a request/app context, else environment or default."""
    if has_app_context() and current_app.config.get('DATABASE'):
        return current_app.config['DATABASE']
    return os.environ.get('FARM_CALENDAR_DB_PATH', DEFAULT_DB_PATH)


def get_db():
    """Get a database connection with WAL mode and foreign keys enabled."""
    path = get_db_path()
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def _in_list(values):
    return ", ".join(f"'{v}'" for v in values)


def init_db():
    """Create all tables and indexes if they don't exist."""
    conn = get_db()
    cursor = conn.cursor()

    # Table: locations
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            latitude REAL,
            longitude REAL,
            timezone TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Table: plots
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS plots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            location_id TEXT REFERENCES locations(id),
            name TEXT NOT NULL
        )
    """)

    # Table: beds
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS beds (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plot_id INTEGER NOT NULL REFERENCES plots(id),
            name TEXT NOT NULL
        )
    """)

    # Table: crops
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS crops (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL
        )
    """)

    # Table: crop_varieties (days-to-maturity lives here)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS crop_varieties (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            crop_id INTEGER NOT NULL REFERENCES crops(id),
            name TEXT NOT NULL,
            dtm_direct_seed_min INTEGER,
            dtm_direct_seed_max INTEGER,
            dtm_transplant_min INTEGER,
            dtm_transplant_max INTEGER,
            UNIQUE(crop_id, name)
        )
    """)

    # Table: plantings (current state)
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS plantings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            crop_variety_id INTEGER NOT NULL REFERENCES crop_varieties(id),
            propagation_method TEXT NOT NULL DEFAULT '{PROPAGATION_DIRECT_SEED}'
                CHECK (propagation_method IN ({_in_list(PROPAGATION_METHODS)})),
            qty_initial INTEGER,
            status TEXT NOT NULL CHECK (status IN ({_in_list(PLANTING_STATUSES)})),
            nursery_started_date TEXT,
            planted_date TEXT,
            ended_date TEXT,
            bed_id INTEGER REFERENCES beds(id),
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Table: planting_events (append-only lifecycle log)
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS planting_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            planting_id INTEGER NOT NULL REFERENCES plantings(id) ON DELETE CASCADE,
            event_type TEXT NOT NULL CHECK (event_type IN ({_in_list(PLANTING_EVENT_TYPES)})),
            event_date TEXT NOT NULL,
            bed_id INTEGER REFERENCES beds(id),
            qty INTEGER,
            weight_grams INTEGER,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_planting_events_type_date
        ON planting_events(event_type, event_date)
    """)

    # Table: activities
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS activities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            activity_type TEXT NOT NULL CHECK (activity_type IN ({_in_list(ACTIVITY_TYPES)})),
            started_at TEXT NOT NULL,
            ended_at TEXT,
            duration_minutes INTEGER,
            labor_hours REAL,
            location_id TEXT REFERENCES locations(id) ON DELETE SET NULL,
            crop TEXT,
            asset_id TEXT,
            asset_name TEXT,
            quantity REAL,
            unit TEXT,
            cost REAL,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_activities_started
        ON activities(started_at)
    """)

    # Table: activities_soil_amendments
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS activities_soil_amendments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            activity_id INTEGER NOT NULL REFERENCES activities(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            quantity REAL,
            unit TEXT,
            notes TEXT
        )
    """)

    conn.commit()
    conn.close()


# ========================================
# Write helpers (seeding and tests)
# ========================================

def create_location(name, latitude=None, longitude=None, timezone=None, location_id=None):
    """Insert a location. Returns its id."""
    location_id = location_id or uuid.uuid4().hex
    conn = get_db()
    conn.execute(
        "INSERT INTO locations (id, name, latitude, longitude, timezone) VALUES (?, ?, ?, ?, ?)",
        (location_id, name, latitude, longitude, timezone)
    )
    conn.commit()
    conn.close()
    return location_id


def _insert(sql, params):
    conn = get_db()
    try:
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def create_plot(name, location_id=None):
    """Insert a plot. Returns its id."""
    return _insert("INSERT INTO plots (location_id, name) VALUES (?, ?)", (location_id, name))


def create_bed(plot_id, name):
    """Insert a bed. Returns its id."""
    return _insert("INSERT INTO beds (plot_id, name) VALUES (?, ?)", (plot_id, name))


def create_crop(name):
    """Insert a crop. Returns its id."""
    return _insert("INSERT INTO crops (name) VALUES (?)", (name,))


def create_crop_variety(crop_id, name, dtm_direct_seed_min=None, dtm_direct_seed_max=None,
                        dtm_transplant_min=None, dtm_transplant_max=None):
    """Insert a crop variety with its days-to-maturity ranges. Returns its id."""
    return _insert(
        """INSERT INTO crop_varieties
           (crop_id, name, dtm_direct_seed_min, dtm_direct_seed_max, dtm_transplant_min, dtm_transplant_max)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (crop_id, name, dtm_direct_seed_min, dtm_direct_seed_max, dtm_transplant_min, dtm_transplant_max)
    )


def create_planting(crop_variety_id, status='planted', propagation_method=PROPAGATION_DIRECT_SEED,
                    planted_date=None, nursery_started_date=None, bed_id=None,
                    qty_initial=None, notes=None):
    """Insert a planting. Returns its id."""
    return _insert(
        """INSERT INTO plantings
           (crop_variety_id, propagation_method, qty_initial, status,
            nursery_started_date, planted_date, bed_id, notes)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (crop_variety_id, propagation_method, qty_initial, status,
         nursery_started_date, planted_date, bed_id, notes)
    )


def add_planting_event(planting_id, event_type, event_date, bed_id=None,
                       qty=None, weight_grams=None, notes=None):
    """Append a lifecycle event for a planting. Returns its id."""
    return _insert(
        """INSERT INTO planting_events
           (planting_id, event_type, event_date, bed_id, qty, weight_grams, notes)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (planting_id, event_type, event_date, bed_id, qty, weight_grams, notes)
    )


def create_activity(activity_type, started_at, ended_at=None, location_id=None,
                    crop=None, asset_name=None, notes=None, **extra):
    """
    Insert an activity. Returns its id.

    Extra keyword arguments map to the remaining activity columns
    (duration_minutes, labor_hours, asset_id, quantity, unit, cost).
    """
    allowed = ('duration_minutes', 'labor_hours', 'asset_id', 'quantity', 'unit', 'cost')
    unknown = set(extra) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown activity columns: {sorted(unknown)}")

    columns = ['activity_type', 'started_at', 'ended_at', 'location_id', 'crop', 'asset_name', 'notes']
    values = [activity_type, started_at, ended_at, location_id, crop, asset_name, notes]
    for key in allowed:
        if key in extra:
            columns.append(key)
            values.append(extra[key])

    placeholders = ", ".join("?" for _ in columns)
    return _insert(
        f"INSERT INTO activities ({', '.join(columns)}) VALUES ({placeholders})",
        tuple(values)
    )


def add_soil_amendment(activity_id, name, quantity=None, unit=None, notes=None):
    """Attach a soil amendment to an activity. Returns its id."""
    return _insert(
        "INSERT INTO activities_soil_amendments (activity_id, name, quantity, unit, notes) VALUES (?, ?, ?, ?, ?)",
        (activity_id, name, quantity, unit, notes)
    )


def seed_defaults(today=None):
    """
    Populate a small demo farm if there are no locations yet. Idempotent.

    Dates are relative to today so the calendar always has something to
    show around the current month.
    """
    conn = get_db()
    existing = conn.execute("SELECT COUNT(*) FROM locations").fetchone()[0]
    conn.close()
    if existing:
        return

    today = today or today_utc()

    location_id = create_location('Home Farm', latitude=21.3069, longitude=-157.8583,
                                  timezone='Pacific/Honolulu')
    plot_id = create_plot('North Field', location_id)
    bed_1 = create_bed(plot_id, 'Bed 1')
    bed_2 = create_bed(plot_id, 'Bed 2')

    tomato = create_crop('Tomato')
    lettuce = create_crop('Lettuce')
    carrot = create_crop('Carrot')

    sungold = create_crop_variety(tomato, 'Sungold', dtm_transplant_min=57, dtm_transplant_max=65)
    buttercrunch = create_crop_variety(lettuce, 'Buttercrunch', dtm_direct_seed_min=45, dtm_direct_seed_max=55)
    nantes = create_crop_variety(carrot, 'Nantes', dtm_direct_seed_min=65, dtm_direct_seed_max=75)

    # Tomato: started in the nursery, transplanted ten days ago
    tomato_planting = create_planting(
        sungold, status='planted', propagation_method=PROPAGATION_TRANSPLANT,
        nursery_started_date=add_days(today, -50), planted_date=add_days(today, -10),
        bed_id=bed_1, qty_initial=24,
    )
    add_planting_event(tomato_planting, 'nursery_seeded', add_days(today, -50), qty=24)
    add_planting_event(tomato_planting, 'transplanted', add_days(today, -10), bed_id=bed_1, qty=24)

    # Lettuce: direct seeded three weeks ago
    lettuce_planting = create_planting(
        buttercrunch, status='planted', planted_date=add_days(today, -21),
        bed_id=bed_2, qty_initial=60,
    )
    add_planting_event(lettuce_planting, 'direct_seeded', add_days(today, -21), bed_id=bed_2,
                       qty=60, weight_grams=3)

    # Carrot: already harvested, no prediction
    carrot_planting = create_planting(
        nantes, status='harvested', planted_date=add_days(today, -90), bed_id=bed_2,
    )
    add_planting_event(carrot_planting, 'direct_seeded', add_days(today, -90), bed_id=bed_2)
    add_planting_event(carrot_planting, 'harvested', add_days(today, -5), bed_id=bed_2,
                       weight_grams=4200)

    create_activity('irrigation', f"{add_days(today, -2)}T07:00:00+00:00",
                    ended_at=f"{add_days(today, -2)}T07:45:00+00:00",
                    location_id=location_id, crop='Lettuce', duration_minutes=45)
    amendment_activity = create_activity('soil_amendment', f"{add_days(today, -7)}T09:00:00+00:00",
                                         location_id=location_id, notes='Top-dressed bed 1')
    add_soil_amendment(amendment_activity, 'Compost', quantity=2, unit='yd3')
    create_activity('asset_maintenance', f"{add_days(today, 3)}T15:00:00+00:00",
                    location_id=location_id, asset_name='Walk-behind tractor')


# ========================================
# Record Store queries (calendar engine inputs)
# ========================================

def _bed_label(plot_name, bed_name):
    parts = [p for p in (plot_name, bed_name) if p]
    return " · ".join(parts) if parts else None


def get_activities(start=None, end=None, activity_type=None, location_id=None):
    """
    Retrieve activities ordered by start time, with soil amendments nested.

    Args:
        start: Optional lower bound on started_at (inclusive, date or timestamp).
        end: Optional upper bound on started_at (inclusive, date or timestamp).
        activity_type: Optional activity type filter.
        location_id: Optional location filter.

    Returns:
        List of dicts: every activity column, plus 'subtype' and 'amendments'.
    """
    clauses = []
    params = []
    if activity_type:
        clauses.append("activity_type = ?")
        params.append(activity_type)
    if start:
        clauses.append("started_at >= ?")
        params.append(start)
    if end:
        # A bare date as upper bound includes the whole day
        clauses.append("started_at <= ?")
        params.append(end + 'T23:59:59.999999' if len(end) == 10 else end)
    if location_id:
        clauses.append("location_id = ?")
        params.append(location_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = get_db()
    try:
        rows = conn.execute(
            f"SELECT * FROM activities {where} ORDER BY started_at, id",
            tuple(params)
        ).fetchall()
        amendment_rows = conn.execute(
            "SELECT activity_id, name, quantity, unit FROM activities_soil_amendments ORDER BY id"
        ).fetchall()
    finally:
        conn.close()

    amendments = {}
    for row in amendment_rows:
        amendments.setdefault(row['activity_id'], []).append({
            'name': row['name'],
            'quantity': row['quantity'],
            'unit': row['unit'],
        })

    activities = []
    for row in rows:
        activity = dict(row)
        activity['subtype'] = row['activity_type']
        activity['amendments'] = amendments.get(row['id'], [])
        activities.append(activity)
    return activities


def get_planting_events(event_types=LIFECYCLE_EVENT_TYPES):
    """
    Retrieve planting lifecycle events of the given types, ordered by date.

    Returns:
        List of dicts with id, planting_id, event_type, event_date, qty,
        weight_grams and bed_label (event bed, else the planting's bed).
    """
    event_types = tuple(event_types)
    if not event_types:
        return []
    placeholders = ", ".join("?" for _ in event_types)

    conn = get_db()
    try:
        rows = conn.execute(
            f"""SELECT pe.id, pe.planting_id, pe.event_type, pe.event_date,
                       pe.qty, pe.weight_grams,
                       COALESCE(eb.name, pb.name) AS bed_name,
                       COALESCE(ep.name, pp.name) AS plot_name
                FROM planting_events pe
                JOIN plantings p ON pe.planting_id = p.id
                LEFT JOIN beds eb ON pe.bed_id = eb.id
                LEFT JOIN plots ep ON eb.plot_id = ep.id
                LEFT JOIN beds pb ON p.bed_id = pb.id
                LEFT JOIN plots pp ON pb.plot_id = pp.id
                WHERE pe.event_type IN ({placeholders})
                ORDER BY pe.event_date, pe.id""",
            event_types
        ).fetchall()
    finally:
        conn.close()

    return [{
        'id': row['id'],
        'planting_id': row['planting_id'],
        'event_type': row['event_type'],
        'event_date': row['event_date'],
        'qty': row['qty'],
        'weight_grams': row['weight_grams'],
        'bed_label': _bed_label(row['plot_name'], row['bed_name']),
    } for row in rows]


def get_plantings():
    """
    Retrieve planting master records joined with crop, variety and DTM.

    Returns:
        List of dicts with id, status, propagation_method, crop, variety, the four dtm_* columns,
        fallback_planted_date, fallback_nursery_date and bed_label.
    """
    conn = get_db()
    try:
        rows = conn.execute(
            """SELECT p.id, p.status, p.propagation_method, p.planted_date, p.nursery_started_date,
                      c.name AS crop, cv.name AS variety,
                      cv.dtm_direct_seed_min, cv.dtm_direct_seed_max,
                      cv.dtm_transplant_min, cv.dtm_transplant_max,
                      b.name AS bed_name, pl.name AS plot_name
               FROM plantings p
               LEFT JOIN crop_varieties cv ON p.crop_variety_id = cv.id
               LEFT JOIN crops c ON cv.crop_id = c.id
               LEFT JOIN beds b ON p.bed_id = b.id
               LEFT JOIN plots pl ON b.plot_id = pl.id
               ORDER BY p.id"""
        ).fetchall()
    finally:
        conn.close()

    return [{
        'id': row['id'],
        'status': row['status'],
        'propagation_method': row['propagation_method'],
        'crop': row['crop'],
        'variety': row['variety'],
        'dtm_direct_seed_min': row['dtm_direct_seed_min'],
        'dtm_direct_seed_max': row['dtm_direct_seed_max'],
        'dtm_transplant_min': row['dtm_transplant_min'],
        'dtm_transplant_max': row['dtm_transplant_max'],
        'fallback_planted_date': row['planted_date'],
        'fallback_nursery_date': row['nursery_started_date'],
        'bed_label': _bed_label(row['plot_name'], row['bed_name']),
    } for row in rows]


def get_locations(limit=10):
    """Retrieve locations in creation order."""
    conn = get_db()
    try:
        rows = conn.execute(
            "SELECT id, name, latitude, longitude FROM locations ORDER BY created_at, rowid LIMIT ?",
            (limit,)
        ).fetchall()
    finally:
        conn.close()
    return [dict(row) for row in rows]


def get_location(location_id):
    """Retrieve a single location by ID, or None."""
    conn = get_db()
    try:
        row = conn.execute(
            "SELECT id, name, latitude, longitude, timezone FROM locations WHERE id = ?",
            (location_id,)
        ).fetchone()
    finally:
        conn.close()
    return dict(row) if row else None
