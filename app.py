"""
app.py — Flask entry point for the farm calendar.

Initializes the Flask app, loads configuration (defaults, environment,
then test_config), configures logging, registers the route blueprints,
and calls init_db() and seed_defaults() on startup.

Run: python app.py → localhost:5000
"""

import os
import logging
from flask import Flask, redirect, url_for
from flask_wtf.csrf import CSRFProtect

from database import init_db, seed_defaults, DEFAULT_DB_PATH
from routes.calendar import calendar_bp
from routes.export import export_bp


def _configure_logging(level_name):
    """Root logging setup; module loggers propagate to it."""
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logging.getLogger().setLevel(level)


def create_app(test_config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.secret_key = os.environ.get('FARM_CALENDAR_SECRET_KEY', 'farm-calendar-local-app-secret-key')
    app.config['WTF_CSRF_CHECK_DEFAULT'] = True
    app.config.update(
        DATABASE=os.environ.get('FARM_CALENDAR_DB_PATH', DEFAULT_DB_PATH),
        SEED_DEMO_DATA=True,
        OPENWEATHER_API_KEY=os.environ.get('OPENWEATHER_API_KEY'),
        WEATHER_UNITS=os.environ.get('FARM_CALENDAR_WEATHER_UNITS', 'imperial'),
        WEATHER_TIMEOUT=10,
        CALENDAR_LOCATIONS_LIMIT=10,
        LOG_LEVEL=os.environ.get('FARM_CALENDAR_LOG_LEVEL', 'INFO'),
    )

    if test_config:
        app.config.update(test_config)

    _configure_logging(app.config['LOG_LEVEL'])

    CSRFProtect(app)

    # Initialize database and seed demo data
    with app.app_context():
        init_db()
        if app.config['SEED_DEMO_DATA']:
            seed_defaults()

    # Register blueprints
    app.register_blueprint(calendar_bp)
    app.register_blueprint(export_bp)

    @app.route('/')
    def index():
        """The calendar is the home page."""
        return redirect(url_for('calendar.index'))

    return app


if __name__ == '__main__':
    app = create_app()
    # Debug mode: enabled by default for development (auto-reload on file changes)
    # Set FLASK_DEBUG=0 to disable for production
    debug = os.environ.get('FLASK_DEBUG', '1') != '0'
    app.run(host='localhost', port=5000, debug=debug)
