"""
weather.py — Current conditions for a farm location (OpenWeather One Call 3.0).

Used by the calendar header. Any failure (no API key, HTTP error, network
error, unexpected payload) raises WeatherUnavailable; the route turns that
into "weather unavailable" instead of failing the calendar.
"""

import logging
import re

import requests

logger = logging.getLogger(__name__)

ONECALL_URL = 'https://api.openweathermap.org/data/3.0/onecall'
SAFE_LOCATION_ID_RE = re.compile(r'^[A-Za-z0-9_-]{1,64}$')
UNITS = ('imperial', 'metric')


class WeatherUnavailable(Exception):
    """Weather could not be fetched for a location."""


def is_safe_location_id(location_id) -> bool:
    return bool(location_id) and bool(SAFE_LOCATION_ID_RE.match(location_id))


def fetch_weather_by_coords(latitude, longitude, api_key, units='imperial', timeout=10):
    """
    Fetch current conditions for a coordinate pair.

    Returns:
        dict with timezone, current {dt, sunrise, sunset, temp, humidity,
        weather} and moon_phase (None when the API omits it).

    Raises:
        WeatherUnavailable: on any configuration, transport or payload problem.
    """
    if not api_key:
        raise WeatherUnavailable("OpenWeather integration is not configured")

    params = {
        'lat': latitude,
        'lon': longitude,
        'exclude': 'minutely,hourly,alerts',
        'appid': api_key,
        'units': units if units in UNITS else 'imperial',
    }
    try:
        response = requests.get(ONECALL_URL, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        logger.warning("Weather request failed for (%s, %s): %s", latitude, longitude, e)
        raise WeatherUnavailable(str(e)) from e
    except ValueError as e:
        raise WeatherUnavailable("Malformed weather response") from e

    try:
        current = payload['current']
        conditions = current.get('weather') or []
        daily = payload.get('daily') or []
        return {
            'timezone': payload.get('timezone'),
            'current': {
                'dt': current.get('dt'),
                'sunrise': current.get('sunrise'),
                'sunset': current.get('sunset'),
                'temp': current['temp'],
                'humidity': current.get('humidity'),
                'weather': conditions[0] if conditions else None,
            },
            'moon_phase': daily[0].get('moon_phase') if daily else None,
        }
    except (KeyError, TypeError, AttributeError) as e:
        raise WeatherUnavailable("Malformed weather response") from e
