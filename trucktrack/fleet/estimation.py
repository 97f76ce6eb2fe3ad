# trucktrack/fleet/estimation.py
import pytz
import requests
from datetime import datetime, time, timedelta
from flask import current_app
from trucktrack.logging_config import setup_logging

logger = setup_logging()

NOT_AVAILABLE = 'N/A'

UNAVAILABLE = {
    'travel_time': NOT_AVAILABLE,
    'arrival_time': NOT_AVAILABLE,
    'distance_km': NOT_AVAILABLE,
    'price': NOT_AVAILABLE,
}


def _has_coordinates(point):
    return point is not None and len(point) == 2 and all(value is not None for value in point)

def format_duration(seconds):
    minutes = int(round(seconds / 60))
    hours, minutes = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes or not hours:
        parts.append(f"{minutes} min{'s' if minutes != 1 else ''}")
    return ' '.join(parts)

def format_arrival(arrival):
    if arrival == NOT_AVAILABLE:
        return NOT_AVAILABLE
    return arrival.strftime('%b %d, %Y %I:%M %p')

# Function to query the directions service for one driving route
def fetch_route(origin, destination, api_key, url, timeout=10):
    """Return ``{status, legs: [{duration: {seconds, text}, distance: {meters}}]}``."""
    params = {
        'origin': f'{origin[0]},{origin[1]}',
        'destination': f'{destination[0]},{destination[1]}',
        'mode': 'driving',
        'key': api_key,
    }
    try:
        response = requests.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Directions request failed: {e}")
        return {'status': 'REQUEST_FAILED', 'legs': []}

    routes = payload.get('routes') or []
    legs = []
    if routes:
        for leg in routes[0].get('legs', []):
            legs.append({
                'duration': {'seconds': leg['duration']['value'], 'text': leg['duration'].get('text')},
                'distance': {'meters': leg['distance']['value']},
            })
    return {'status': payload.get('status'), 'legs': legs}

def estimate(origin, destination, date, route, rate_per_km=45, start_hour=9, timezone='Asia/Manila'):
    """Derive travel time, arrival, distance and price from a routing result.

    Trips are assumed to leave at ``start_hour`` local time on ``date``. Any
    missing input or a non-OK routing status yields ``UNAVAILABLE`` so stale
    figures from an earlier estimate never survive.
    """
    if not _has_coordinates(origin) or not _has_coordinates(destination) or date is None:
        return dict(UNAVAILABLE)
    if not route or route.get('status') != 'OK' or not route.get('legs'):
        logger.warning(f"Route unavailable: status {route.get('status') if route else None}")
        return dict(UNAVAILABLE)

    leg = route['legs'][0]
    seconds = leg['duration']['seconds']

    tz = pytz.timezone(timezone)
    departure = tz.localize(datetime.combine(date, time(hour=start_hour)))
    arrival = tz.normalize(departure + timedelta(seconds=seconds))

    distance_km = round(leg['distance']['meters'] / 1000, 2)
    price = round(distance_km * rate_per_km, 2)

    return {
        'travel_time': leg['duration'].get('text') or format_duration(seconds),
        'arrival_time': arrival,
        'distance_km': distance_km,
        'price': price,
    }

def estimate_trip(origin, destination, date):
    config = current_app.config
    if not _has_coordinates(origin) or not _has_coordinates(destination) or date is None:
        return dict(UNAVAILABLE)

    api_key = config.get('GOOGLE_MAPS_API_KEY')
    if not api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not set; route estimation unavailable.")
        return dict(UNAVAILABLE)

    route = fetch_route(origin, destination, api_key, config['DIRECTIONS_URL'], timeout=config['ROUTING_TIMEOUT'])
    return estimate(origin, destination, date, route,
                    rate_per_km=config['PRICE_PER_KM'],
                    start_hour=config['TRIP_START_HOUR'],
                    timezone=config['APP_TIMEZONE'])
