# trucktrack/fleet/availability.py
from trucktrack.fleet.models import COMMITTED_STATUSES


def committed_trips(date, trips, exclude_id=None):
    return [
        trip for trip in trips
        if trip.date == date and trip.status in COMMITTED_STATUSES and trip.id != exclude_id
    ]


# A day is fully booked once every driver or every vehicle holds a Pending or
# Active trip. One exhausted resource class is enough to block a new trip.
def check_availability(date, drivers, vehicles, trips):
    """Report whether ``date`` can take another trip.

    Returns a dict with ``fully_booked`` plus the per-class flags and the ids
    of drivers and vehicles still free on that day.
    """
    committed = committed_trips(date, trips)
    booked_driver_ids = {trip.driver_id for trip in committed}
    booked_vehicle_ids = {trip.vehicle_id for trip in committed}

    free_driver_ids = [driver.id for driver in drivers if driver.id not in booked_driver_ids]
    free_vehicle_ids = [vehicle.id for vehicle in vehicles if vehicle.id not in booked_vehicle_ids]

    all_drivers_booked = len(drivers) > 0 and not free_driver_ids
    all_vehicles_booked = len(vehicles) > 0 and not free_vehicle_ids

    return {
        'date': date,
        'fully_booked': all_drivers_booked or all_vehicles_booked,
        'all_drivers_booked': all_drivers_booked,
        'all_vehicles_booked': all_vehicles_booked,
        'free_driver_ids': free_driver_ids,
        'free_vehicle_ids': free_vehicle_ids,
    }


def find_conflicts(date, driver_id, vehicle_id, trips, exclude_id=None):
    """Return which of the chosen resources already hold a trip on ``date``."""
    conflicts = []
    for trip in committed_trips(date, trips, exclude_id=exclude_id):
        if driver_id is not None and trip.driver_id == driver_id and 'driver' not in conflicts:
            conflicts.append('driver')
        if vehicle_id is not None and trip.vehicle_id == vehicle_id and 'vehicle' not in conflicts:
            conflicts.append('vehicle')
    return conflicts
