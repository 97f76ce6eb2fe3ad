# trucktrack/validation.py
import math
import re
from flask import request
from trucktrack.exceptions import ValidationError

# A number optionally followed by a unit, e.g. "12.5 km" or "1e3"
NUMBER_PATTERN = re.compile(r'^(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s*[A-Za-z]*$')


def json_body(allow_empty=False):
    data = request.get_json(silent=True)
    if data is None and allow_empty:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.')
    return data

def text_field(data, name, strip=True):
    value = data.get(name)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{name} must be a string.')
    return value.strip() if strip else value

def finite_number(value, field):
    """Return ``value`` as a float, rejecting booleans, NaN and infinities."""
    if isinstance(value, bool):
        raise ValidationError(f'Invalid number for {field}.')
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = NUMBER_PATTERN.match(str(value).replace(',', '').strip())
        if not match:
            raise ValidationError(f'Invalid number for {field}.')
        number = float(match.group(1))
    if not math.isfinite(number):
        raise ValidationError(f'{field} must be a finite number.')
    return number
