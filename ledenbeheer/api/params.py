"""
Request parameter helpers shared by the API blueprints.
"""
from flask import request

from ..utils.dates import parse_date
from ..utils.exceptions import ValidationError

_TRUE = ('1', 'true', 'yes', 'on')
_FALSE = ('0', 'false', 'no', 'off')


def json_body() -> dict:
    """The JSON request body as a dict (400 if it is not an object)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def arg_bool(name: str, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValidationError(f"Query parameter '{name}' must be true or false", name)


def arg_int(name: str, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer", name)


def arg_date(name: str, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    return parse_date(value, name)


def body_bool(data: dict, name: str, default: bool = False) -> bool:
    """A JSON boolean from the request body; strings like "false" are rejected."""
    value = data.get(name, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f'{name} must be a boolean', name)
    return value
