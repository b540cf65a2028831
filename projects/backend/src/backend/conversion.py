"""Conversion between driver values and result-set values.

Drivers hand back dates, decimals and bytes that result sets cannot hold.
Reads turn them into plain values: ISO 8601 text, numbers and hex text.
Writes turn those plain values back into what the column type binds.
"""

from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from results import Value
from sqlalchemy import Date, DateTime, Float, LargeBinary, Numeric, Time, Uuid
from sqlalchemy.types import TypeEngine


def to_value(raw_value: object) -> Value:
    """Convert a value returned by a driver to a result-set value."""
    match raw_value:
        case None | bool() | int() | float() | str():
            return raw_value
        case Decimal():
            if raw_value.is_finite() and raw_value == raw_value.to_integral_value():
                return int(raw_value)
            return float(raw_value)
        case datetime() | date() | time():
            return raw_value.isoformat()
        case bytes() | bytearray() | memoryview():
            return bytes(raw_value).hex()
        case UUID():
            return str(raw_value)
        case Mapping():
            return {str(key): to_value(value) for key, value in raw_value.items()}
        case list() | tuple():
            return [to_value(value) for value in raw_value]
        case _:
            return str(raw_value)


def cast_datetime(value: object) -> object:
    """Parse ISO 8601 text into a datetime."""
    return datetime.fromisoformat(value) if isinstance(value, str) else value


def cast_date(value: object) -> object:
    """Parse ISO 8601 text into a date."""
    return date.fromisoformat(value) if isinstance(value, str) else value


def cast_time(value: object) -> object:
    """Parse ISO 8601 text into a time."""
    return time.fromisoformat(value) if isinstance(value, str) else value


def cast_decimal(value: object) -> object:
    """Turn numbers into decimals without binary float noise."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return Decimal(str(value))
    return value


def cast_bytes(value: object) -> object:
    """Parse hex text into bytes."""
    return bytes.fromhex(value) if isinstance(value, str) else value


def cast_uuid(value: object) -> object:
    """Parse text into a UUID."""
    return UUID(value) if isinstance(value, str) else value


def bind_caster(sql_type: TypeEngine[object]) -> Callable[[object], object]:
    """Get the function turning a result-set value into a bind value."""
    if isinstance(sql_type, DateTime):
        return cast_datetime
    if isinstance(sql_type, Date):
        return cast_date
    if isinstance(sql_type, Time):
        return cast_time
    # Float is a Numeric that binds floats as they are
    if isinstance(sql_type, Float):
        return lambda value: value
    if isinstance(sql_type, Numeric):
        return cast_decimal
    if isinstance(sql_type, LargeBinary):
        return cast_bytes
    if isinstance(sql_type, Uuid):
        return cast_uuid
    return lambda value: value


def to_bind(sql_type: TypeEngine[object], value: Value) -> object:
    """Convert a result-set value to what a column of the given type binds."""
    return bind_caster(sql_type)(value)
