# src/dynamic_query/base/values.py
import json
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .exceptions import TypeCoercionError
from .parser import is_null_literal
from .schema import (
    BOOLEAN,
    DATETIME,
    DECIMAL,
    FLOAT_TYPES,
    INTEGER_TYPES,
    JSON,
    FieldDescriptor,
    FieldKind,
)

log = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_YEAR_RE = re.compile(r"^\d{1,4}$")

_TRUE_STRINGS = ("true", "yes", "1")
_FALSE_STRINGS = ("false", "no", "0")

_DATETIME_ADAPTER = TypeAdapter(datetime)


def _parse_int(descriptor: FieldDescriptor, raw: str) -> int:
    text = raw.strip()
    if not _INT_RE.match(text):
        raise TypeCoercionError(
            f'Invalid integer value: "{raw}" for field "{descriptor.name}"',
            field=descriptor.name,
            value=raw,
        )
    return int(text, 10)


def _parse_float(descriptor: FieldDescriptor, raw: str) -> Any:
    text = raw.strip()
    if not _FLOAT_RE.match(text):
        raise TypeCoercionError(
            f'Invalid float value: "{raw}" for field "{descriptor.name}"',
            field=descriptor.name,
            value=raw,
        )
    if descriptor.type == DECIMAL:
        return Decimal(text)
    return float(text)


def _parse_bool(descriptor: FieldDescriptor, raw: str, strict: bool) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if strict and lowered not in _FALSE_STRINGS:
        raise TypeCoercionError(
            f'Invalid boolean value: "{raw}" for field "{descriptor.name}"',
            field=descriptor.name,
            value=raw,
        )
    if lowered not in _FALSE_STRINGS:
        log.warning(
            f"Unrecognised boolean '{raw}' for field '{descriptor.name}' treated as False"
        )
    return False


def _parse_datetime(descriptor: FieldDescriptor, raw: str) -> datetime:
    """
    Parses ISO dates and datetimes, epoch numbers and bare years.

    Up to four digits are read as a year (``2023`` is 2023-01-01), so numeric
    range bounds on date fields work. Values without an offset are taken as UTC.
    """
    text = raw.strip()
    try:
        if _YEAR_RE.match(text):
            value = datetime(int(text), 1, 1)
        else:
            value = _DATETIME_ADAPTER.validate_python(text)
    except (ValidationError, ValueError) as e:
        raise TypeCoercionError(
            f'Invalid date value: "{raw}" for field "{descriptor.name}"',
            field=descriptor.name,
            value=raw,
        ) from e
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_json(descriptor: FieldDescriptor, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        log.warning(f"Value for Json field '{descriptor.name}' is not JSON, keeping raw string")
        return raw


def parse_value(descriptor: FieldDescriptor, raw: str, strict_booleans: bool = False) -> Any:
    """
    Converts a raw query-string value into the field's declared type.

    ``null``/``undefined`` become None for every type. Strings and enums pass
    through unchanged, Json falls back to the raw string when it does not
    parse, and Boolean maps anything outside true/yes/1 to False unless
    ``strict_booleans`` is set.

    Raises:
        TypeCoercionError: the value does not fit an Int, BigInt, Float,
            Decimal or DateTime field (or a Boolean field in strict mode).
    """
    if is_null_literal(raw):
        return None

    if descriptor.kind is FieldKind.ENUM:
        return raw

    field_type = descriptor.type
    if field_type in INTEGER_TYPES:
        return _parse_int(descriptor, raw)
    if field_type in FLOAT_TYPES:
        return _parse_float(descriptor, raw)
    if field_type == BOOLEAN:
        return _parse_bool(descriptor, raw, strict_booleans)
    if field_type == DATETIME:
        return _parse_datetime(descriptor, raw)
    if field_type == JSON:
        return _parse_json(descriptor, raw)
    # String, enum names and anything else
    return raw
