# src/dynamic_query/base/parser.py
"""
Parser for the compact filter DSL carried in the ``filter`` query parameter.

Supported syntax::

    field:value            exact match
    field>value            greater than
    field>=value           greater than or equal
    field<value            less than
    field<=value           less than or equal
    field!value            not equal
    field^value            starts with (strings)
    field$value            ends with (strings)
    field~value            contains (strings), has (lists)
    field:null             is null ("undefined" works too)
    field:100-500          inclusive numeric range
    a.b.c:value            nested path through relations/composites

Items are comma separated. Items on the same field path are OR'd together,
different field paths are AND'd. There is no escaping, so a value cannot
contain a comma.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .exceptions import InvalidFilterExpressionError

log = logging.getLogger(__name__)


class FilterOperator(Enum):
    """Operators a filter expression can carry."""

    EQUALS = "equals"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    NOT = "not"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    CONTAINS = "contains"
    RANGE = "range"


# Declaration order matters: detection takes the first symbol found.
OPERATOR_SYMBOLS: Dict[str, FilterOperator] = {
    ">": FilterOperator.GT,
    ">=": FilterOperator.GTE,
    "<": FilterOperator.LT,
    "<=": FilterOperator.LTE,
    "!": FilterOperator.NOT,
    "^": FilterOperator.STARTS_WITH,
    "$": FilterOperator.ENDS_WITH,
    "~": FilterOperator.CONTAINS,
    ":": FilterOperator.EQUALS,
}
DEFAULT_SYMBOL = ":"

_RANGE_RE = re.compile(r"^([^:><!^$~]+):(\d+(?:\.\d+)?)-(\d+(?:\.\d+)?)$")
_NULL_LITERALS = ("null", "undefined")


def is_null_literal(value: str) -> bool:
    return value.lower() in _NULL_LITERALS


@dataclass(frozen=True)
class ParsedFilter:
    """One parsed ``field<op>value`` item."""

    field: str
    operator: FilterOperator
    value: str = ""
    is_null: bool = False
    is_range: bool = False
    range_start: Optional[str] = None
    range_end: Optional[str] = None
    expression: str = ""

    @property
    def path(self) -> List[str]:
        return self.field.split(".")


def _detect_operator(expr: str) -> str:
    for symbol in OPERATOR_SYMBOLS:
        if len(symbol) == 2 and symbol in expr:
            return symbol
    for symbol in OPERATOR_SYMBOLS:
        if len(symbol) == 1 and symbol != DEFAULT_SYMBOL and symbol in expr:
            return symbol
    return DEFAULT_SYMBOL


def _check_field_path(field: str, expr: str) -> None:
    if not field:
        raise InvalidFilterExpressionError(
            f'Missing field name in filter expression "{expr}"', expression=expr
        )
    if any(not segment.strip() for segment in field.split(".")):
        raise InvalidFilterExpressionError(
            f'Empty path segment in field "{field}" of filter expression "{expr}"',
            field=field,
            expression=expr,
        )


def parse_filter_expression(expr: str) -> ParsedFilter:
    """Parses a single filter item such as ``price:100-500`` or ``name^Jo``."""
    log.debug(f"Parsing filter expression: '{expr}'")
    expr = expr.strip()

    range_match = _RANGE_RE.match(expr)
    if range_match:
        field = range_match.group(1).strip()
        _check_field_path(field, expr)
        parsed = ParsedFilter(
            field=field,
            operator=FilterOperator.RANGE,
            is_range=True,
            range_start=range_match.group(2),
            range_end=range_match.group(3),
            expression=expr,
        )
        log.debug(f"  Range filter: {parsed!r}")
        return parsed

    symbol = _detect_operator(expr)
    # Only the first occurrence separates field from value.
    field, _, value = expr.partition(symbol)
    field = field.strip()
    value = value.strip()
    _check_field_path(field, expr)

    parsed = ParsedFilter(
        field=field,
        operator=OPERATOR_SYMBOLS[symbol],
        value=value,
        is_null=is_null_literal(value),
        expression=expr,
    )
    log.debug(f"  Parsed filter: {parsed!r}")
    return parsed


def split_filter_param(filter_param: Optional[str]) -> List[str]:
    """Splits the raw ``filter`` parameter into trimmed, non-empty items."""
    if not filter_param:
        return []
    return [item.strip() for item in filter_param.split(",") if item.strip()]


def group_filters(items: List[str]) -> Dict[str, List[ParsedFilter]]:
    """Parses items and groups them by field path, keeping first-seen order."""
    groups: Dict[str, List[ParsedFilter]] = {}
    for item in items:
        parsed = parse_filter_expression(item)
        groups.setdefault(parsed.field, []).append(parsed)
    log.debug(f"Grouped filters by field: { {k: len(v) for k, v in groups.items()} }")
    return groups
