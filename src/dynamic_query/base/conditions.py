# src/dynamic_query/base/conditions.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

log = logging.getLogger(__name__)

INSENSITIVE = "insensitive"


# --- Structured Condition Classes ---
@dataclass(frozen=True)
class Condition:
    """Base class for condition tree nodes."""


@dataclass(frozen=True)
class FieldPredicate(Condition):
    """A predicate on one terminal field: ``field <operator> value``."""

    field: str
    operator: str
    value: Any
    insensitive: bool = False


@dataclass(frozen=True)
class Logical(Condition):
    """AND/OR combination of child conditions."""

    operator: Literal["and", "or"]
    conditions: List[Condition] = field(default_factory=list)


@dataclass(frozen=True)
class Negation(Condition):
    condition: Condition


@dataclass(frozen=True)
class Relation(Condition):
    """Condition on a to-one relation, nested directly under the field."""

    field: str
    condition: Condition


@dataclass(frozen=True)
class Is(Condition):
    """Condition on a single embedded (composite) object."""

    field: str
    condition: Condition


@dataclass(frozen=True)
class Some(Condition):
    """
    Existential condition: at least one element of a list field matches.

    For composite lists each element test is additionally wrapped in an
    ``is`` container.
    """

    field: str
    condition: Condition
    composite: bool = False


def And(*conditions: Condition) -> Logical:
    return Logical("and", list(conditions))


def Or(*conditions: Condition) -> Logical:
    return Logical("or", list(conditions))


# --- Lowering to the store-native where shape ---
def _lower_predicate(predicate: FieldPredicate) -> Dict[str, Any]:
    if predicate.operator == "equals" and not predicate.insensitive:
        return {predicate.field: predicate.value}
    body: Dict[str, Any] = {predicate.operator: predicate.value}
    if predicate.insensitive:
        body["mode"] = INSENSITIVE
    return {predicate.field: body}


def to_where(condition: Optional[Condition]) -> Dict[str, Any]:
    """
    Recursively lowers a condition tree into the nested dict shape the data
    store consumes (``AND``/``OR``/``NOT`` lists, ``some``/``is`` wrappers,
    predicate keys such as ``gte`` or ``startsWith``).

    None lowers to an empty dict, which callers treat as "no clause".
    """
    if condition is None:
        return {}

    if isinstance(condition, FieldPredicate):
        lowered = _lower_predicate(condition)
    elif isinstance(condition, Logical):
        children = [to_where(c) for c in condition.conditions]
        children = [c for c in children if c]
        key = "AND" if condition.operator == "and" else "OR"
        lowered = {key: children} if children else {}
    elif isinstance(condition, Negation):
        inner = to_where(condition.condition)
        lowered = {"NOT": inner} if inner else {}
    elif isinstance(condition, Relation):
        inner = to_where(condition.condition)
        lowered = {condition.field: inner} if inner else {}
    elif isinstance(condition, Is):
        inner = to_where(condition.condition)
        lowered = {condition.field: {"is": inner}} if inner else {}
    elif isinstance(condition, Some):
        inner = to_where(condition.condition)
        if not inner:
            lowered = {}
        elif condition.composite:
            lowered = {condition.field: {"some": {"is": inner}}}
        else:
            lowered = {condition.field: {"some": inner}}
    else:
        log.error(f"Unsupported condition type during lowering: {type(condition)}")
        raise TypeError(f"Unsupported condition type: {type(condition)}")

    log.debug(f" -> Lowered {condition!r} to {lowered!r}")
    return lowered
