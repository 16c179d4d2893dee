# src/dynamic_query/base/query.py
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .exceptions import InvalidSortError

log = logging.getLogger(__name__)

SortOrder = str
OrderBy = Union[Dict[str, Any], List[Dict[str, Any]]]

SORT_ORDERS = ("asc", "desc")


# --- Query Spec ---
@dataclass
class FindManyQuery:
    """A find-many request in the data store's native shape."""

    where: Dict[str, Any]
    skip: int = 0
    take: int = 10
    order_by: Optional[OrderBy] = None
    select: Optional[Dict[str, Any]] = None

    def __repr__(self) -> str:
        parts = [f"where={self.where!r}", f"skip={self.skip!r}", f"take={self.take!r}"]
        if self.order_by is not None:
            parts.append(f"order_by={self.order_by!r}")
        if self.select is not None:
            parts.append(f"select={self.select!r}")
        return f"FindManyQuery({', '.join(parts)})"

    def to_dict(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "where": self.where,
            "skip": self.skip,
            "take": self.take,
            "orderBy": self.order_by,
        }
        if self.select is not None:
            query["select"] = self.select
        return query

    def copy(self) -> "FindManyQuery":
        return copy.deepcopy(self)


# --- Projection ---
def get_nested_fields(fields: Optional[str], id_field: str = "id") -> Optional[Dict[str, Any]]:
    """
    Builds a selection tree from a comma separated, dot-nested field list.

    ``"personalInfo.firstName,email"`` becomes::

        {"id": True, "personalInfo": {"select": {"firstName": True}}, "email": True}

    The id field is always selected. A nested selection wins over a plain
    selection of the same parent, whichever comes first. Returns None when no
    fields are requested so the store returns whole records.
    """
    if not fields:
        return None

    selection: Dict[str, Any] = {id_field: True}
    for raw in fields.split(","):
        parts = [p.strip() for p in raw.strip().split(".")]
        if not parts or any(not p for p in parts):
            if raw.strip():
                log.warning(f"Ignoring malformed field selection '{raw.strip()}'")
            continue
        current = selection
        for part in parts[:-1]:
            node = current.get(part)
            if not isinstance(node, dict):
                node = {"select": {}}
                current[part] = node
            current = node["select"]
        if not isinstance(current.get(parts[-1]), dict):
            current[parts[-1]] = True
    log.debug(f"Field selection for '{fields}': {selection!r}")
    return selection


# --- Sorting ---
def parse_sort(sort: Optional[Union[str, OrderBy]], order: SortOrder, id_field: str = "id") -> OrderBy:
    """
    Turns the ``sort``/``order`` parameters into an orderBy spec.

    No sort orders by the id field; a plain field name orders by that field;
    a string starting with ``{`` or ``[`` is parsed as JSON and used as is.
    """
    if order not in SORT_ORDERS:
        raise InvalidSortError(f"Invalid sort order '{order}', expected 'asc' or 'desc'", value=order)
    if not sort:
        return {id_field: order}
    if not isinstance(sort, str):
        return sort
    text = sort.strip()
    if not text.startswith(("{", "[")):
        return {text: order}
    try:
        spec = json.loads(text)
    except ValueError as e:
        raise InvalidSortError(f"Sort specification is not valid JSON: {sort}", value=sort) from e
    if isinstance(spec, list) and all(isinstance(s, dict) for s in spec):
        return spec
    if not isinstance(spec, dict):
        raise InvalidSortError(
            f"Sort specification must be an object or a list of objects: {sort}", value=sort
        )
    return spec


def build_find_many_query(
    where: Optional[Dict[str, Any]],
    skip: int,
    limit: int,
    order: SortOrder,
    sort: Optional[Union[str, OrderBy]] = None,
    fields: Optional[str] = None,
    id_field: str = "id",
) -> FindManyQuery:
    """Combines a where clause with pagination, sort and projection."""
    query = FindManyQuery(
        where=where or {},
        skip=skip,
        take=limit,
        order_by=parse_sort(sort, order, id_field),
        select=get_nested_fields(fields, id_field),
    )
    log.info(f"Built find-many query: {query!r}")
    return query
