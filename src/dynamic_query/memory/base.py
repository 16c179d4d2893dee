import asyncio
import copy
import uuid
from enum import Enum
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dynamic_query.base.exceptions import KeyAlreadyExistsException
from dynamic_query.base.interfaces import Repository
from dynamic_query.base.query import FindManyQuery, OrderBy
from dynamic_query.base.schema import FieldDescriptor, FieldKind, SchemaRegistry
from dynamic_query.base.utils import get_nested_value, prepare_for_storage

SCALAR_FILTER_KEYS = frozenset(
    {
        "equals",
        "not",
        "gt",
        "gte",
        "lt",
        "lte",
        "in",
        "notIn",
        "contains",
        "startsWith",
        "endsWith",
        "mode",
        "has",
        "hasSome",
        "hasEvery",
        "isEmpty",
    }
)
AGGREGATE_KEYS = ("_count", "_min", "_max", "_sum", "_avg")


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _is_filter_dict(condition: Any) -> bool:
    return (
        isinstance(condition, dict)
        and bool(condition)
        and set(condition).issubset(SCALAR_FILTER_KEYS)
    )


def _equals(value: Any, operand: Any, insensitive: bool = False) -> bool:
    value = _normalize(value)
    operand = _normalize(operand)
    if insensitive and isinstance(value, str) and isinstance(operand, str):
        return value.lower() == operand.lower()
    return value == operand


def _compare(value: Any, operand: Any, op: str, field: str) -> bool:
    value = _normalize(value)
    operand = _normalize(operand)
    if value is None or operand is None:
        return False
    try:
        if op == "gt":
            return value > operand
        if op == "gte":
            return value >= operand
        if op == "lt":
            return value < operand
        return value <= operand
    except TypeError as e:
        raise ValueError(
            f"Cannot apply '{op}' to field '{field}': {value!r} and {operand!r} are not comparable"
        ) from e


def _flatten_order_by(order_by: Optional[OrderBy], prefix: str = "") -> List[Tuple[str, str]]:
    """Turns a (possibly nested) orderBy spec into (dotted path, direction) pairs."""
    if not order_by:
        return []
    specs = order_by if isinstance(order_by, list) else [order_by]
    pairs: List[Tuple[str, str]] = []
    for spec in specs:
        for key, direction in spec.items():
            path = f"{prefix}{key}"
            if isinstance(direction, dict):
                pairs.extend(_flatten_order_by(direction, f"{path}."))
            else:
                pairs.append((path, str(direction).lower()))
    return pairs


class MemoryRepository(Repository):
    """
    In-memory repository keeping plain dict records, with related and
    embedded objects nested inside each record.

    Where clauses are evaluated with the schema at hand so that relation and
    composite wrappers (``some``, ``is``, direct nesting) resolve the same way
    the builder produced them.
    """

    def __init__(
        self,
        entity_name: str,
        schema: SchemaRegistry,
        id_field: str = "id",
    ):
        if not schema.has_model(entity_name):
            raise ValueError(f"Model '{entity_name}' is not defined in the schema")
        self._entity_name = entity_name
        self._schema = schema
        self._id_field = id_field
        self._store: Dict[Any, Dict[str, Any]] = {}

    @property
    def entity_name(self) -> str:
        return self._entity_name

    def id_generator(self) -> str:
        return str(uuid.uuid4())

    async def store(
        self, record: Any, logger: LoggerAdapter, return_value: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        Store a record (dict, dataclass or pydantic model). A missing id is
        generated.

        Raises:
            KeyAlreadyExistsException: If a record with the same id exists.
        """
        await asyncio.sleep(0)
        data = prepare_for_storage(record)
        if not isinstance(data, dict):
            raise ValueError(
                f"Cannot store {type(record).__name__} in {self._entity_name} repository"
            )
        if data.get(self._id_field) is None:
            data[self._id_field] = self.id_generator()
        record_id = data[self._id_field]
        if record_id in self._store:
            raise KeyAlreadyExistsException(
                f"{self._entity_name} with ID {record_id} already exists"
            )
        self._store[record_id] = copy.deepcopy(data)
        logger.debug(f"Stored {self._entity_name} {record_id}")
        return copy.deepcopy(data) if return_value else None

    # --- Reads ---
    async def find_many(
        self, query: FindManyQuery, logger: LoggerAdapter
    ) -> List[Dict[str, Any]]:
        logger.debug(f"Finding many {self._entity_name} with {query!r}")
        await asyncio.sleep(0)
        records = self._filter(query.where)
        records = self._sort(records, query.order_by)
        if query.skip > 0:
            records = records[query.skip :]
        if query.take is not None and query.take >= 0:
            records = records[: query.take]
        return [self._project(r, query.select) for r in records]

    async def find_first(
        self,
        where: Dict[str, Any],
        logger: LoggerAdapter,
        select: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        logger.debug(f"Finding first {self._entity_name} where {where!r}")
        await asyncio.sleep(0)
        for record in self._store.values():
            if self._matches(record, where, self._entity_name):
                return self._project(copy.deepcopy(record), select)
        return None

    async def count(
        self, logger: LoggerAdapter, where: Optional[Dict[str, Any]] = None
    ) -> int:
        await asyncio.sleep(0)
        total = len(self._filter(where))
        logger.debug(f"Counted {total} {self._entity_name} where {where!r}")
        return total

    async def aggregate(
        self, args: Dict[str, Any], logger: LoggerAdapter
    ) -> Dict[str, Any]:
        logger.debug(f"Aggregating {self._entity_name} with {args!r}")
        await asyncio.sleep(0)
        unknown = set(args) - set(AGGREGATE_KEYS) - {"where"}
        if unknown:
            raise ValueError(f"Unsupported aggregate arguments: {sorted(unknown)}")
        records = self._filter(args.get("where"))
        result: Dict[str, Any] = {}

        count_spec = args.get("_count")
        if count_spec is True:
            result["_count"] = len(records)
        elif isinstance(count_spec, dict):
            counts: Dict[str, int] = {}
            for field_name, enabled in count_spec.items():
                if not enabled:
                    continue
                if field_name == "_all":
                    counts["_all"] = len(records)
                else:
                    counts[field_name] = sum(
                        1 for r in records if get_nested_value(r, field_name) is not None
                    )
            result["_count"] = counts

        for key in ("_min", "_max", "_sum", "_avg"):
            spec = args.get(key)
            if not spec:
                continue
            section: Dict[str, Any] = {}
            for field_name, enabled in spec.items():
                if not enabled:
                    continue
                values = [
                    _normalize(v)
                    for v in (get_nested_value(r, field_name) for r in records)
                    if v is not None
                ]
                section[field_name] = self._aggregate_values(key, values)
            result[key] = section
        return result

    @staticmethod
    def _aggregate_values(key: str, values: List[Any]) -> Any:
        if not values:
            return None
        if key == "_min":
            return min(values)
        if key == "_max":
            return max(values)
        total = sum(values)
        if key == "_sum":
            return total
        return total / len(values)

    # --- Where evaluation ---
    def _filter(self, where: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not where:
            return [copy.deepcopy(r) for r in self._store.values()]
        return [
            copy.deepcopy(r)
            for r in self._store.values()
            if self._matches(r, where, self._entity_name)
        ]

    def _matches(self, record: Any, where: Dict[str, Any], type_name: str) -> bool:
        if not isinstance(record, Mapping):
            return False
        for key, condition in where.items():
            if key == "AND":
                subs = condition if isinstance(condition, list) else [condition]
                if not all(self._matches(record, s, type_name) for s in subs):
                    return False
            elif key == "OR":
                subs = condition if isinstance(condition, list) else [condition]
                if not any(self._matches(record, s, type_name) for s in subs):
                    return False
            elif key == "NOT":
                subs = condition if isinstance(condition, list) else [condition]
                if any(self._matches(record, s, type_name) for s in subs):
                    return False
            else:
                descriptor = self._schema.get_field_meta(type_name, key)
                value = record.get(key)
                if descriptor is not None and descriptor.kind is FieldKind.OBJECT:
                    if not self._match_object(value, condition, descriptor):
                        return False
                elif not self._match_scalar(value, condition, key):
                    return False
        return True

    def _match_object(
        self, value: Any, condition: Any, descriptor: FieldDescriptor
    ) -> bool:
        if condition is None:
            return not value
        if not descriptor.is_list:
            return self._match_single(value, condition, descriptor.related_type)

        items = value or []
        for quantifier, sub in condition.items():
            if quantifier == "some":
                ok = any(self._match_single(i, sub, descriptor.related_type) for i in items)
            elif quantifier == "every":
                ok = all(self._match_single(i, sub, descriptor.related_type) for i in items)
            elif quantifier == "none":
                ok = not any(self._match_single(i, sub, descriptor.related_type) for i in items)
            elif quantifier == "isEmpty":
                ok = (len(items) == 0) == bool(sub)
            else:
                raise ValueError(
                    f"Unsupported list filter '{quantifier}' on field '{descriptor.name}'"
                )
            if not ok:
                return False
        return True

    def _match_single(self, value: Any, condition: Dict[str, Any], type_name: str) -> bool:
        """Matches one related/embedded object, with or without is/isNot."""
        if isinstance(condition, dict) and condition and set(condition) <= {"is", "isNot"}:
            for key, sub in condition.items():
                if sub is None:
                    hit = value is None
                else:
                    hit = value is not None and self._matches(value, sub, type_name)
                if (key == "is") != hit:
                    return False
            return True
        return value is not None and self._matches(value, condition, type_name)

    def _match_scalar(self, value: Any, condition: Any, field: str) -> bool:
        if not _is_filter_dict(condition):
            return _equals(value, condition)
        insensitive = condition.get("mode") == "insensitive"
        for op, operand in condition.items():
            if op == "mode":
                continue
            if not self._check_operator(op, value, operand, insensitive, field):
                return False
        return True

    def _check_operator(
        self, operator: str, value: Any, operand: Any, insensitive: bool, field: str
    ) -> bool:
        if operator == "equals":
            return _equals(value, operand, insensitive)
        elif operator == "not":
            if _is_filter_dict(operand):
                return not self._match_scalar(value, operand, field)
            return not _equals(value, operand, insensitive)
        elif operator in ("gt", "gte", "lt", "lte"):
            return _compare(value, operand, operator, field)
        elif operator == "in":
            return any(_equals(value, o, insensitive) for o in operand)
        elif operator == "notIn":
            return not any(_equals(value, o, insensitive) for o in operand)
        elif operator in ("contains", "startsWith", "endsWith"):
            value = _normalize(value)
            if not isinstance(value, str) or not isinstance(operand, str):
                return False
            if insensitive:
                value, operand = value.lower(), operand.lower()
            if operator == "contains":
                return operand in value
            if operator == "startsWith":
                return value.startswith(operand)
            return value.endswith(operand)
        elif operator == "has":
            return isinstance(value, list) and any(_equals(v, operand) for v in value)
        elif operator == "hasSome":
            return isinstance(value, list) and any(
                _equals(v, o) for o in operand for v in value
            )
        elif operator == "hasEvery":
            return isinstance(value, list) and all(
                any(_equals(v, o) for v in value) for o in operand
            )
        elif operator == "isEmpty":
            return isinstance(value, list) and (len(value) == 0) == bool(operand)
        else:
            raise ValueError(f"Unsupported operator: {operator}")

    # --- Ordering and projection ---
    def _sort(
        self, records: List[Dict[str, Any]], order_by: Optional[OrderBy]
    ) -> List[Dict[str, Any]]:
        ordered = list(records)
        # Stable sorts applied from the least significant key up.
        for path, direction in reversed(_flatten_order_by(order_by)):
            ordered.sort(
                key=lambda r, p=path: self._sort_key(get_nested_value(r, p)),
                reverse=direction == "desc",
            )
        return ordered

    @staticmethod
    def _sort_key(value: Any) -> Tuple[bool, Any]:
        value = _normalize(value)
        return (value is not None, value if value is not None else 0)

    def _project(
        self, record: Any, select: Optional[Dict[str, Any]]
    ) -> Any:
        if not select or not isinstance(record, Mapping):
            return record
        projected: Dict[str, Any] = {}
        for key, spec in select.items():
            if key not in record or not spec:
                continue
            value = record[key]
            if isinstance(spec, dict) and "select" in spec:
                if isinstance(value, list):
                    value = [self._project(item, spec["select"]) for item in value]
                else:
                    value = self._project(value, spec["select"])
            projected[key] = value
        return projected
