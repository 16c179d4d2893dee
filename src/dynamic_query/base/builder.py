# src/dynamic_query/base/builder.py
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import QueryBuilderSettings
from .conditions import (
    And,
    Condition,
    FieldPredicate,
    Is,
    Negation,
    Or,
    Relation,
    Some,
    to_where,
)
from .exceptions import (
    InvalidSortError,
    NoValidSearchFieldError,
    NotScalarError,
    NotTraversableError,
    QueryBuildError,
    UnknownFieldError,
    UnknownModelError,
)
from .parser import FilterOperator, ParsedFilter, group_filters, split_filter_param
from .query import SORT_ORDERS, FindManyQuery, OrderBy, build_find_many_query, parse_sort
from .schema import COMPARABLE_TYPES, STRING, FieldDescriptor, FieldKind, SchemaRegistry
from .values import parse_value

log = logging.getLogger(__name__)

_STRING_PATTERN_OPS = (
    FilterOperator.STARTS_WITH,
    FilterOperator.ENDS_WITH,
    FilterOperator.CONTAINS,
)
_COMPARISON_OPS = (
    FilterOperator.GT,
    FilterOperator.GTE,
    FilterOperator.LT,
    FilterOperator.LTE,
)


class QueryBuilder:
    """
    Translates query-string input (filter DSL, search term, sort, fields) into
    store-native query specs, validating every field path against a schema.

    The builder holds no per-request state; one instance can serve any number
    of concurrent requests.
    """

    def __init__(
        self, schema: SchemaRegistry, settings: Optional[QueryBuilderSettings] = None
    ):
        self.schema = schema
        self.settings = settings or QueryBuilderSettings()
        log.info(f"Initializing QueryBuilder for {schema!r} with {self.settings!r}")

    def _require_model(self, model: str) -> None:
        if not self.schema.has_model(model):
            raise UnknownModelError(f'Model "{model}" not found in schema', value=model)

    # --- Nesting ---
    @staticmethod
    def _wrap(descriptor: FieldDescriptor, nested: Condition) -> Condition:
        """Wraps a nested condition according to the relation/composite rules."""
        if descriptor.is_list:
            return Some(descriptor.name, nested, composite=not descriptor.is_relation)
        if descriptor.is_relation:
            return Relation(descriptor.name, nested)
        return Is(descriptor.name, nested)

    # --- Condition Builder ---
    def build_condition(
        self, model: str, path: Sequence[str], parsed: ParsedFilter
    ) -> Optional[Condition]:
        """
        Walks ``path`` against the schema and builds the condition for one
        parsed filter. Returns None for an empty path.
        """
        if not path:
            return None

        name = path[0]
        descriptor = self.schema.get_field_meta(model, name)
        log.debug(f"  Resolving '{name}' on '{model}': {descriptor!r}")
        if descriptor is None:
            raise UnknownFieldError(
                f'Field "{name}" not found in model "{model}"', field=name
            )

        if len(path) == 1:
            if not descriptor.is_terminal:
                raise NotScalarError(
                    f'Field "{name}" is not a scalar or enum type', field=name
                )
            return self._terminal_condition(descriptor, parsed)

        if descriptor.kind is not FieldKind.OBJECT:
            raise NotTraversableError(
                f'Field "{name}" cannot be traversed (not an object type)', field=name
            )
        nested = self.build_condition(descriptor.related_type, path[1:], parsed)
        if nested is None:
            return None
        return self._wrap(descriptor, nested)

    def _terminal_condition(
        self, descriptor: FieldDescriptor, parsed: ParsedFilter
    ) -> Condition:
        name = descriptor.name
        strict = self.settings.strict_booleans

        if parsed.is_null:
            return FieldPredicate(name, "equals", None)

        if parsed.is_range:
            start = parse_value(descriptor, parsed.range_start, strict)
            end = parse_value(descriptor, parsed.range_end, strict)
            return And(
                FieldPredicate(name, "gte", start),
                FieldPredicate(name, "lte", end),
            )

        value = parse_value(descriptor, parsed.value, strict)
        op = parsed.operator

        if descriptor.is_list:
            if op is FilterOperator.NOT:
                return Negation(FieldPredicate(name, "has", value))
            if op is not FilterOperator.CONTAINS:
                log.debug(f"  Operator '{op.value}' on list field '{name}' falls back to 'has'")
            return FieldPredicate(name, "has", value)

        if descriptor.kind is FieldKind.SCALAR and descriptor.type == STRING:
            if op in _STRING_PATTERN_OPS:
                return FieldPredicate(name, op.value, value, insensitive=True)
            if op is FilterOperator.NOT:
                return FieldPredicate(name, "not", value)
            return FieldPredicate(name, "equals", value)

        if descriptor.kind is FieldKind.SCALAR and descriptor.type in COMPARABLE_TYPES:
            if op in _COMPARISON_OPS:
                return FieldPredicate(name, op.value, value)
            if op is FilterOperator.NOT:
                return FieldPredicate(name, "not", value)
            return FieldPredicate(name, "equals", value)

        if op is FilterOperator.NOT:
            return FieldPredicate(name, "not", value)
        return FieldPredicate(name, "equals", value)

    # --- Filters ---
    def build_filter_expressions(
        self, model: str, filter_param: Optional[str]
    ) -> List[Condition]:
        """
        Parses the ``filter`` parameter and builds one condition per field path.

        Items on the same path are combined with OR. Any failure aborts the
        whole call; the error keeps its class and names the field and
        expression that caused it.
        """
        items = split_filter_param(filter_param)
        if not items:
            return []
        self._require_model(model)

        groups = group_filters(items)
        conditions: List[Condition] = []
        for field_path, parsed_filters in groups.items():
            expressions = ", ".join(p.expression for p in parsed_filters)
            try:
                built = [
                    c
                    for c in (self.build_condition(model, p.path, p) for p in parsed_filters)
                    if c is not None
                ]
            except QueryBuildError as e:
                log.warning(f"Filter on '{field_path}' rejected: {e}")
                raise e.contextualize(
                    f'Error building filter for field "{field_path}" ({expressions}): {e}',
                    field=field_path,
                    expression=expressions,
                ) from e
            if not built:
                continue
            conditions.append(built[0] if len(built) == 1 else Or(*built))

        log.info(f"Built {len(conditions)} filter condition(s) for {model}")
        return conditions

    def build_filter_conditions(
        self, model: str, filter_param: Optional[str]
    ) -> List[Dict[str, Any]]:
        """Same as build_filter_expressions, lowered to the store shape."""
        return [to_where(c) for c in self.build_filter_expressions(model, filter_param)]

    # --- Search ---
    def _is_valid_search_path(self, model: str, path: Sequence[str]) -> bool:
        if not path:
            return False
        descriptor = self.schema.get_field_meta(model, path[0])
        if descriptor is None:
            return False
        if len(path) == 1:
            return descriptor.is_searchable
        if descriptor.kind is FieldKind.OBJECT:
            return self._is_valid_search_path(descriptor.related_type, path[1:])
        return False

    def _search_condition(
        self, model: str, path: Sequence[str], term: str
    ) -> Optional[Condition]:
        if not path:
            return None
        descriptor = self.schema.get_field_meta(model, path[0])
        if descriptor is None:
            return None
        if len(path) == 1:
            if descriptor.is_searchable:
                return FieldPredicate(descriptor.name, "contains", term, insensitive=True)
            return None
        if descriptor.kind is not FieldKind.OBJECT:
            return None
        nested = self._search_condition(descriptor.related_type, path[1:], term)
        if nested is None:
            return None
        return self._wrap(descriptor, nested)

    def build_search_expressions(
        self, model: str, term: Optional[str], fields: Optional[Sequence[str]]
    ) -> List[Condition]:
        """
        Builds case-insensitive ``contains`` conditions for each whitelisted
        field. The caller ORs them together.
        """
        if not term or not fields:
            return []
        self._require_model(model)

        invalid = [f for f in fields if not self._is_valid_search_path(model, f.split("."))]
        if invalid:
            raise NoValidSearchFieldError(
                f'Invalid fields found for model "{model}": {", ".join(invalid)}. '
                f"Fields must be scalar String or enum types.",
                value=term,
                invalid_fields=invalid,
            )

        conditions = [
            c
            for c in (self._search_condition(model, f.split("."), term) for f in fields)
            if c is not None
        ]
        if not conditions:
            raise NoValidSearchFieldError(
                f'No valid scalar String or enum fields found for model "{model}" '
                f"among provided fields: {', '.join(fields)}",
                value=term,
            )
        log.debug(f"Built {len(conditions)} search condition(s) for '{term}' on {model}")
        return conditions

    def build_search_conditions(
        self, model: str, term: Optional[str], fields: Optional[Sequence[str]]
    ) -> List[Dict[str, Any]]:
        return [to_where(c) for c in self.build_search_expressions(model, term, fields)]

    # --- Where clause ---
    def build_where(
        self,
        model: str,
        filter_param: Optional[str] = None,
        search_term: Optional[str] = None,
        search_fields: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Search conditions go under OR, filter conditions under AND."""
        self._require_model(model)
        where: Dict[str, Any] = {}
        search = self.build_search_conditions(model, search_term, search_fields)
        if search:
            where["OR"] = search
        filters = self.build_filter_conditions(model, filter_param)
        if filters:
            where["AND"] = filters
        log.debug(f"Where clause for {model}: {where!r}")
        return where

    # --- Sort validation ---
    def validate_order_by(self, model: str, order_by: OrderBy) -> None:
        """
        Checks every key of an orderBy spec against the schema.

        Terminal keys need a direction, relation and composite keys need a
        nested spec.
        """
        specs = order_by if isinstance(order_by, list) else [order_by]
        for spec in specs:
            if not isinstance(spec, dict):
                raise InvalidSortError(f"Sort entry must be an object, got {spec!r}", value=spec)
            for key, direction in spec.items():
                descriptor = self.schema.get_field_meta(model, key)
                if descriptor is None:
                    raise UnknownFieldError(
                        f'Sort field "{key}" not found in model "{model}"', field=key
                    )
                if isinstance(direction, dict):
                    if descriptor.kind is not FieldKind.OBJECT:
                        raise NotTraversableError(
                            f'Sort field "{key}" cannot be traversed (not an object type)',
                            field=key,
                        )
                    self.validate_order_by(descriptor.related_type, direction)
                    continue
                if not descriptor.is_terminal:
                    raise NotScalarError(
                        f'Sort field "{key}" is not a scalar or enum type', field=key
                    )
                if direction not in SORT_ORDERS:
                    raise InvalidSortError(
                        f'Invalid direction {direction!r} for sort field "{key}"',
                        field=key,
                        value=direction,
                    )

    def build_find_many_query(
        self,
        model: str,
        where: Optional[Dict[str, Any]],
        skip: int,
        limit: int,
        order: Optional[str] = None,
        sort: Optional[Union[str, OrderBy]] = None,
        fields: Optional[str] = None,
    ) -> FindManyQuery:
        """Query assembly with the configured id field and optional sort checks."""
        self._require_model(model)
        order = order or self.settings.default_order
        if self.settings.validate_sort:
            self.validate_order_by(model, parse_sort(sort, order, self.settings.id_field))
        return build_find_many_query(
            where, skip, limit, order, sort, fields, id_field=self.settings.id_field
        )
