# src/dynamic_query/base/schema.py
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from inspect import isclass
from types import MappingProxyType
from typing import (
    Any,
    ClassVar,
    Dict,
    ForwardRef,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .exceptions import SchemaDefinitionError

log = logging.getLogger(__name__)


# --- Field Kinds and Scalar Types ---
class FieldKind(Enum):
    """Kinds of fields a schema document can describe."""

    SCALAR = "scalar"
    ENUM = "enum"
    OBJECT = "object"


STRING = "String"
INT = "Int"
BIGINT = "BigInt"
FLOAT = "Float"
DECIMAL = "Decimal"
BOOLEAN = "Boolean"
DATETIME = "DateTime"
JSON = "Json"

SCALAR_TYPES = frozenset({STRING, INT, BIGINT, FLOAT, DECIMAL, BOOLEAN, DATETIME, JSON})
INTEGER_TYPES = frozenset({INT, BIGINT})
FLOAT_TYPES = frozenset({FLOAT, DECIMAL})
COMPARABLE_TYPES = INTEGER_TYPES | FLOAT_TYPES | {DATETIME}


def _is_none_type(t: Optional[Type]) -> bool:
    return t is type(None)


# --- Field Descriptor ---
@dataclass(frozen=True)
class FieldDescriptor:
    """Metadata for one field of an entity or composite type."""

    name: str
    kind: FieldKind
    type: str
    is_list: bool = False
    is_relation: bool = False

    def __post_init__(self):
        if self.kind is FieldKind.SCALAR and self.type not in SCALAR_TYPES:
            raise SchemaDefinitionError(
                f"Field '{self.name}' declares unknown scalar type '{self.type}'"
            )
        if self.is_relation and self.kind is not FieldKind.OBJECT:
            raise SchemaDefinitionError(
                f"Field '{self.name}' is marked as relation but is of kind '{self.kind.value}'"
            )

    @property
    def related_type(self) -> Optional[str]:
        return self.type if self.kind is FieldKind.OBJECT else None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (FieldKind.SCALAR, FieldKind.ENUM)

    @property
    def is_searchable(self) -> bool:
        """String scalars that are not lists, and enums, can be text-searched."""
        if self.kind is FieldKind.ENUM:
            return True
        return self.kind is FieldKind.SCALAR and self.type == STRING and not self.is_list


# --- Schema Registry ---
class SchemaRegistry:
    """
    Read-only lookup of field metadata by entity or composite type name.

    Entity types (models) and composite types share one name space; models are
    searched first. The registry is built once and never mutated, so it can be
    shared between concurrent callers.
    """

    def __init__(
        self,
        models: Mapping[str, Iterable[FieldDescriptor]],
        types: Optional[Mapping[str, Iterable[FieldDescriptor]]] = None,
    ):
        self._models = self._freeze(models, "model")
        self._types = self._freeze(types or {}, "type")
        overlap = set(self._models) & set(self._types)
        if overlap:
            raise SchemaDefinitionError(
                f"Names defined both as model and composite type: {sorted(overlap)}"
            )
        self._check_references()
        log.info(
            f"Schema registry ready: {len(self._models)} models, {len(self._types)} composite types"
        )

    @staticmethod
    def _freeze(
        definitions: Mapping[str, Iterable[FieldDescriptor]], label: str
    ) -> Mapping[str, Mapping[str, FieldDescriptor]]:
        frozen: Dict[str, Mapping[str, FieldDescriptor]] = {}
        for type_name, fields in definitions.items():
            by_name: Dict[str, FieldDescriptor] = {}
            for descriptor in fields:
                if descriptor.name in by_name:
                    raise SchemaDefinitionError(
                        f"Duplicate field '{descriptor.name}' in {label} '{type_name}'"
                    )
                by_name[descriptor.name] = descriptor
            frozen[type_name] = MappingProxyType(by_name)
        return MappingProxyType(frozen)

    def _check_references(self) -> None:
        for owner, fields in list(self._models.items()) + list(self._types.items()):
            for descriptor in fields.values():
                if descriptor.kind is not FieldKind.OBJECT:
                    continue
                if descriptor.is_relation and descriptor.type not in self._models:
                    raise SchemaDefinitionError(
                        f"Relation '{owner}.{descriptor.name}' points to unknown model '{descriptor.type}'"
                    )
                if not descriptor.is_relation and descriptor.type not in self._types:
                    raise SchemaDefinitionError(
                        f"Composite '{owner}.{descriptor.name}' points to unknown type '{descriptor.type}'"
                    )

    # --- Lookups ---
    @property
    def model_names(self) -> List[str]:
        return list(self._models)

    @property
    def type_names(self) -> List[str]:
        return list(self._types)

    def has_model(self, name: str) -> bool:
        return name in self._models

    def has_type(self, name: str) -> bool:
        return name in self._types

    def get_fields(self, type_name: str) -> Mapping[str, FieldDescriptor]:
        """Returns the fields of a model or composite type, or an empty mapping."""
        if type_name in self._models:
            return self._models[type_name]
        return self._types.get(type_name, MappingProxyType({}))

    def get_field_meta(self, type_name: str, field_name: str) -> Optional[FieldDescriptor]:
        """
        Looks up one field on a model, falling back to composite types.

        Returns None when either the type or the field is unknown; callers
        decide whether that is fatal.
        """
        return self.get_fields(type_name).get(field_name)

    def __repr__(self) -> str:
        return f"SchemaRegistry(models={self.model_names!r}, types={self.type_names!r})"

    # --- Loaders ---
    @classmethod
    def from_dmmf(cls, document: Mapping[str, Any]) -> "SchemaRegistry":
        """
        Builds a registry from a Prisma DMMF-shaped document.

        Accepts either the full document or just its ``datamodel`` section.
        Only ``models`` and ``types`` are read; each field needs ``name``,
        ``kind``, ``type`` and optionally ``isList`` and ``relationName``.
        """
        datamodel = document.get("datamodel", document)
        models = {
            entry["name"]: [cls._field_from_dmmf(entry["name"], f) for f in entry.get("fields", [])]
            for entry in datamodel.get("models", [])
        }
        types = {
            entry["name"]: [cls._field_from_dmmf(entry["name"], f) for f in entry.get("fields", [])]
            for entry in datamodel.get("types", [])
        }
        log.debug(f"Loaded DMMF document: models={list(models)}, types={list(types)}")
        return cls(models, types)

    @classmethod
    def from_dmmf_file(cls, path: str) -> "SchemaRegistry":
        log.info(f"Loading schema document from {path}")
        with open(path, "r", encoding="utf-8") as handle:
            return cls.from_dmmf(json.load(handle))

    @staticmethod
    def _field_from_dmmf(owner: str, raw: Mapping[str, Any]) -> FieldDescriptor:
        try:
            kind = FieldKind(raw["kind"])
            name = raw["name"]
            type_name = raw["type"]
        except (KeyError, ValueError) as e:
            raise SchemaDefinitionError(f"Malformed field entry in '{owner}': {raw!r}") from e
        return FieldDescriptor(
            name=name,
            kind=kind,
            type=type_name,
            is_list=bool(raw.get("isList", False)),
            is_relation=kind is FieldKind.OBJECT and bool(raw.get("relationName")),
        )

    @classmethod
    def from_models(
        cls, models: Sequence[Type], types: Sequence[Type] = ()
    ) -> "SchemaRegistry":
        """
        Builds a registry by introspecting the type hints of model classes.

        Classes in ``models`` become entity types and fields pointing at them
        become relations. Classes in ``types`` become composite types and fields
        pointing at them are embedded objects.
        """
        model_classes = {m: m.__name__ for m in models}
        type_classes = {t: t.__name__ for t in types}
        converter = _HintConverter(model_classes, type_classes)
        return cls(
            {name: converter.describe(m) for m, name in model_classes.items()},
            {name: converter.describe(t) for t, name in type_classes.items()},
        )


# --- Type Hint Introspection ---
_PY_SCALARS: Dict[Type, str] = {
    str: STRING,
    bool: BOOLEAN,
    int: INT,
    float: FLOAT,
    Decimal: DECIMAL,
    datetime: DATETIME,
    date: DATETIME,
    dict: JSON,
}


class _HintConverter:
    """Turns class annotations into FieldDescriptors."""

    def __init__(self, model_classes: Dict[Type, str], type_classes: Dict[Type, str]):
        self._models = model_classes
        self._types = type_classes
        self._by_name = {name: c for c, name in {**model_classes, **type_classes}.items()}

    def _hints(self, cls: Type) -> Dict[str, Any]:
        model_fields = getattr(cls, "model_fields", None)
        if isinstance(model_fields, Mapping):
            return {name: info.annotation for name, info in model_fields.items()}

        module_name = getattr(cls, "__module__", None)
        global_ns = None
        if module_name:
            try:
                global_ns = __import__(module_name, fromlist=["__dict__"]).__dict__
            except ImportError:
                log.warning(f"Could not import module {module_name} for hints.")
        try:
            hints = get_type_hints(cls, globalns=global_ns)
        except NameError as e:
            raise SchemaDefinitionError(
                f"Unresolved forward ref in {cls.__name__}? Error: {e}"
            ) from e
        return {
            name: hint
            for name, hint in hints.items()
            if not name.startswith("_") and get_origin(hint) is not ClassVar
        }

    def describe(self, cls: Type) -> List[FieldDescriptor]:
        log.debug(f"Introspecting fields for {cls.__name__}")
        return [self._describe_field(cls, name, hint) for name, hint in self._hints(cls).items()]

    def _describe_field(self, owner: Type, name: str, hint: Any) -> FieldDescriptor:
        hint, is_list = self._unwrap(hint)
        # Unresolved forward references are matched by class name.
        if isinstance(hint, ForwardRef):
            hint = hint.__forward_arg__
        if isinstance(hint, str):
            hint = self._by_name.get(hint, hint)
        if hint in self._models:
            return FieldDescriptor(name, FieldKind.OBJECT, self._models[hint], is_list, True)
        if hint in self._types:
            return FieldDescriptor(name, FieldKind.OBJECT, self._types[hint], is_list, False)
        if isclass(hint) and issubclass(hint, Enum):
            return FieldDescriptor(name, FieldKind.ENUM, hint.__name__, is_list)
        if hint is Any:
            return FieldDescriptor(name, FieldKind.SCALAR, JSON, is_list)
        origin = get_origin(hint) or hint
        if origin in (dict, Dict, Mapping):
            return FieldDescriptor(name, FieldKind.SCALAR, JSON, is_list)
        if isclass(hint) and hint in _PY_SCALARS:
            return FieldDescriptor(name, FieldKind.SCALAR, _PY_SCALARS[hint], is_list)
        raise SchemaDefinitionError(
            f"Cannot describe field '{owner.__name__}.{name}' with type {hint!r}"
        )

    @staticmethod
    def _unwrap(hint: Any) -> Tuple[Any, bool]:
        """Strips Optional and one level of List/Set/Tuple."""
        is_list = False
        for _ in range(3):
            origin = get_origin(hint)
            args = get_args(hint)
            if origin is Union and any(_is_none_type(a) for a in args):
                non_none = [a for a in args if not _is_none_type(a)]
                if len(non_none) == 1:
                    hint = non_none[0]
                    continue
            if not is_list and origin in (list, List, set, Set, tuple, Tuple):
                is_list = True
                hint = args[0] if args else Any
                continue
            break
        return hint, is_list
