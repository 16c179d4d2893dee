import logging
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert Pydantic models and dataclasses to plain dicts and lists.

    Records kept by the memory store are plain dicts so that the same where
    clauses and selections apply whatever the caller handed in. Datetimes,
    decimals and enums are left as they are so comparisons keep their types.
    """
    if data is None:
        return None

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        return prepare_for_storage(data.model_dump(by_alias=True))

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, (list, tuple, set)):
        return [prepare_for_storage(item) for item in data]

    return data


def get_nested_value(record: Any, path: str) -> Any:
    """
    Get a value from a nested field using dot notation. Returns None when
    any segment is missing or a non-dict is reached.
    """
    current = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def group_data_by_field(
    records: Iterable[Mapping[str, Any]], group_by: str
) -> Dict[str, List[Mapping[str, Any]]]:
    """
    Groups records by a (possibly nested) field, keeping first-seen order.

    Keys are stringified the way they would appear in a JSON object; records
    with no value land under "unassigned".
    """
    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        value: Optional[Any] = get_nested_value(record, group_by)
        key = UNASSIGNED if value is None else _group_key(value)
        grouped.setdefault(key, []).append(record)
    logger.debug(f"Grouped records by '{group_by}' into {len(grouped)} group(s)")
    return grouped


def _group_key(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
