# tests/base/test_utils.py

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from dynamic_query.base.utils import get_nested_value, group_data_by_field, prepare_for_storage


class Kind(str, Enum):
    A = "a"
    B = "b"


@dataclass
class Tag:
    name: str
    kinds: List[str] = field(default_factory=list)


class Profile(BaseModel):
    display_name: str = Field(alias="displayName")
    tags: List[Tag] = Field(default_factory=list)


def test_prepare_for_storage_pydantic_uses_aliases():
    profile = Profile(displayName="Ada", tags=[Tag("x", ["k"])])
    assert prepare_for_storage(profile) == {
        "displayName": "Ada",
        "tags": [{"name": "x", "kinds": ["k"]}],
    }


def test_prepare_for_storage_containers():
    data = {"a": (1, 2), "b": [Tag("t")], "c": None}
    assert prepare_for_storage(data) == {"a": [1, 2], "b": [{"name": "t", "kinds": []}], "c": None}


def test_prepare_for_storage_leaves_scalars():
    assert prepare_for_storage(Kind.A) is Kind.A
    assert prepare_for_storage(None) is None
    assert prepare_for_storage(5) == 5


def test_get_nested_value():
    record = {"person": {"personalInfo": {"firstName": "Ada"}}, "tags": ["x"]}
    assert get_nested_value(record, "person.personalInfo.firstName") == "Ada"
    assert get_nested_value(record, "person.missing") is None
    assert get_nested_value(record, "tags.0") is None
    assert get_nested_value({"person": None}, "person.id") is None


def test_group_data_by_field():
    records = [
        {"id": 1, "role": "admin"},
        {"id": 2, "role": "viewer"},
        {"id": 3, "role": "admin"},
        {"id": 4},
    ]
    grouped = group_data_by_field(records, "role")
    assert list(grouped) == ["admin", "viewer", "unassigned"]
    assert [r["id"] for r in grouped["admin"]] == [1, 3]
    assert [r["id"] for r in grouped["unassigned"]] == [4]


def test_group_by_nested_field_and_key_formatting():
    records = [
        {"id": 1, "organization": {"isActive": True}, "kind": Kind.A, "count": 3},
        {"id": 2, "organization": {"isActive": False}, "kind": Kind.B, "count": 3},
        {"id": 3, "organization": None, "kind": None, "count": None},
    ]
    assert list(group_data_by_field(records, "organization.isActive")) == ["true", "false", "unassigned"]
    assert list(group_data_by_field(records, "kind")) == ["a", "b", "unassigned"]
    assert list(group_data_by_field(records, "count")) == ["3", "unassigned"]


def test_group_empty_records():
    assert group_data_by_field([], "role") == {}
