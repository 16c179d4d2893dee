# tests/base/query/test_search_conditions.py

import pytest

from dynamic_query.base.builder import QueryBuilder
from dynamic_query.base.exceptions import NoValidSearchFieldError, UnknownModelError


def test_search_on_composite_field(builder: QueryBuilder):
    assert builder.build_search_conditions("Person", "jo", ["personalInfo.firstName"]) == [
        {"personalInfo": {"is": {"firstName": {"contains": "jo", "mode": "insensitive"}}}}
    ]


def test_search_on_several_fields(builder: QueryBuilder):
    conditions = builder.build_search_conditions(
        "User", "ada", ["email", "userName", "person.personalInfo.lastName", "role"]
    )
    assert conditions == [
        {"email": {"contains": "ada", "mode": "insensitive"}},
        {"userName": {"contains": "ada", "mode": "insensitive"}},
        {"person": {"personalInfo": {"is": {"lastName": {"contains": "ada", "mode": "insensitive"}}}}},
        {"role": {"contains": "ada", "mode": "insensitive"}},
    ]


def test_search_through_lists(builder: QueryBuilder):
    assert builder.build_search_conditions("User", "55", ["person.contactInfo.phones.number"]) == [
        {"person": {"contactInfo": {"is": {"phones": {"some": {"is": {"number": {"contains": "55", "mode": "insensitive"}}}}}}}}
    ]
    assert builder.build_search_conditions("User", "reset", ["notifications.title"]) == [
        {"notifications": {"some": {"title": {"contains": "reset", "mode": "insensitive"}}}}
    ]


@pytest.mark.parametrize("term, fields", [(None, ["email"]), ("", ["email"]), ("ada", None), ("ada", [])])
def test_missing_term_or_fields(builder: QueryBuilder, term, fields):
    assert builder.build_search_conditions("User", term, fields) == []


@pytest.mark.parametrize(
    "fields, invalid",
    [
        (["email", "bogus"], ["bogus"]),
        (["loginCount"], ["loginCount"]),  # not a String
        (["tags"], ["tags"]),  # String list
        (["person"], ["person"]),  # not terminal
        (["email.domain", "person.personalInfo.nickname"], ["email.domain", "person.personalInfo.nickname"]),
    ],
)
def test_invalid_search_fields(builder: QueryBuilder, fields, invalid):
    with pytest.raises(NoValidSearchFieldError, match='Invalid fields found for model "User"') as exc_info:
        builder.build_search_conditions("User", "x", fields)
    assert exc_info.value.invalid_fields == invalid
    assert exc_info.value.value == "x"


def test_search_on_unknown_model(builder: QueryBuilder):
    with pytest.raises(UnknownModelError):
        builder.build_search_conditions("Ghost", "x", ["name"])


def test_build_where_merges_search_and_filters(builder: QueryBuilder):
    where = builder.build_where("User", "role:admin,loginCount>3", "ada", ["email", "userName"])
    assert where == {
        "OR": [
            {"email": {"contains": "ada", "mode": "insensitive"}},
            {"userName": {"contains": "ada", "mode": "insensitive"}},
        ],
        "AND": [{"role": "admin"}, {"loginCount": {"gt": 3}}],
    }


def test_build_where_omits_empty_parts(builder: QueryBuilder):
    assert builder.build_where("User") == {}
    assert builder.build_where("User", "role:admin") == {"AND": [{"role": "admin"}]}
    assert builder.build_where("User", None, "ada", ["email"]) == {
        "OR": [{"email": {"contains": "ada", "mode": "insensitive"}}]
    }


def test_build_where_unknown_model(builder: QueryBuilder):
    with pytest.raises(UnknownModelError):
        builder.build_where("Ghost")
