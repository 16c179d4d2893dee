# tests/base/test_params.py

import pytest

from dynamic_query.base.config import QueryBuilderSettings
from dynamic_query.base.exceptions import InvalidQueryParamsError, QueryBuildError
from dynamic_query.base.params import QueryParams, build_pagination


def test_defaults():
    params = QueryParams.from_query({})
    assert params.page == 1
    assert params.limit == 10
    assert params.order == "desc"
    assert params.skip == 0
    assert (params.sort, params.fields, params.query, params.filter, params.group_by) == (None,) * 5
    assert (params.document, params.pagination, params.count) == (True, False, False)


def test_query_string_values_are_coerced():
    params = QueryParams.from_query(
        {
            "page": "3",
            "limit": "25",
            "order": "asc",
            "sort": "createdAt",
            "fields": "email,person.id",
            "query": "ada",
            "filter": "role:admin",
            "groupBy": "role",
            "document": "false",
            "pagination": "true",
            "count": "1",
        }
    )
    assert (params.page, params.limit, params.skip) == (3, 25, 50)
    assert params.order == "asc"
    assert params.group_by == "role"
    assert (params.document, params.pagination, params.count) == (False, True, True)


def test_group_by_by_field_name():
    assert QueryParams.from_query({"group_by": "status"}).group_by == "status"


def test_empty_strings_fall_back_to_defaults():
    params = QueryParams.from_query({"page": "", "sort": "", "order": None, "unknown": "x"})
    assert params.page == 1
    assert params.sort is None
    assert params.order == "desc"


def test_defaults_come_from_settings():
    settings = QueryBuilderSettings(default_limit=5, default_order="asc")
    params = QueryParams.from_query({}, settings)
    assert (params.limit, params.order) == (5, "asc")


@pytest.mark.parametrize(
    "raw, bad_field",
    [
        ({"page": "0"}, "page"),
        ({"page": "abc"}, "page"),
        ({"limit": "0"}, "limit"),
        ({"order": "sideways"}, "order"),
        ({"count": "perhaps"}, "count"),
    ],
)
def test_invalid_params(raw, bad_field):
    with pytest.raises(InvalidQueryParamsError, match=f"Invalid query parameters: {bad_field}") as exc_info:
        QueryParams.from_query(raw)
    assert [e["field"] for e in exc_info.value.errors] == [bad_field]


def test_all_invalid_params_are_listed():
    with pytest.raises(InvalidQueryParamsError) as exc_info:
        QueryParams.from_query({"page": "0", "limit": "x"})
    assert sorted(e["field"] for e in exc_info.value.errors) == ["limit", "page"]


def test_limit_above_max():
    with pytest.raises(InvalidQueryParamsError, match="limit must not exceed 100") as exc_info:
        QueryParams.from_query({"limit": "101"})
    assert exc_info.value.field == "limit"
    assert isinstance(exc_info.value, QueryBuildError)


def test_custom_max_limit():
    settings = QueryBuilderSettings(default_limit=5, max_limit=20)
    assert QueryParams.from_query({"limit": "20"}, settings).limit == 20
    with pytest.raises(InvalidQueryParamsError):
        QueryParams.from_query({"limit": "21"}, settings)


# --- Pagination ---
@pytest.mark.parametrize(
    "total, page, limit, expected",
    [
        (0, 1, 10, {"total": 0, "page": 1, "limit": 10, "totalPages": 0, "hasNext": False, "hasPrev": False}),
        (25, 1, 10, {"total": 25, "page": 1, "limit": 10, "totalPages": 3, "hasNext": True, "hasPrev": False}),
        (25, 3, 10, {"total": 25, "page": 3, "limit": 10, "totalPages": 3, "hasNext": False, "hasPrev": True}),
        (20, 2, 10, {"total": 20, "page": 2, "limit": 10, "totalPages": 2, "hasNext": False, "hasPrev": True}),
        (5, 4, 10, {"total": 5, "page": 4, "limit": 10, "totalPages": 1, "hasNext": False, "hasPrev": True}),
    ],
)
def test_build_pagination(total, page, limit, expected):
    assert build_pagination(total, page, limit) == expected
