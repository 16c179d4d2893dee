# src/dynamic_query/base/params.py
import logging
import math
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import QueryBuilderSettings
from .exceptions import InvalidQueryParamsError

log = logging.getLogger(__name__)


class QueryParams(BaseModel):
    """Validated list-endpoint query parameters."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    order: Literal["asc", "desc"] = "desc"
    sort: Optional[str] = None
    fields: Optional[str] = None
    query: Optional[str] = None
    filter: Optional[str] = None
    group_by: Optional[str] = Field(default=None, alias="groupBy")
    document: bool = True
    pagination: bool = False
    count: bool = False

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_query(
        cls,
        raw: Mapping[str, Any],
        settings: Optional[QueryBuilderSettings] = None,
    ) -> "QueryParams":
        """
        Validates a raw query mapping. Empty strings count as absent, so
        ``?sort=&page=`` falls back to defaults.

        Raises:
            InvalidQueryParamsError: listing every offending parameter.
        """
        settings = settings or QueryBuilderSettings()
        data: Dict[str, Any] = {"limit": settings.default_limit, "order": settings.default_order}
        data.update({k: v for k, v in raw.items() if v is not None and v != ""})
        try:
            params = cls.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            log.error(f"Query parameter validation failed: {errors}")
            names = ", ".join(err["field"] for err in errors)
            raise InvalidQueryParamsError(
                f"Invalid query parameters: {names}", errors=errors
            ) from e
        if params.limit > settings.max_limit:
            raise InvalidQueryParamsError(
                f"Invalid query parameters: limit must not exceed {settings.max_limit}",
                field="limit",
                value=params.limit,
                errors=[{"field": "limit", "message": f"must not exceed {settings.max_limit}"}],
            )
        log.debug(f"Validated query parameters: {params!r}")
        return params


def build_pagination(total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }
