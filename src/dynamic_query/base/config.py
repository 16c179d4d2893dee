# src/dynamic_query/base/config.py
import logging
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

log = logging.getLogger(__name__)

ENV_PREFIX = "DYNAMIC_QUERY_"


class QueryBuilderSettings(BaseModel):
    """
    Tunables shared by the builder, parameter validation and the query service.

    Settings are passed explicitly to the components that need them; nothing
    reads them from a module-level global.
    """

    id_field: str = "id"
    default_order: Literal["asc", "desc"] = "desc"
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)
    # Unrecognised boolean strings raise instead of becoming False.
    strict_booleans: bool = False
    # Validate sort keys (plain and JSON) against the schema.
    validate_sort: bool = False

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_limits(self) -> "QueryBuilderSettings":
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) cannot exceed max_limit ({self.max_limit})"
            )
        return self

    @classmethod
    def from_env(
        cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None
    ) -> "QueryBuilderSettings":
        """
        Build settings from environment variables such as DYNAMIC_QUERY_MAX_LIMIT.

        Unset variables keep their defaults. Values are handed to pydantic as
        strings, so "true"/"1"/"yes" all work for the boolean flags.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is not None:
                overrides[name] = raw
        if overrides:
            log.debug(f"Settings overrides from environment: {overrides}")
        try:
            return cls.model_validate(overrides)
        except ValidationError as e:
            log.error(f"Invalid query builder settings in environment: {e}")
            raise
