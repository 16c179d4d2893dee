# src/dynamic_query/__init__.py

"""
Dynamic Query Library Initialization.

This package turns URL query-string input (a compact filter DSL, a free-text
search term, sort, pagination and field selection) into nested, store-native
query specs, validating every field path against a schema registry.

It initializes a logger with a NullHandler and makes the schema registry,
the query builder, the query assembly helpers, the repository interfaces and
the error taxonomy available at the top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging.
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Exceptions
# --------------------------------------------------------------------------
from .base.exceptions import (
    InvalidFilterExpressionError,
    InvalidQueryParamsError,
    InvalidSortError,
    KeyAlreadyExistsException,
    NoValidSearchFieldError,
    NotScalarError,
    NotTraversableError,
    ObjectNotFoundException,
    QueryBuildError,
    SchemaDefinitionError,
    TypeCoercionError,
    UnknownFieldError,
    UnknownModelError,
)

# --------------------------------------------------------------------------
# Schema and Configuration
# --------------------------------------------------------------------------
from .base.config import QueryBuilderSettings
from .base.schema import FieldDescriptor, FieldKind, SchemaRegistry

# --------------------------------------------------------------------------
# Query Building
# --------------------------------------------------------------------------
# QueryBuilder is the primary entry point; the parser, coercion and query
# assembly helpers are exported for callers that need a single step.
from .base.builder import QueryBuilder
from .base.conditions import Condition, to_where
from .base.parser import FilterOperator, ParsedFilter, parse_filter_expression
from .base.query import FindManyQuery, build_find_many_query, get_nested_fields
from .base.values import parse_value
from .base.params import QueryParams, build_pagination
from .base.utils import group_data_by_field

# --------------------------------------------------------------------------
# Repositories and Service
# --------------------------------------------------------------------------
from .base.interfaces import Repository, RepositoryRegistry
from .memory.base import MemoryRepository
from .service import QueryService

__all__ = [
    # Exceptions
    "QueryBuildError",
    "UnknownModelError",
    "UnknownFieldError",
    "NotScalarError",
    "NotTraversableError",
    "TypeCoercionError",
    "InvalidFilterExpressionError",
    "NoValidSearchFieldError",
    "InvalidSortError",
    "InvalidQueryParamsError",
    "SchemaDefinitionError",
    "ObjectNotFoundException",
    "KeyAlreadyExistsException",
    # Schema and configuration
    "SchemaRegistry",
    "FieldDescriptor",
    "FieldKind",
    "QueryBuilderSettings",
    # Query building
    "QueryBuilder",
    "Condition",
    "to_where",
    "FilterOperator",
    "ParsedFilter",
    "parse_filter_expression",
    "parse_value",
    "FindManyQuery",
    "build_find_many_query",
    "get_nested_fields",
    "QueryParams",
    "build_pagination",
    "group_data_by_field",
    # Repositories
    "Repository",
    "RepositoryRegistry",
    "MemoryRepository",
    "QueryService",
    # Logging
    "logger",
]

__version__ = "0.1.0"
