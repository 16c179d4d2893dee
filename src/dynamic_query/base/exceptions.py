from typing import Any, List, Optional


class ObjectNotFoundException(Exception):
    """Exception raised when an object with the specified identifier does not exist."""

    def __init__(self, message: str = "The requested object was not found."):
        super().__init__(message)


class KeyAlreadyExistsException(Exception):
    """Exception raised when trying to insert an entity that would violate a unique constraint."""

    def __init__(self, message: str = "An object with the same key already exists."):
        super().__init__(message)


class SchemaDefinitionError(TypeError):
    """Error raised when a schema document or model cannot be turned into field metadata."""


# --- Query Building Errors ---
class QueryBuildError(ValueError):
    """Base class for errors raised while turning query-string input into a query."""

    def __init__(
        self,
        message: str = "Could not build query.",
        field: Optional[str] = None,
        expression: Optional[str] = None,
        value: Any = None,
    ):
        super().__init__(message)
        self.field = field
        self.expression = expression
        self.value = value

    def contextualize(
        self, message: str, field: Optional[str] = None, expression: Optional[str] = None
    ) -> "QueryBuildError":
        """Returns a copy of this error, same class, with a caller-level message."""
        return type(self)(
            message,
            field=field or self.field,
            expression=expression or self.expression,
            value=self.value,
        )


class UnknownModelError(QueryBuildError):
    """Error raised when an entity type is not defined in the schema."""


class UnknownFieldError(QueryBuildError):
    """Error raised when a path segment does not exist on its entity or composite type."""


class NotScalarError(QueryBuildError):
    """Error raised when the terminal segment of a path is not a scalar or enum field."""


class NotTraversableError(QueryBuildError):
    """Error raised when an intermediate path segment is a scalar or enum field."""


class TypeCoercionError(QueryBuildError):
    """Error raised when a raw string cannot be converted to the field's declared type."""


class InvalidFilterExpressionError(QueryBuildError):
    """Error raised when a filter expression is syntactically malformed."""


class NoValidSearchFieldError(QueryBuildError):
    """Error raised when the search whitelist holds invalid fields or yields no condition."""

    def __init__(
        self,
        message: str = "No valid search field.",
        field: Optional[str] = None,
        expression: Optional[str] = None,
        value: Any = None,
        invalid_fields: Optional[List[str]] = None,
    ):
        super().__init__(message, field=field, expression=expression, value=value)
        self.invalid_fields = list(invalid_fields or [])


class InvalidSortError(QueryBuildError):
    """Error raised when a sort specification cannot be parsed or validated."""


class InvalidQueryParamsError(QueryBuildError):
    """Error raised when request query parameters fail validation."""

    def __init__(
        self,
        message: str = "Invalid query parameters.",
        field: Optional[str] = None,
        expression: Optional[str] = None,
        value: Any = None,
        errors: Optional[List[dict]] = None,
    ):
        super().__init__(message, field=field, expression=expression, value=value)
        self.errors = list(errors or [])
