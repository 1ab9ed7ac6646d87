"""
Structured error types for the mud ORM.

Every failure the ORM surfaces to a caller is a ``MudError`` subclass that
carries a category, a retry flag, structured context and an optional chained
cause. Callers can therefore tell "the table could not be created" apart from
"the query matched nothing" without parsing messages.

Manifesto:
    - **Typed hierarchy:** one class per failure kind in the taxonomy
    - **Explicit retry semantics:** only connection failures are retryable
    - **Rich context:** table, dialect and SQL travel with the error
    - **Error chaining:** driver exceptions are kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                          MudError                             │
        │          (category, retryable, context, cause)               │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigError           DatabaseError        NoResultsError    │
        │  (CONFIG)              (DATABASE)           (NOT_FOUND)       │
        │      │                     │                                  │
        │  MissingConfigError    SchemaError          InvalidCriteria-  │
        │  InvalidConfigError    QueryError           Error (VALIDATION)│
        │                                                               │
        │  DatabaseConnectionError (DATABASE, retryable)                │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = QueryError("near 'SELEC': syntax error")
    >>> error.with_context(table="Person", dialect="sqlite")
    QueryError('near ...', category=DATABASE)
    >>> error.to_dict()["context"]["table"]
    'Person'

    Distinguishing "not found" from "failed":

    >>> try:
    ...     db.first(Person, where.equal("Age", 999))
    ... except NoResultsError:
    ...     person = None

Guardrails:
    ❌ DON'T: Raise bare Exception from engine code
    ✅ DO: Pick the MudError subclass matching the failure

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as cause= so tracebacks keep the root error

Tags:
    error-handling, exception-hierarchy, orm, mud

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        CONFIG: Missing or invalid connection settings, unknown backend
        DATABASE: Driver, schema or query failures
        NOT_FOUND: A single-record lookup matched nothing
        VALIDATION: Caller passed an unusable argument
        INTERNAL: Bugs, unexpected state
    """

    CONFIG = "CONFIG"
    DATABASE = "DATABASE"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialised by ``to_dict()``; anything without a
    dedicated field goes into ``metadata``.

    Attributes:
        table: Table (entity type) the operation targeted
        dialect: Dialect name in use when the error occurred
        sql: Statement text that failed
        metadata: Free-form extra fields
    """

    table: str | None = None
    dialect: str | None = None
    sql: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for key in ("table", "dialect", "sql"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class MudError(Exception):
    """
    Base exception for all mud errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Examples:
        >>> error = MudError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> MudError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("Insert failed").with_context(
                table="Person",
                sql=statement,
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(MudError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing or blank."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(MudError):
    """Database statement or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class SchemaError(DatabaseError):
    """Table definition not found or could not be created."""


class QueryError(DatabaseError):
    """SQL rejected by the driver, or an operation that cannot be expressed."""


class DatabaseConnectionError(DatabaseError):
    """Connection or pool failure."""

    default_retryable = True


# =============================================================================
# LOOKUP / ARGUMENT ERRORS
# =============================================================================


class NoResultsError(MudError):
    """A single-record lookup matched no rows."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False


class InvalidCriteriaError(MudError):
    """Caller passed a filter argument of an unrecognised shape."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MudError",
    # Config
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    # Database
    "DatabaseError",
    "SchemaError",
    "QueryError",
    "DatabaseConnectionError",
    # Lookup / arguments
    "NoResultsError",
    "InvalidCriteriaError",
]
