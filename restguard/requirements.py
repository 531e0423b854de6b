"""
Capability requirements declared on routes.

Requirements are plain immutable values. They are attached to a route in the
order they should run and turned into guards when the dispatcher is built.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Type, Union

if TYPE_CHECKING:
    from .context import RequestContext


class Target(str, Enum):
    """Request section a schema applies to."""

    BODY = "body"
    QUERY = "query"
    PARAMS = "params"


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class FieldSpec:
    """Constraints for a single field.

    Attributes:
        type: Declared type; string inputs from query/params are coerced to it
        required: Whether the field must be present and, for strings, non-empty
        min_length: Minimum string length
        max_length: Maximum string length
        minimum: Inclusive lower bound for numbers
        maximum: Inclusive upper bound for numbers
        pattern: Regular expression a string must match
        message: Client-facing message replacing the generated one on failure
    """

    type: FieldType = FieldType.STRING
    required: bool = True
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    pattern: Optional[str] = None
    message: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings such as "integer" for convenience
        object.__setattr__(self, "type", FieldType(self.type))


@dataclass(frozen=True)
class RateLimit:
    """Allow at most ``max_requests`` per fixed window of ``window_seconds``.

    ``identify`` maps a request to the client identity the counter is kept
    for. When omitted the client address is used.
    """

    key: str
    window_seconds: int
    max_requests: int
    identify: Optional[Callable[["RequestContext"], str]] = field(default=None, compare=False)

    def __post_init__(self):
        if self.window_seconds <= 0:
            raise ValueError("RateLimit: window_seconds must be positive")
        if self.max_requests < 0:
            raise ValueError("RateLimit: max_requests must not be negative")


@dataclass(frozen=True)
class RequireAuth:
    """Require a valid bearer token."""

    pass


Schema = Union[Mapping[str, Union[FieldSpec, Dict[str, Any]]], Type[Any]]


@dataclass(frozen=True)
class ValidateSchema:
    """Validate one request section against a schema.

    ``schema`` is either a mapping of field name to :class:`FieldSpec` (or a
    dict of FieldSpec keyword arguments), or a pydantic model class.
    """

    target: Target
    schema: Any

    def __post_init__(self):
        object.__setattr__(self, "target", Target(self.target))
        if isinstance(self.schema, Mapping):
            fields = {
                name: spec if isinstance(spec, FieldSpec) else FieldSpec(**spec)
                for name, spec in self.schema.items()
            }
            object.__setattr__(self, "schema", fields)


Requirement = Union[RateLimit, RequireAuth, ValidateSchema]
