"""
Per-request context threaded through every pipeline stage.

The annotation bag is a plain mapping, but only the reserved keys below are
written by restguard itself, and each has a typed accessor on
:class:`RequestContext`:

- ``identity``: :class:`Identity` attached by the auth guard
- ``requestId``: request identifier created at dispatch
- ``startTime``: monotonic timestamp taken at dispatch
- ``validated``: coerced values per validation target (``body``/``query``/``params``)
"""

import re
import uuid
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Optional, Tuple

from .models import MultiValueHeaders, Request

IDENTITY = "identity"
REQUEST_ID = "requestId"
START_TIME = "startTime"
VALIDATED = "validated"

RESERVED_ANNOTATIONS = frozenset({IDENTITY, REQUEST_ID, START_TIME, VALIDATED})


@dataclass(frozen=True)
class Identity:
    """Authenticated caller decoded from token claims."""

    subject: str
    role: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Identity":
        return cls(subject=str(claims.get("sub", "")), role=claims.get("role"), claims=dict(claims))


@dataclass
class ResponseDraft:
    """Response-in-progress that handlers and stages may adjust."""

    status_code: int = HTTPStatus.OK
    headers: MultiValueHeaders = field(default_factory=MultiValueHeaders)


@dataclass
class RequestContext:
    """Mutable carrier owned by exactly one in-flight request."""

    request: Request
    path_params: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, Any] = field(default_factory=dict)
    response: ResponseDraft = field(default_factory=ResponseDraft)
    route: Optional[Any] = None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def headers(self) -> MultiValueHeaders:
        return self.request.headers  # type: ignore[return-value]

    @property
    def query_params(self) -> Dict[str, str]:
        return self.request.query_params

    @property
    def body(self) -> bytes:
        return self.request.body

    @property
    def client(self) -> Optional[Tuple[str, int]]:
        return self.request.client

    @property
    def identity(self) -> Optional[Identity]:
        return self.annotations.get(IDENTITY)

    @identity.setter
    def identity(self, value: Identity) -> None:
        self.annotations[IDENTITY] = value

    @property
    def request_id(self) -> Optional[str]:
        return self.annotations.get(REQUEST_ID)

    @request_id.setter
    def request_id(self, value: str) -> None:
        self.annotations[REQUEST_ID] = value

    @property
    def start_time(self) -> Optional[float]:
        return self.annotations.get(START_TIME)

    @start_time.setter
    def start_time(self, value: float) -> None:
        self.annotations[START_TIME] = value

    def validated(self, target: str) -> Dict[str, Any]:
        """Return the coerced values stored by the schema validator for ``target``."""
        return self.annotations.get(VALIDATED, {}).get(target, {})

    def set_validated(self, target: str, values: Dict[str, Any]) -> None:
        self.annotations.setdefault(VALIDATED, {})[target] = values


_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def new_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(request: Request) -> str:
    """Reuse a well-formed incoming ``X-Request-ID``, otherwise create a new id."""
    incoming = request.headers.get("x-request-id")
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return new_request_id()
