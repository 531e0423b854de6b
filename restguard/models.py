"""
Core HTTP data models for restguard.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Dict, List, Optional, Tuple, Union

# Set up logger for this module
logger = logging.getLogger(__name__)


class MultiValueHeaders:
    """
    Multi-value, case-insensitive headers container.

    HTTP headers are case-insensitive per RFC 7230, and the same header can appear
    multiple times. Lookups ignore case and ``get`` returns the first value.

    Example::

        headers = MultiValueHeaders()
        headers.add('Vary', 'Origin')
        headers.add('Vary', 'Authorization')
        headers.get('vary')      # Returns 'Origin'
        headers.get_all('vary')  # Returns ['Origin', 'Authorization']
    """

    def __init__(self, data=None):
        # Internal storage: Dict[lowercase_name, List[Tuple[original_name, value]]]
        self._headers: Dict[str, List[Tuple[str, str]]] = {}

        if data is not None:
            if isinstance(data, MultiValueHeaders):
                self._headers = {k: list(v) for k, v in data._headers.items()}
            elif isinstance(data, dict):
                for key, value in data.items():
                    if isinstance(value, list):
                        for v in value:
                            self.add(key, v)
                    else:
                        self.add(key, value)
            elif isinstance(data, (list, tuple)):
                for key, value in data:
                    self.add(key, value)

    def add(self, name: str, value: str) -> None:
        """Add a header value, allowing multiple values for the same name."""
        self._headers.setdefault(name.lower(), []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value for a header name, or ``default``."""
        if not isinstance(name, str):
            return default
        values = self._headers.get(name.lower())
        if values:
            return values[0][1]
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for a header name."""
        return [value for _, value in self._headers.get(name.lower(), [])]

    def set(self, name: str, value: str) -> None:
        """Set a header to a single value, replacing any existing values."""
        self._headers[name.lower()] = [(name, value)]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.lower() in self._headers

    def __delitem__(self, name: str) -> None:
        try:
            del self._headers[name.lower()]
        except KeyError:
            raise KeyError(name) from None

    def __iter__(self):
        for values in self._headers.values():
            if values:
                yield values[0][0]

    def __len__(self):
        return len(self._headers)

    def items(self):
        """Return (name, first_value) pairs."""
        return [(values[0][0], values[0][1]) for values in self._headers.values() if values]

    def items_all(self):
        """Return all (name, value) pairs including duplicates."""
        result = []
        for values in self._headers.values():
            result.extend(values)
        return result

    def copy(self) -> "MultiValueHeaders":
        return MultiValueHeaders(self)

    def __repr__(self):
        return f"MultiValueHeaders({self.items()!r})"


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"

    @classmethod
    def parse(cls, value: Union[str, "HTTPMethod"]) -> Optional["HTTPMethod"]:
        """Return the enum member for ``value``, or None for unknown methods."""
        if isinstance(value, HTTPMethod):
            return value
        try:
            return cls(value.upper())
        except ValueError:
            return None


@dataclass
class Request:
    """Represents a raw inbound HTTP request.

    ``method`` is kept as the upper-cased string the client sent so that
    unknown methods can still flow through the pipeline and be answered with
    an error envelope.
    """

    method: str
    path: str
    headers: Union[Dict[str, str], MultiValueHeaders] = field(default_factory=MultiValueHeaders)
    body: bytes = b""
    query_params: Dict[str, str] = field(default_factory=dict)
    client: Optional[Tuple[str, int]] = None

    def __post_init__(self):
        """Ensure headers is a MultiValueHeaders for case-insensitive header lookups."""
        if isinstance(self.method, HTTPMethod):
            self.method = self.method.value
        self.method = self.method.upper()
        if not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)

    @property
    def client_host(self) -> Optional[str]:
        return self.client[0] if self.client else None


@dataclass
class Response:
    """Represents an outbound HTTP response with an already-encoded body."""

    status_code: int
    body: bytes = b""
    headers: Union[Dict[str, str], MultiValueHeaders, None] = None
    content_type: Optional[str] = None

    def __post_init__(self):
        if self.headers is None:
            self.headers = MultiValueHeaders()
        elif not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)

        if self.content_type:
            self.headers["Content-Type"] = self.content_type

        # No body is ever sent with 204/304
        if self.status_code in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED):
            self.body = b""
        else:
            self.headers["Content-Length"] = str(len(self.body))
