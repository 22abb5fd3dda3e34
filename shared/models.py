"""
Core data models for the session client.

This module defines the request and response structures that flow through the
authenticated request pipeline, plus the immutable client settings.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping
from enum import Enum
from types import MappingProxyType


DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_REFRESH_PATH = "/auth/refresh"
DEFAULT_ACCESS_TOKEN_FIELD = "accessToken"


class RefreshOutcome(Enum):
    """How a refresh cycle settled."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ClientSettings:
    """Immutable client configuration fixed at construction time."""
    base_url: str = DEFAULT_BASE_URL
    default_headers: Mapping[str, str] = field(
        default_factory=lambda: {'Content-Type': 'application/json'}
    )
    with_credentials: bool = True
    refresh_path: str = DEFAULT_REFRESH_PATH
    access_token_field: str = DEFAULT_ACCESS_TOKEN_FIELD
    timeout: float = 30.0

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("Base URL cannot be empty")
        if not self.refresh_path:
            raise ValueError("Refresh path cannot be empty")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        object.__setattr__(self, 'default_headers', MappingProxyType(dict(self.default_headers)))

    @property
    def refresh_url(self) -> str:
        return self.base_url.rstrip('/') + '/' + self.refresh_path.lstrip('/')


@dataclass
class PendingRequest:
    """
    An outgoing call description.

    ``retried`` is set once the request has been through a token refresh so
    that a second 401 is never intercepted again.
    """
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    data: Any = None
    retried: bool = False

    def __post_init__(self):
        if not self.method:
            raise ValueError("Request method cannot be empty")
        self.method = self.method.upper()


@dataclass
class APIResponse:
    """Response returned by the client."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None
    request: Optional[PendingRequest] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300
