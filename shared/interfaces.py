"""
Core interfaces for the session client.

This module defines the abstract interfaces that components must implement
to ensure consistent behavior across the system.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from .models import APIResponse, ClientSettings


class IAPIClient(ABC):
    """Interface for authenticated API communication."""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> APIResponse:
        """Send a request through the authenticated pipeline."""
        pass

    @abstractmethod
    async def refresh_access_token(self) -> Any:
        """Call the refresh endpoint directly and return its payload."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""
        pass


class IConfigurationManager(ABC):
    """Interface for configuration management."""

    @abstractmethod
    def get_server_url(self) -> str:
        """Get API base URL."""
        pass

    @abstractmethod
    def set_config(self, key: str, value: Any) -> None:
        """Set configuration value."""
        pass

    @abstractmethod
    def get_config(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass

    @abstractmethod
    def to_settings(self) -> ClientSettings:
        """Build immutable client settings."""
        pass
