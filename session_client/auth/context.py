"""
Authentication context for the session client.

Holds the host-supplied auth callbacks and the refresh bookkeeping shared by
every request that goes through one client. Each client builds its own
context unless one is passed in, so independent clients never share a
refresh cycle.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Dict, Any

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]
SessionTerminator = Callable[[], None]
TokenRefreshedHook = Callable[[str], None]


def _no_token() -> Optional[str]:
    return None


def _no_logout() -> None:
    pass


@dataclass
class AuthHelpers:
    """Callbacks supplied by the host application."""
    get_token: TokenProvider = _no_token
    on_session_expired: SessionTerminator = _no_logout
    on_token_refreshed: Optional[TokenRefreshedHook] = None


@dataclass
class RefreshState:
    """
    Refresh bookkeeping for one auth context.

    ``waiters`` holds one future per request that hit a 401 while a refresh
    was already outstanding, in arrival order. Only the refresh coordinator
    mutates this state.
    """
    is_refreshing: bool = False
    waiters: List[asyncio.Future] = field(default_factory=list)

    def take_waiters(self) -> List[asyncio.Future]:
        """Detach and return the queued waiters, leaving the queue empty."""
        waiters, self.waiters = self.waiters, []
        return waiters

    def snapshot(self) -> Dict[str, Any]:
        return {
            'is_refreshing': self.is_refreshing,
            'waiters': len(self.waiters),
        }


class AuthContext:
    """Auth helpers binding plus refresh state for one client."""

    def __init__(self, helpers: Optional[AuthHelpers] = None):
        self.helpers = helpers or AuthHelpers()
        self.refresh_state = RefreshState()

        # Token issued by the last refresh, and what the provider returned
        # when it was issued
        self._refreshed_token: Optional[str] = None
        self._superseded_token: Optional[str] = None

    def set_auth_helpers(
        self,
        get_token: TokenProvider,
        logout: SessionTerminator,
        on_token_refreshed: Optional[TokenRefreshedHook] = None
    ) -> None:
        """
        Bind the host's token provider and session terminator.

        Replaces any previously bound callbacks.

        Args:
            get_token: Returns the current access token or None
            logout: Called once when a token refresh fails
            on_token_refreshed: Optional, called with the new access token
                after a successful refresh
        """
        self.helpers = AuthHelpers(
            get_token=get_token,
            on_session_expired=logout,
            on_token_refreshed=on_token_refreshed
        )
        self.forget_refreshed_token()
        logger.debug("Auth helpers updated")

    def get_token(self) -> Optional[str]:
        """
        Current access token.

        The provider's token wins once it differs from the one it returned
        when the last refresh happened. Until then the refreshed token is
        used, so hosts that only bind a provider and a terminator still
        replay with the new token.
        """
        token = self.helpers.get_token()
        if self._refreshed_token is None:
            return token
        if token is None or token == self._superseded_token:
            return self._refreshed_token

        self.forget_refreshed_token()
        return token

    def remember_refreshed_token(self, token: str) -> None:
        """Record a token issued by the refresh endpoint."""
        self._superseded_token = self.helpers.get_token()
        self._refreshed_token = token

    def forget_refreshed_token(self) -> None:
        self._refreshed_token = None
        self._superseded_token = None
