"""
In-memory token store for the session client.

A ready-made holder for the access token that can be bound as the client's
token provider, session terminator and refresh hook in one go.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from jose import jwt, JWTError

logger = logging.getLogger(__name__)


class InMemoryTokenStore:
    """
    Keeps the current access token in memory.

    Expiration is read from the token's ``exp`` claim when it is a JWT; the
    signature is not verified because the client never trusts the claims for
    anything beyond diagnostics.
    """

    def __init__(self, token: Optional[str] = None):
        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._logout_callbacks: List[Callable[[], None]] = []
        if token:
            self.set_token(token)

    def add_logout_callback(self, callback: Callable[[], None]) -> None:
        """Add a callback run when the session is cleared."""
        self._logout_callbacks.append(callback)

    def _parse_token_expiration(self, token: str) -> Optional[datetime]:
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            return None

        exp = claims.get('exp')
        if exp is None:
            return None
        try:
            return datetime.fromtimestamp(float(exp), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Ignoring malformed exp claim in access token")
            return None

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token
        self._expires_at = self._parse_token_expiration(token)
        logger.debug("Access token stored")

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when the stored token carries an ``exp`` claim in the past."""
        if self._expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self._expires_at

    def clear(self) -> None:
        """Drop the token and notify logout callbacks."""
        self._token = None
        self._expires_at = None
        logger.info("Access token cleared")

        for callback in self._logout_callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in logout callback: {e}")

    def bind(self, client) -> None:
        """Bind this store as the client's token provider, terminator and refresh hook."""
        client.set_auth_helpers(
            get_token=self.get_token,
            logout=self.clear,
            on_token_refreshed=self.set_token
        )
