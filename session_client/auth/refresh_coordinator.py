"""
Token refresh coordination for the session client.

When a request is rejected with 401 the coordinator refreshes the access token
and replays the request. Requests that are rejected while a refresh is already
outstanding do not start another one; they queue behind it and are replayed,
or failed, together once it settles.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from shared.exceptions import (
    ErrorCode, HTTPStatusError, TokenRefreshError, handle_exception
)
from shared.logging_config import AuditLogger, log_structured_error
from shared.models import (
    APIResponse, PendingRequest, RefreshOutcome,
    DEFAULT_REFRESH_PATH, DEFAULT_ACCESS_TOKEN_FIELD
)
from session_client.auth.context import AuthContext

logger = logging.getLogger(__name__)

RefreshCall = Callable[[], Awaitable[Any]]
ReplayCall = Callable[[PendingRequest], Awaitable[APIResponse]]


class RefreshCoordinator:
    """
    Runs at most one token refresh at a time per auth context.

    Args:
        context: Auth context holding the helpers and refresh state
        refresh: Calls the refresh endpoint and returns its decoded payload
        replay: Sends a request through the normal authenticated path
        refresh_path: Requests whose path contains this never trigger a refresh
        access_token_field: Payload key holding the new access token
        audit_logger: Receives refresh and session-expiry audit events
    """

    def __init__(
        self,
        context: AuthContext,
        refresh: RefreshCall,
        replay: ReplayCall,
        refresh_path: str = DEFAULT_REFRESH_PATH,
        access_token_field: str = DEFAULT_ACCESS_TOKEN_FIELD,
        audit_logger: Optional[AuditLogger] = None
    ):
        self.context = context
        self.refresh = refresh
        self.replay = replay
        self.refresh_path = refresh_path
        self.access_token_field = access_token_field
        self.audit_logger = audit_logger or AuditLogger()

    def should_refresh(self, request: PendingRequest, error: BaseException) -> bool:
        """Whether a failed request qualifies for refresh-and-replay."""
        return (
            isinstance(error, HTTPStatusError)
            and error.status == 401
            and not request.retried
            and self.refresh_path not in request.path
        )

    async def handle_unauthorized(self, request: PendingRequest, error: BaseException) -> APIResponse:
        """
        Recover a request that was rejected with 401.

        Returns the replayed response. Raises ``error`` unchanged when the
        request does not qualify, and ``TokenRefreshError`` when the refresh
        fails.
        """
        if not self.should_refresh(request, error):
            raise error

        state = self.context.refresh_state
        request.retried = True

        # Flag check, flag set and enqueue all happen before the first await
        if state.is_refreshing:
            waiter = asyncio.get_running_loop().create_future()
            state.waiters.append(waiter)
            logger.debug(
                f"Refresh in progress, queued {request.method} {request.path} "
                f"({len(state.waiters)} waiting)"
            )
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter in state.waiters:
                    state.waiters.remove(waiter)
                raise
            return await self._replay(request)

        state.is_refreshing = True
        logger.info(f"Access token rejected for {request.method} {request.path}, refreshing")
        try:
            token = await self._refresh_token()
        except asyncio.CancelledError:
            self._settle(
                RefreshOutcome.CANCELLED,
                error=TokenRefreshError(
                    "Token refresh was cancelled",
                    error_code=ErrorCode.AUTH_REFRESH_CANCELLED
                )
            )
            raise
        except TokenRefreshError as refresh_error:
            self._settle(RefreshOutcome.FAILED, error=refresh_error)
            raise
        else:
            self._settle(RefreshOutcome.SUCCEEDED, token=token)
        finally:
            state.is_refreshing = False

        return await self._replay(request)

    async def _replay(self, request: PendingRequest) -> APIResponse:
        # The rejected bearer header must not survive into the replay
        for name in [key for key in request.headers if key.lower() == 'authorization']:
            del request.headers[name]
        return await self.replay(request)

    async def _refresh_token(self) -> Optional[str]:
        """Call the refresh endpoint and extract the new access token."""
        try:
            payload = await self.refresh()
        except HTTPStatusError as e:
            raise TokenRefreshError(
                f"Token refresh failed ({e.status}): {e.message}",
                status=e.status,
                cause=e
            ) from e
        except Exception as e:
            error = handle_exception(e, context={'operation': 'token_refresh'})
            raise TokenRefreshError(f"Token refresh failed: {error.message}", cause=error) from e

        token = payload.get(self.access_token_field) if isinstance(payload, dict) else None
        if not token:
            logger.warning(
                f"Refresh response did not contain '{self.access_token_field}', "
                "replaying with the provider's current token"
            )
            return None

        self.context.remember_refreshed_token(token)
        hook = self.context.helpers.on_token_refreshed
        if hook is not None:
            try:
                hook(token)
            except Exception as e:
                logger.error(f"Error in token refreshed callback: {e}")

        return token

    def _settle(
        self,
        outcome: RefreshOutcome,
        token: Optional[str] = None,
        error: Optional[TokenRefreshError] = None
    ) -> None:
        """Drain the waiter queue in arrival order. Never suspends."""
        waiters = self.context.refresh_state.take_waiters()
        pending = [waiter for waiter in waiters if not waiter.done()]

        for waiter in pending:
            if error is not None:
                waiter.set_exception(self._waiter_error(error))
            else:
                waiter.set_result(token)

        if outcome is RefreshOutcome.SUCCEEDED:
            logger.info(f"Token refresh succeeded, resuming {len(pending)} queued request(s)")
            self.audit_logger.log_token_refresh(success=True, waiters=len(pending))
            return

        logger.warning(f"Token refresh {outcome.value}, failing {len(pending)} queued request(s)")
        if outcome is RefreshOutcome.CANCELLED:
            return

        log_structured_error(logger, error)
        self.audit_logger.log_token_refresh(
            success=False,
            waiters=len(pending),
            status=error.status,
            failure_reason=error.message
        )
        self._expire_session(error)

    @staticmethod
    def _waiter_error(error: TokenRefreshError) -> TokenRefreshError:
        """Copy of the refresh error for one queued request."""
        return TokenRefreshError(
            error.message,
            status=error.status,
            error_code=error.error_code,
            cause=error.cause
        )

    def _expire_session(self, error: TokenRefreshError) -> None:
        self.context.forget_refreshed_token()
        self.audit_logger.log_session_expired(reason=error.message)
        try:
            self.context.helpers.on_session_expired()
        except Exception as e:
            logger.error(f"Error in session expired callback: {e}")
