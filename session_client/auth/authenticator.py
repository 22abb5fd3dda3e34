"""
Request authentication for the session client.
"""

import logging

from shared.models import PendingRequest
from session_client.auth.context import AuthContext

logger = logging.getLogger(__name__)


class RequestAuthenticator:
    """Attaches the current access token to outgoing requests."""

    def __init__(self, context: AuthContext):
        self.context = context

    def apply(self, request: PendingRequest) -> PendingRequest:
        """
        Set ``Authorization: Bearer <token>`` when a token is available.

        Requests are sent unauthenticated when the provider has no token; the
        server decides whether that is acceptable.
        """
        token = self.context.get_token()
        if token:
            request.headers['Authorization'] = f'Bearer {token}'
        else:
            logger.debug(f"No access token for {request.method} {request.path}")
        return request
