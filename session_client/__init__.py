"""
Session client package.

An aiohttp-based API client that attaches bearer tokens to outgoing requests
and transparently refreshes an expired access token, replaying the requests
that were rejected while it was stale.
"""

from session_client.api_client import SessionAPIClient, create_api_client
from session_client.auth.context import AuthContext, AuthHelpers, RefreshState
from session_client.config import ClientConfiguration

__all__ = [
    'SessionAPIClient',
    'create_api_client',
    'AuthContext',
    'AuthHelpers',
    'RefreshState',
    'ClientConfiguration',
]
