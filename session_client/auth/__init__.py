"""
Authentication package for the session client.

This package contains the auth helper binding, request authentication, the
token refresh coordinator and a simple in-memory token store.
"""
