"""
Shared package for the session client.

This package contains the data models, interfaces, exception hierarchy and
logging configuration used across the client.
"""
