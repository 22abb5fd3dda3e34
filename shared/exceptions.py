"""
Exception hierarchy for the session client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so that callers can react to authentication, transport
and configuration failures consistently.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the session client."""

    # Authentication Errors (1000-1099)
    AUTH_UNAUTHORIZED = "AUTH_1001"
    AUTH_REFRESH_FAILED = "AUTH_1002"
    AUTH_REFRESH_CANCELLED = "AUTH_1003"

    # HTTP Errors (1100-1199)
    HTTP_STATUS_ERROR = "HTTP_1101"

    # Network and Communication Errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # Configuration Errors (8000-8099)
    CONFIG_INVALID_FORMAT = "CONFIG_8002"
    CONFIG_INVALID_VALUE = "CONFIG_8004"

    # Internal Errors (9000-9099)
    INTERNAL_UNEXPECTED_ERROR = "INTERNAL_9001"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY = "retry"
    RECONNECT = "reconnect"
    REFRESH_TOKEN = "refresh_token"
    REAUTHENTICATE = "reauthenticate"
    USER_INTERVENTION = "user_intervention"
    IGNORE = "ignore"


class SessionClientError(Exception):
    """
    Base exception class for all session client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[BaseException] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = dict(context or {})
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class HTTPStatusError(SessionClientError):
    """A response came back with a non-2xx status code."""

    def __init__(self, message: str, status: int, response=None, **kwargs):
        context = dict(kwargs.pop('context', None) or {})
        context['status'] = status
        if response is not None and response.request is not None:
            context['method'] = response.request.method
            context['path'] = response.request.path

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.HTTP_STATUS_ERROR),
            severity=kwargs.pop('severity', ErrorSeverity.MEDIUM),
            context=context,
            **kwargs
        )
        self.status = status
        self.response = response


class UnauthorizedError(HTTPStatusError):
    """The server rejected the request with 401 Unauthorized."""

    def __init__(self, message: str, response=None, **kwargs):
        super().__init__(
            message=message,
            status=401,
            response=response,
            error_code=ErrorCode.AUTH_UNAUTHORIZED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.REFRESH_TOKEN, RecoveryAction.REAUTHENTICATE],
            **kwargs
        )


class TokenRefreshError(SessionClientError):
    """
    The access token could not be refreshed.

    Raised to the request that started the refresh and to every request that
    was waiting on it. ``status`` holds the refresh endpoint's HTTP status
    when the failure came from a response, otherwise ``None``.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_code: ErrorCode = ErrorCode.AUTH_REFRESH_FAILED,
        **kwargs
    ):
        context = dict(kwargs.pop('context', None) or {})
        if status is not None:
            context['status'] = status

        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.REAUTHENTICATE],
            context=context,
            **kwargs
        )
        self.status = status


class NetworkError(SessionClientError):
    """Network and communication related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY, RecoveryAction.RECONNECT],
            **kwargs
        )


class ConfigurationError(SessionClientError):
    """Configuration related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE,
                 config_key: Optional[str] = None, **kwargs):
        context = dict(kwargs.pop('context', None) or {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR
) -> SessionClientError:
    """
    Convert a generic exception to a structured SessionClientError.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if specific mapping not found

    Returns:
        Structured SessionClientError
    """
    if isinstance(exception, SessionClientError):
        return exception

    exception_mapping = {
        ConnectionError: (ErrorCode.NETWORK_CONNECTION_FAILED, NetworkError),
        TimeoutError: (ErrorCode.NETWORK_TIMEOUT, NetworkError),
    }

    error_code, error_class = exception_mapping.get(
        type(exception),
        (default_error_code, SessionClientError)
    )

    return error_class(
        message=str(exception) or type(exception).__name__,
        error_code=error_code,
        context=context,
        cause=exception
    )
