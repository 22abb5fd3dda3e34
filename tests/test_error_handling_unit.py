"""
Unit tests for the exception hierarchy and structured logging.
"""

import json
import logging

import pytest

from shared.exceptions import (
    ConfigurationError, ErrorCode, HTTPStatusError, NetworkError, RecoveryAction,
    SessionClientError, TokenRefreshError, UnauthorizedError, handle_exception
)
from shared.logging_config import (
    AuditEventType, AuditLogger, DetailedFormatter, StructuredFormatter, log_structured_error
)
from shared.models import APIResponse, PendingRequest


class TestExceptions:
    """Test structured exceptions."""

    def test_unauthorized_error_carries_request_context(self):
        request = PendingRequest('GET', '/items')
        response = APIResponse(status=401, request=request)

        error = UnauthorizedError("Unauthorized: Token expired", response=response)

        assert isinstance(error, HTTPStatusError)
        assert error.status == 401
        assert error.response is response
        assert error.error_code == ErrorCode.AUTH_UNAUTHORIZED
        assert error.context == {'status': 401, 'method': 'GET', 'path': '/items'}
        assert RecoveryAction.REFRESH_TOKEN in error.recovery_actions

    def test_token_refresh_error_to_dict(self):
        cause = HTTPStatusError("Request failed (403): Forbidden", status=403)

        error = TokenRefreshError("Token refresh failed (403)", status=403, cause=cause)
        payload = error.to_dict()['error']

        assert payload['code'] == 'AUTH_1002'
        assert payload['severity'] == 'high'
        assert payload['context']['status'] == 403
        assert payload['cause'] == {
            'type': 'HTTPStatusError',
            'message': 'Request failed (403): Forbidden'
        }
        assert payload['recovery_actions'] == ['reauthenticate']

    def test_handle_exception_maps_builtin_errors(self):
        assert isinstance(handle_exception(ConnectionError("refused")), NetworkError)
        timeout = handle_exception(TimeoutError())
        assert timeout.error_code == ErrorCode.NETWORK_TIMEOUT
        assert timeout.message == 'TimeoutError'
        assert type(handle_exception(FileNotFoundError("client.conf"))) is SessionClientError

    def test_context_argument_is_not_mutated(self):
        context = {'operation': 'token_refresh'}

        error = SessionClientError("failed", context=context, cause=ValueError("bad"))
        refresh_error = TokenRefreshError("failed", status=403, context=context)
        config_error = ConfigurationError("bad value", config_key='server.url', context=context)

        assert context == {'operation': 'token_refresh'}
        assert error.context['cause_type'] == 'ValueError'
        assert refresh_error.context['status'] == 403
        assert config_error.context['config_key'] == 'server.url'

    def test_handle_exception_keeps_structured_errors(self):
        error = NetworkError("down")
        assert handle_exception(error) is error

    def test_handle_exception_falls_back_to_base(self):
        error = handle_exception(KeyError('x'), context={'where': 'test'})
        assert type(error) is SessionClientError
        assert error.error_code == ErrorCode.INTERNAL_UNEXPECTED_ERROR
        assert error.context['where'] == 'test'


class TestStructuredLogging:
    """Test formatters and the audit logger."""

    def make_record(self, **extra):
        record = logging.LogRecord('session_client', logging.WARNING, __file__, 10, "refresh failed", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_formatter_includes_error_info(self):
        error = TokenRefreshError("Token refresh failed (403)", status=403)
        record = self.make_record(error_info=error, request_id='abc')

        entry = json.loads(StructuredFormatter().format(record))

        assert entry['level'] == 'WARNING'
        assert entry['message'] == 'refresh failed'
        assert entry['error']['code'] == 'AUTH_1002'
        assert entry['error']['context'] == {'status': 403}
        assert entry['extra'] == {'request_id': 'abc'}

    def test_detailed_formatter_appends_audit(self):
        record = self.make_record(audit_info={'event_type': 'token_refresh'})

        formatted = DetailedFormatter().format(record)

        assert 'refresh failed' in formatted
        assert 'Audit:' in formatted
        assert 'token_refresh' in formatted

    def test_audit_logger_token_refresh(self, caplog):
        audit = AuditLogger('test_audit')

        with caplog.at_level(logging.INFO, logger='test_audit'):
            audit.log_token_refresh(success=False, waiters=2, status=403, failure_reason='revoked')

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.audit_info['event_type'] == AuditEventType.TOKEN_REFRESH.value
        assert record.audit_info['result'] == 'failure'
        assert record.audit_info['context'] == {'waiters': 2, 'status': 403, 'failure_reason': 'revoked'}

    def test_audit_logger_session_expired(self, caplog):
        audit = AuditLogger('test_audit')

        with caplog.at_level(logging.INFO, logger='test_audit'):
            audit.log_session_expired(reason='refresh failed')

        record = caplog.records[-1]
        assert record.audit_info['event_type'] == 'session_expired'
        assert record.audit_info['context'] == {'reason': 'refresh failed'}

    def test_log_structured_error(self, caplog):
        logger = logging.getLogger('test_errors')
        error = NetworkError("connection refused")

        with caplog.at_level(logging.ERROR, logger='test_errors'):
            log_structured_error(logger, error)

        assert caplog.records[-1].error_info is error
        assert caplog.records[-1].getMessage() == "connection refused"


@pytest.mark.parametrize('status, expected', [(200, True), (204, True), (301, False), (401, False)])
def test_api_response_ok(status, expected):
    assert APIResponse(status=status).ok is expected
