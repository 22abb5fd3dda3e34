"""
Unit tests for client configuration management.
"""

import logging

import pytest

from session_client.api_client import SessionAPIClient, create_api_client
from session_client.config import ClientConfiguration
from shared.exceptions import ConfigurationError
from shared.models import ClientSettings


@pytest.fixture
def clean_env(monkeypatch):
    for env_var in ClientConfiguration.ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)
    return monkeypatch


def write_config(tmp_path, text):
    path = tmp_path / "client.conf"
    path.write_text(text)
    return str(path)


class TestClientConfiguration:
    """Test configuration layering and conversion."""

    def test_defaults(self, clean_env):
        settings = ClientConfiguration().to_settings()

        assert settings.base_url == "http://localhost:8000/api"
        assert settings.default_headers == {'Content-Type': 'application/json'}
        assert settings.with_credentials is True
        assert settings.refresh_path == "/auth/refresh"
        assert settings.access_token_field == "accessToken"
        assert settings.timeout == 30.0

    def test_file_values(self, clean_env, tmp_path):
        path = write_config(tmp_path, (
            "[server]\n"
            "url = https://api.example.com/v1\n"
            "timeout = 10\n"
            "with_credentials = false\n"
            "[auth]\n"
            "refresh_path = /session/refresh\n"
        ))

        config = ClientConfiguration(path)
        settings = config.to_settings()

        assert config.get_config_file_path() == path
        assert settings.base_url == "https://api.example.com/v1"
        assert settings.timeout == 10.0
        assert settings.with_credentials is False
        assert settings.refresh_path == "/session/refresh"
        assert settings.refresh_url == "https://api.example.com/v1/session/refresh"

    def test_environment_overrides_file(self, clean_env, tmp_path):
        path = write_config(tmp_path, "[server]\nurl = https://file.example.com\n")
        clean_env.setenv('SESSION_CLIENT_API_BASE', 'https://env.example.com/api')
        clean_env.setenv('SESSION_CLIENT_WITH_CREDENTIALS', 'false')

        settings = ClientConfiguration(path).to_settings()

        assert settings.base_url == 'https://env.example.com/api'
        assert settings.with_credentials is False

    def test_overrides_win(self, clean_env):
        clean_env.setenv('SESSION_CLIENT_API_BASE', 'https://env.example.com/api')
        config = ClientConfiguration()
        config.set_override('server.url', 'https://override.example.com')

        assert config.get_server_url() == 'https://override.example.com'

    def test_environment_can_be_skipped(self, clean_env):
        clean_env.setenv('SESSION_CLIENT_API_BASE', 'https://env.example.com/api')

        config = ClientConfiguration(load_environment=False)

        assert config.get_server_url() == "http://localhost:8000/api"

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        config = ClientConfiguration(str(tmp_path / "missing.conf"))
        assert config.get_server_url() == "http://localhost:8000/api"

    def test_set_config_dot_notation(self, clean_env):
        config = ClientConfiguration()
        config.set_config('auth.refresh_path', '/token/renew')

        assert config.get_config('auth.refresh_path') == '/token/renew'
        assert config.get_config('auth.unknown', 'fallback') == 'fallback'

    def test_invalid_timeout_raises(self, clean_env):
        config = ClientConfiguration()
        config.set_override('server.timeout', 'soon')

        with pytest.raises(ConfigurationError) as exc_info:
            config.to_settings()
        assert exc_info.value.context['config_key'] == 'server.timeout'

    def test_non_positive_timeout_raises(self, clean_env):
        config = ClientConfiguration()
        config.set_override('server.timeout', 0)

        with pytest.raises(ConfigurationError):
            config.to_settings()

    def test_invalid_boolean_raises(self, clean_env):
        config = ClientConfiguration()
        config.set_override('server.with_credentials', 'sometimes')

        with pytest.raises(ConfigurationError):
            config.to_settings()

    def test_configure_logging(self, clean_env, tmp_path):
        log_file = tmp_path / "logs" / "client.log"
        config = ClientConfiguration()
        config.set_override('logging.level', 'debug')
        config.set_override('logging.file', str(log_file))

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            loggers = config.configure_logging()
            assert loggers['root'].level == logging.DEBUG
            assert log_file.parent.exists()
        finally:
            for handler in root.handlers[:]:
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
            audit = logging.getLogger('audit')
            for handler in audit.handlers[:]:
                audit.removeHandler(handler)
            audit.propagate = True

    def test_invalid_log_level_raises(self, clean_env):
        config = ClientConfiguration()
        config.set_override('logging.level', 'chatty')

        with pytest.raises(ConfigurationError):
            config.configure_logging()


class TestClientSettings:
    """Test the immutable settings object."""

    def test_settings_are_frozen(self):
        settings = ClientSettings()
        with pytest.raises(AttributeError):
            settings.base_url = 'http://elsewhere'
        with pytest.raises(TypeError):
            settings.default_headers['X-Extra'] = '1'

    def test_refresh_url_joins_slashes(self):
        settings = ClientSettings(base_url='http://host/api/', refresh_path='auth/refresh')
        assert settings.refresh_url == 'http://host/api/auth/refresh'


class TestClientFactory:
    """Test building clients from configuration."""

    def test_create_api_client_applies_overrides(self, clean_env):
        client = create_api_client(base_url='https://api.example.com', with_credentials=False)

        assert isinstance(client, SessionAPIClient)
        assert client.settings.base_url == 'https://api.example.com'
        assert client.settings.with_credentials is False

    def test_create_api_client_rejects_unknown_option(self, clean_env):
        with pytest.raises(TypeError):
            create_api_client(retries=3)

    def test_client_accepts_configuration_manager(self, clean_env):
        config = ClientConfiguration()
        config.set_override('auth.refresh_path', '/session/refresh')

        client = SessionAPIClient(config)

        assert client.refresh_coordinator.refresh_path == '/session/refresh'

    def test_build_url(self):
        client = SessionAPIClient(ClientSettings(base_url='http://host/api/'))

        assert client._build_url('/items') == 'http://host/api/items'
        assert client._build_url('items') == 'http://host/api/items'
        assert client._build_url('https://other/x') == 'https://other/x'
