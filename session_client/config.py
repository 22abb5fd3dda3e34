"""
Configuration Management for the session client.

This module handles the API base URL, credential transport and token refresh
settings with support for configuration files and environment variables.
"""

import os
import json
import logging
from typing import Optional, Dict, Any
from configparser import ConfigParser, Error as ConfigParserError

from shared.exceptions import ConfigurationError, ErrorCode
from shared.interfaces import IConfigurationManager
from shared.logging_config import LogFormat, LogLevel, setup_logging
from shared.models import (
    ClientSettings, DEFAULT_BASE_URL, DEFAULT_REFRESH_PATH, DEFAULT_ACCESS_TOKEN_FIELD
)

logger = logging.getLogger(__name__)


class ClientConfiguration(IConfigurationManager):
    """
    Configuration manager for the session client.

    Supports configuration from:
    1. Explicit overrides (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'SESSION_CLIENT_API_BASE': ('server', 'url'),
        'SESSION_CLIENT_TIMEOUT': ('server', 'timeout'),
        'SESSION_CLIENT_WITH_CREDENTIALS': ('server', 'with_credentials'),
        'SESSION_CLIENT_REFRESH_PATH': ('auth', 'refresh_path'),
        'SESSION_CLIENT_ACCESS_TOKEN_FIELD': ('auth', 'access_token_field'),
        'SESSION_CLIENT_LOG_LEVEL': ('logging', 'level'),
        'SESSION_CLIENT_LOG_FORMAT': ('logging', 'format'),
        'SESSION_CLIENT_LOG_FILE': ('logging', 'file'),
    }

    def __init__(self, config_file: Optional[str] = None, load_environment: bool = True):
        self._config_file = config_file
        self._config_data: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration(load_environment)

    def _load_configuration(self, load_environment: bool) -> None:
        """Load configuration from file and environment variables."""
        if self._config_file:
            if os.path.exists(self._config_file):
                self._load_from_file()
                logger.info(f"Configuration loaded from: {self._config_file}")
            else:
                logger.info(f"Configuration file not found: {self._config_file}")

        if load_environment:
            self._load_from_environment()

        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        try:
            config.read(self._config_file)
        except ConfigParserError as e:
            raise ConfigurationError(
                f"Invalid configuration file {self._config_file}: {e}",
                error_code=ErrorCode.CONFIG_INVALID_FORMAT,
                cause=e
            ) from e

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Try to parse as JSON for typed values
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})
            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            elif value.isdigit():
                section_data[key] = int(value)
            else:
                section_data[key] = value

    def _set_defaults(self) -> None:
        """Set default configuration values."""
        defaults = {
            'server': {
                'url': DEFAULT_BASE_URL,
                'timeout': 30.0,
                'with_credentials': True,
                'content_type': 'application/json'
            },
            'auth': {
                'refresh_path': DEFAULT_REFRESH_PATH,
                'access_token_field': DEFAULT_ACCESS_TOKEN_FIELD
            },
            'logging': {
                'level': 'INFO',
                'format': 'standard',
                'file': None
            }
        }

        for section, section_defaults in defaults.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_server_url(self) -> str:
        """Get API base URL."""
        return self.get_config('server.url')

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._overrides:
            return self._overrides[key]

        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_config(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            value: Value to set
        """
        if '.' not in key:
            self._config_data[key] = value
            return

        section, config_key = key.split('.', 1)
        self._config_data.setdefault(section, {})[config_key] = value

    def set_override(self, key: str, value: Any) -> None:
        """
        Set configuration override (highest priority).

        Args:
            key: Configuration key in format 'section.key'
            value: Override value
        """
        self._overrides[key] = value

    def get_config_file_path(self) -> Optional[str]:
        return self._config_file

    def _as_bool(self, key: str) -> bool:
        value = self.get_config(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ('true', 'false', '1', '0', 'yes', 'no'):
            return value.lower() in ('true', '1', 'yes')
        if isinstance(value, int):
            return bool(value)
        raise ConfigurationError(f"Expected a boolean for {key}, got {value!r}", config_key=key)

    def _as_float(self, key: str) -> float:
        value = self.get_config(key)
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Expected a number for {key}, got {value!r}", config_key=key, cause=e
            ) from e

    def to_settings(self) -> ClientSettings:
        """
        Build immutable client settings from the current configuration.

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        try:
            return ClientSettings(
                base_url=str(self.get_config('server.url')),
                default_headers={'Content-Type': str(self.get_config('server.content_type'))},
                with_credentials=self._as_bool('server.with_credentials'),
                refresh_path=str(self.get_config('auth.refresh_path')),
                access_token_field=str(self.get_config('auth.access_token_field')),
                timeout=self._as_float('server.timeout')
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}", cause=e) from e

    def configure_logging(self) -> Dict[str, logging.Logger]:
        """Set up logging from the [logging] section."""
        level_name = str(self.get_config('logging.level', 'INFO')).upper()
        format_name = str(self.get_config('logging.format', 'standard')).lower()
        try:
            log_level = LogLevel(level_name)
            log_format = LogFormat(format_name)
        except ValueError as e:
            raise ConfigurationError(f"Invalid logging configuration: {e}", cause=e) from e

        return setup_logging(
            log_level=log_level,
            log_format=log_format,
            log_file=self.get_config('logging.file')
        )
