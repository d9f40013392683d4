"""Webhook configuration from YAML file.

Loads from config/config.yaml (or the file named by LIMESURVEY_WEBHOOK_CONFIG)
with all settings in one place:
- webhook: target endpoint, survey filter, auth, payload richness
- database: LimeSurvey database connection
- server: inbound trigger listener
- logging: log directory and format

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.errors.exceptions import ConfigurationError
from core.security.url_validation import validate_webhook_url
from limesurvey_webhook.dispatcher import AuthType
from limesurvey_webhook.models import Richness
from limesurvey_webhook.payload import DEFAULT_EVENT_NAME
from limesurvey_webhook.store import TABLE_PREFIX_PATTERN

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "LIMESURVEY_WEBHOOK_CONFIG"
DEFAULT_CONFIG_FILE = Path("config") / "config.yaml"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(([^}]*))?)?\}")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables."""
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return _ENV_VAR_PATTERN.sub(replacer, data)
    else:
        return data


def parse_survey_ids(value: Any) -> frozenset[int]:
    """Parse the survey filter.

    Accepts a comma-separated string ("10, 20,30"), a list, or a single int.
    Blank entries are ignored.

    Raises:
        ConfigurationError: If an entry is not an integer
    """
    if value is None:
        return frozenset()
    if isinstance(value, int) and not isinstance(value, bool):
        return frozenset({value})
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        raise ConfigurationError(f"survey_ids must be a string or list, got {type(value).__name__}")

    ids = set()
    for item in items:
        item_text = str(item).strip()
        if not item_text:
            continue
        try:
            ids.add(int(item_text))
        except ValueError as e:
            raise ConfigurationError(f"survey_ids: '{item_text}' is not a survey id", cause=e) from e
    return frozenset(ids)


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got '{value}'")


def _parse_number(value: Any, key: str, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be a number, got '{value}'", cause=e) from e


def _parse_enum(enum_cls, value: Any, key: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        valid = [m.value for m in enum_cls]
        raise ConfigurationError(f"{key} must be one of {valid}, got '{value}'", cause=e) from e


@dataclass
class WebhookConfig:
    """Outbound webhook settings."""

    target_url: str = ""
    survey_ids: frozenset[int] = field(default_factory=frozenset)
    auth_token: str | None = None
    debug_mode: bool = False
    richness: Richness = Richness.LABELED
    event_name: str = DEFAULT_EVENT_NAME
    timeout_seconds: float = 30
    connect_timeout_seconds: float = 10
    auth_type: AuthType = AuthType.NONE
    auth_header: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WebhookConfig":
        return cls(
            target_url=str(data.get("target_url") or "").strip(),
            survey_ids=parse_survey_ids(data.get("survey_ids")),
            auth_token=data.get("auth_token") or None,
            debug_mode=_parse_bool(data.get("debug_mode", False), "webhook.debug_mode"),
            richness=_parse_enum(Richness, data.get("richness", "labeled"), "webhook.richness"),
            event_name=data.get("event_name") or DEFAULT_EVENT_NAME,
            timeout_seconds=_parse_number(
                data.get("timeout_seconds", 30), "webhook.timeout_seconds"
            ),
            connect_timeout_seconds=_parse_number(
                data.get("connect_timeout_seconds", 10), "webhook.connect_timeout_seconds"
            ),
            auth_type=_parse_enum(AuthType, data.get("auth_type", "none"), "webhook.auth_type"),
            auth_header=data.get("auth_header") or None,
        )

    def validate(self) -> None:
        if not self.target_url:
            raise ConfigurationError("webhook.target_url is required")
        is_valid, error = validate_webhook_url(self.target_url)
        if not is_valid:
            raise ConfigurationError(f"webhook.target_url is invalid: {error}")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"webhook.timeout_seconds must be > 0, got {self.timeout_seconds}"
            )
        if self.connect_timeout_seconds <= 0:
            raise ConfigurationError(
                f"webhook.connect_timeout_seconds must be > 0, got {self.connect_timeout_seconds}"
            )
        if self.auth_type != AuthType.NONE and not self.auth_token:
            raise ConfigurationError(
                f"webhook.auth_token is required when auth_type is '{self.auth_type.value}'"
            )


@dataclass
class DatabaseConfig:
    """LimeSurvey database connection."""

    url: str = ""
    table_prefix: str = "lime_"
    language: str | None = None
    strip_html: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatabaseConfig":
        prefix = data.get("table_prefix")
        return cls(
            url=str(data.get("url") or "").strip(),
            table_prefix="lime_" if prefix is None else str(prefix),
            language=data.get("language") or None,
            strip_html=_parse_bool(data.get("strip_html", True), "database.strip_html"),
        )

    def validate(self) -> None:
        if not self.url:
            raise ConfigurationError("database.url is required")
        if not TABLE_PREFIX_PATTERN.match(self.table_prefix):
            raise ConfigurationError(
                f"database.table_prefix may only contain letters, digits and '_', "
                f"got '{self.table_prefix}'"
            )


@dataclass
class ServerConfig:
    """Inbound trigger listener."""

    host: str = "0.0.0.0"
    port: int = 8090
    path: str = "/events/survey-complete"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        return cls(
            host=data.get("host") or "0.0.0.0",
            port=_parse_number(data.get("port", 8090), "server.port", int),
            path=data.get("path") or "/events/survey-complete",
        )

    def validate(self) -> None:
        if not (1 <= self.port <= 65535):
            raise ConfigurationError(f"server.port must be between 1 and 65535, got {self.port}")
        if not self.path.startswith("/"):
            raise ConfigurationError(f"server.path must start with '/', got '{self.path}'")


@dataclass
class LoggingConfig:
    """Log output settings."""

    log_dir: Path = Path("logs")
    json_format: bool = True
    log_to_stdout: bool = False
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoggingConfig":
        return cls(
            log_dir=Path(data.get("log_dir") or "logs"),
            json_format=_parse_bool(data.get("json_format", True), "logging.json_format"),
            log_to_stdout=_parse_bool(data.get("log_to_stdout", False), "logging.log_to_stdout"),
            level=str(data.get("level") or "INFO").upper(),
        )

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)

    def validate(self) -> None:
        if not isinstance(self.level_number, int):
            raise ConfigurationError(f"logging.level is not a log level: '{self.level}'")


@dataclass
class AppConfig:
    """Complete webhook service configuration."""

    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        for section in ("webhook", "database", "server", "logging"):
            if not isinstance(data.get(section) or {}, dict):
                raise ConfigurationError(f"Config section '{section}' must be a mapping")
        return cls(
            webhook=WebhookConfig.from_dict(data.get("webhook") or {}),
            database=DatabaseConfig.from_dict(data.get("database") or {}),
            server=ServerConfig.from_dict(data.get("server") or {}),
            logging=LoggingConfig.from_dict(data.get("logging") or {}),
        )

    def validate(self) -> None:
        """Validate every section. Raises ConfigurationError on the first problem."""
        self.webhook.validate()
        self.database.validate()
        self.server.validate()
        self.logging.validate()


def resolve_config_path(config_path: Path | None = None) -> Path:
    if config_path is not None:
        return Path(config_path)
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load and validate configuration.

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    config_path = resolve_config_path(config_path)

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}\n"
            f"Expected file: config/config.yaml (see config/config.yaml.example)"
        )

    logger.info("Loading configuration from file: %s", config_path)
    try:
        yaml_data = load_yaml(config_path)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}", cause=e) from e

    if not isinstance(yaml_data, dict):
        raise ConfigurationError(f"Invalid config file {config_path}: expected a mapping")

    config = AppConfig.from_dict(expand_env_vars(yaml_data))

    logger.debug("Validating configuration...")
    config.validate()
    logger.debug(
        "Configuration loaded",
        extra={
            "survey_ids": sorted(config.webhook.survey_ids),
            "richness": config.webhook.richness.value,
        },
    )
    return config
