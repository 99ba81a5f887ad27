"""Configuration provider following Black Box Design principles."""
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

import yaml
from dotenv import load_dotenv

from rowpost.modules.api import ConfigError

logger = logging.getLogger("rowpost.config")

ENV_PREFIX = "ROWPOST_"


@dataclass
class RetryConfig:
    """Retry policy for a single invocation."""
    max_attempts: int = 1
    backoff_initial: float = 0.1
    backoff_factor: float = 1.5
    backoff_max: float = 1.0
    retry_on_status: Tuple[int, ...] = (502, 503, 504)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the given retry (attempt 1 is the first retry)."""
        return min(self.backoff_initial * self.backoff_factor ** (attempt - 1), self.backoff_max)


@dataclass
class BridgeConfig:
    """Row-to-request bridge configuration."""
    endpoint_url: str
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)
    request_timeout: float = 30.0
    connect_timeout: float = 5.0
    max_in_flight: int = 32
    max_connections: int = 64
    verify_ssl: bool = True
    ca_cert_path: Optional[str] = None
    auth_token: Optional[str] = None
    retry: RetryConfig = field(default_factory=RetryConfig)

    def validate(self) -> "BridgeConfig":
        """Check values, raising ConfigError on the first problem."""
        if not self.endpoint_url:
            raise ConfigError(
                f"{ENV_PREFIX}ENDPOINT_URL is required. "
                "Example: https://api.example.com/ingest"
            )
        if not self.endpoint_url.startswith(("http://", "https://")):
            raise ConfigError(f"Endpoint must be an http(s) URL: {self.endpoint_url}")
        if self.request_timeout <= 0 or self.connect_timeout <= 0:
            raise ConfigError("Timeouts must be positive")
        if self.max_in_flight < 1 or self.max_connections < 1:
            raise ConfigError("max_in_flight and max_connections must be at least 1")
        if self.retry.max_attempts < 1:
            raise ConfigError("retry.max_attempts must be at least 1")
        if min(self.retry.backoff_initial, self.retry.backoff_factor, self.retry.backoff_max) < 0:
            raise ConfigError("retry backoff values must not be negative")
        bad = [s for s in self.retry.retry_on_status if not 100 <= s <= 599]
        if bad:
            raise ConfigError(f"retry.retry_on_status must be HTTP statuses (100-599): {bad}")

        if self.endpoint_url.startswith("http://") and self.verify_ssl:
            logger.warning("Using HTTP without TLS - this should only be used for local development!")
        return self

    @property
    def request_headers(self) -> Dict[str, str]:
        """Headers sent with every POST."""
        headers = {"Content-Type": self.content_type}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        headers.update(self.headers)
        return headers

    def cache_key(self) -> Tuple:
        """Identity of the client this configuration needs."""
        return (
            self.request_timeout,
            self.connect_timeout,
            self.max_in_flight,
            self.max_connections,
            self.verify_ssl,
            self.ca_cert_path,
        )

    def to_display_dict(self) -> Dict[str, Any]:
        """Dictionary safe to print (token masked)."""
        data = asdict(self)
        if data.get("auth_token"):
            data["auth_token"] = "***"
        data["retry"]["retry_on_status"] = list(self.retry.retry_on_status)
        return data


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_values(self) -> Dict[str, Any]:
        """Get the raw configuration mapping."""
        ...

    def get_bridge_config(self) -> BridgeConfig:
        """Get bridge configuration."""
        ...


def _parse_bool(value: str) -> bool:
    return str(value).lower() in ("1", "true", "yes")


def parse_headers(value: Any) -> Dict[str, str]:
    """Accept a mapping or a 'Name:value,Name:value' string."""
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    headers = {}
    for item in str(value).split(","):
        if not item.strip():
            continue
        name, sep, val = item.partition(":")
        if not sep:
            raise ConfigError(f"Invalid header (expected Name:value): {item}")
        headers[name.strip()] = val.strip()
    return headers


def _parse_statuses(value: Any) -> Tuple[int, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(int(v) for v in value)
    return tuple(int(v) for v in str(value).split(",") if v.strip())


def build_bridge_config(values: Dict[str, Any]) -> BridgeConfig:
    """Build and validate a BridgeConfig from a flat/nested mapping."""
    retry_values = dict(values.get("retry") or {})
    try:
        retry = RetryConfig(
            max_attempts=int(retry_values.get("max_attempts", 1)),
            backoff_initial=float(retry_values.get("backoff_initial", 0.1)),
            backoff_factor=float(retry_values.get("backoff_factor", 1.5)),
            backoff_max=float(retry_values.get("backoff_max", 1.0)),
            retry_on_status=_parse_statuses(retry_values.get("retry_on_status", (502, 503, 504))),
        )
        config = BridgeConfig(
            endpoint_url=values.get("endpoint_url") or "",
            content_type=values.get("content_type", "application/json"),
            headers=parse_headers(values.get("headers") or {}),
            request_timeout=float(values.get("request_timeout", 30.0)),
            connect_timeout=float(values.get("connect_timeout", 5.0)),
            max_in_flight=int(values.get("max_in_flight", 32)),
            max_connections=int(values.get("max_connections", 64)),
            verify_ssl=_parse_bool(values.get("verify_ssl", True)),
            ca_cert_path=values.get("ca_cert_path"),
            auth_token=values.get("auth_token"),
            retry=retry,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
    return config.validate()


# Environment variable -> (section, key); section None means top level
_ENV_KEYS = {
    "ENDPOINT_URL": (None, "endpoint_url"),
    "CONTENT_TYPE": (None, "content_type"),
    "HEADERS": (None, "headers"),
    "REQUEST_TIMEOUT": (None, "request_timeout"),
    "CONNECT_TIMEOUT": (None, "connect_timeout"),
    "MAX_IN_FLIGHT": (None, "max_in_flight"),
    "MAX_CONNECTIONS": (None, "max_connections"),
    "SSL_VERIFY": (None, "verify_ssl"),
    "CA_CERT": (None, "ca_cert_path"),
    "TOKEN": (None, "auth_token"),
    "RETRY_MAX_ATTEMPTS": ("retry", "max_attempts"),
    "RETRY_BACKOFF_INITIAL": ("retry", "backoff_initial"),
    "RETRY_BACKOFF_FACTOR": ("retry", "backoff_factor"),
    "RETRY_BACKOFF_MAX": ("retry", "backoff_max"),
    "RETRY_ON_STATUS": ("retry", "retry_on_status"),
}


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect the ROWPOST_* variables that are actually set."""
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for suffix, (section, key) in _ENV_KEYS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        if section:
            values.setdefault(section, {})[key] = raw
        else:
            values[key] = raw
    return values


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self, environ: Optional[Dict[str, str]] = None, load_env_file: bool = True):
        if load_env_file and environ is None:
            load_dotenv()
        self.environ = environ

    def get_values(self) -> Dict[str, Any]:
        """Raw configuration mapping before validation."""
        return env_overrides(self.environ)

    def get_bridge_config(self) -> BridgeConfig:
        """Get bridge configuration from environment variables."""
        return build_bridge_config(self.get_values())


class FileConfigProvider:
    """YAML file configuration provider; environment variables win."""

    def __init__(self, path: str, environ: Optional[Dict[str, str]] = None):
        self.path = Path(path)
        self.environ = environ

    def _load_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise ConfigError(f"Config file not found: {self.path}")
        with open(self.path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {self.path}")
        return data

    def get_values(self) -> Dict[str, Any]:
        """File values with environment overrides merged in."""
        values = self._load_file()
        overrides = env_overrides(self.environ)
        retry = dict(values.get("retry") or {})
        retry.update(overrides.pop("retry", {}))
        values.update(overrides)
        values["retry"] = retry
        logger.debug(f"Loaded configuration from {self.path}")
        return values

    def get_bridge_config(self) -> BridgeConfig:
        """Get bridge configuration from file, then environment."""
        return build_bridge_config(self.get_values())


def get_config_provider(environ: Optional[Dict[str, str]] = None) -> ConfigProvider:
    """Pick the file provider when ROWPOST_CONFIG is set, else the env provider."""
    if environ is None:
        load_dotenv()
    source = os.environ if environ is None else environ
    path = source.get(ENV_PREFIX + "CONFIG")
    if path:
        return FileConfigProvider(path, environ)
    return EnvConfigProvider(environ, load_env_file=False)
