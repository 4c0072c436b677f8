"""Configuration management for geoipsync."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Self
from urllib.parse import urlparse, urlunparse

from geoipsync._defaults import (
    DEFAULT_DATABASE_FILE,
    DEFAULT_DATABASE_URL,
    DEFAULT_DIGEST_URL,
    get_default_config_file,
    get_default_database_directory,
)
from geoipsync.errors import ConfigError
from geoipsync.models import RemoteArtifact

_SCHEME_RE = re.compile(r"(?i)\A([a-z][a-z0-9+\-.]*)://")

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


@dataclass(frozen=True)
class Config:
    """Configuration for geoipsync.

    Attributes:
        database_directory: Directory holding the cached database file.
        database_file: File name of the database within database_directory.
        database_url: URL of the remote MMDB file.
        digest_url: URL of the text resource holding the file's SHA-256.
        update_interval: Time between refresh cycles.
        request_timeout: Connect and read timeout for each HTTP request.
        retry_for: Duration to retry failed requests; zero disables retries.
        proxy: Proxy URL (http, https, or socks5).
        lock_file: Path to lock file for preventing concurrent refreshes.
        verbose: Enable verbose output.

    """

    database_directory: Path = field(default_factory=get_default_database_directory)
    database_file: str = DEFAULT_DATABASE_FILE
    database_url: str = DEFAULT_DATABASE_URL
    digest_url: str = DEFAULT_DIGEST_URL
    update_interval: timedelta = field(default_factory=lambda: timedelta(hours=24))
    request_timeout: timedelta = field(default_factory=lambda: timedelta(minutes=5))
    retry_for: timedelta = field(default_factory=lambda: timedelta(minutes=5))
    proxy: str | None = None
    lock_file: Path | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate and set derived values after initialization."""
        if self.lock_file is None:
            object.__setattr__(
                self, "lock_file", self.database_directory / ".geoipsync.lock"
            )
        if not self.database_file:
            raise ConfigError("the `DatabaseFile' option is required")
        name = Path(self.database_file).name
        if name != self.database_file or name in (".", ".."):
            msg = f"`DatabaseFile' must be a file name, got '{self.database_file}'"
            raise ConfigError(msg)
        if not self.database_url:
            raise ConfigError("the `DatabaseURL' option is required")
        if not self.digest_url:
            raise ConfigError("the `DigestURL' option is required")
        if self.update_interval <= timedelta(0):
            msg = f"update interval must be positive, got '{self.update_interval}'"
            raise ConfigError(msg)
        if self.request_timeout <= timedelta(0):
            msg = f"request timeout must be positive, got '{self.request_timeout}'"
            raise ConfigError(msg)
        if self.retry_for < timedelta(0):
            msg = f"retry duration must not be negative, got '{self.retry_for}'"
            raise ConfigError(msg)

    @property
    def database_path(self) -> Path:
        """Return the full path of the cached database file."""
        return self.database_directory / self.database_file

    @property
    def remote(self) -> RemoteArtifact:
        """Return the remote database descriptor."""
        return RemoteArtifact(artifact_url=self.database_url, digest_url=self.digest_url)

    @classmethod
    def from_file(
        cls,
        config_file: Path | None = None,
        *,
        database_directory: Path | None = None,
        verbose: bool = False,
    ) -> Self:
        """Load configuration with precedence: defaults < file < env < args.

        Args:
            config_file: Path to configuration file. If None, uses the default
                file when it exists.
            database_directory: Override for database directory.
            verbose: Enable verbose output.

        Returns:
            Loaded configuration.

        Raises:
            ConfigError: If configuration is invalid.

        """
        config_data: dict[str, object] = {
            "database_directory": get_default_database_directory(),
            "database_file": DEFAULT_DATABASE_FILE,
            "database_url": DEFAULT_DATABASE_URL,
            "digest_url": DEFAULT_DIGEST_URL,
            "update_interval": timedelta(hours=24),
            "request_timeout": timedelta(minutes=5),
            "retry_for": timedelta(minutes=5),
            "verbose": False,
        }

        if config_file is None:
            default_file = get_default_config_file()
            if default_file.exists():
                config_file = default_file

        if config_file is not None:
            config_data.update(_parse_config_file(config_file))

        config_data.update(_parse_environment())

        if database_directory is not None:
            config_data["database_directory"] = database_directory
        if verbose:
            config_data["verbose"] = True

        proxy = _build_proxy_url(
            config_data.pop("_proxy_url", None),  # type: ignore[arg-type]
            config_data.pop("_proxy_user_password", None),  # type: ignore[arg-type]
        )

        return cls(
            database_directory=Path(config_data["database_directory"]),  # type: ignore[arg-type]
            database_file=str(config_data["database_file"]),
            database_url=str(config_data["database_url"]),
            digest_url=str(config_data["digest_url"]),
            update_interval=config_data["update_interval"],  # type: ignore[arg-type]
            request_timeout=config_data["request_timeout"],  # type: ignore[arg-type]
            retry_for=config_data["retry_for"],  # type: ignore[arg-type]
            proxy=proxy,
            lock_file=Path(config_data["lock_file"])  # type: ignore[arg-type]
            if config_data.get("lock_file")
            else None,
            verbose=bool(config_data.get("verbose", False)),
        )


def _parse_config_file(path: Path) -> dict[str, object]:
    """Parse a geoipsync configuration file.

    The format is one ``Key value`` pair per line. Blank lines and lines
    starting with ``#`` are ignored.

    Args:
        path: Path to the configuration file.

    Returns:
        Dictionary of configuration values.

    Raises:
        ConfigError: If the file cannot be parsed.

    """
    config: dict[str, object] = {}
    keys_seen: set[str] = set()

    try:
        with path.open() as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split(None, 1)
                if len(parts) < 2:
                    msg = f"invalid format on line {line_num}"
                    raise ConfigError(msg)

                key, value = parts[0], parts[1].strip()

                if key in keys_seen:
                    msg = f"`{key}' is in the config multiple times"
                    raise ConfigError(msg)
                keys_seen.add(key)

                _set_config_value(config, key, value, line_num)
    except OSError as e:
        msg = f"error opening file: {e}"
        raise ConfigError(msg) from e

    return config


def _set_config_value(
    config: dict[str, object],
    key: str,
    value: str,
    line_num: int,
) -> None:
    """Set a configuration value from a parsed key-value pair.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.

    """
    if key == "DatabaseDirectory":
        config["database_directory"] = Path(value)
    elif key == "DatabaseFile":
        config["database_file"] = value
    elif key == "DatabaseURL":
        config["database_url"] = _parse_url(value, "DatabaseURL")
    elif key == "DigestURL":
        config["digest_url"] = _parse_url(value, "DigestURL")
    elif key == "UpdateInterval":
        config["update_interval"] = _parse_duration(value)
    elif key == "RequestTimeout":
        config["request_timeout"] = _parse_duration(value)
    elif key == "RetryFor":
        config["retry_for"] = _parse_duration(value)
    elif key == "LockFile":
        config["lock_file"] = Path(value)
    elif key == "Proxy":
        config["_proxy_url"] = value
    elif key == "ProxyUserPassword":
        config["_proxy_user_password"] = value
    else:
        msg = f"unknown option on line {line_num}"
        raise ConfigError(msg)


def _parse_url(value: str, option: str) -> str:
    """Parse a URL value, adding an https scheme if missing.

    Args:
        value: URL value from configuration.
        option: Option name for error messages.

    Returns:
        Full URL with scheme.

    Raises:
        ConfigError: If the URL cannot be parsed.

    """
    try:
        if not _SCHEME_RE.match(value):
            value = f"https://{value}"
        parsed = urlparse(value)
    except ValueError as e:
        msg = f"failed to parse {option}: {e}"
        raise ConfigError(msg) from e
    if parsed.scheme.lower() not in ("http", "https"):
        msg = f"unsupported {option} scheme: {parsed.scheme}"
        raise ConfigError(msg)
    if not parsed.hostname:
        msg = f"{option} has no host: '{value}'"
        raise ConfigError(msg)
    return urlunparse(parsed)


def _parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string.

    Supports formats like "24h", "1h30m", "300s", "1.5m" and "500ms". Units
    may appear in any order. A bare integer is taken as seconds.

    Args:
        value: Duration string.

    Returns:
        Parsed timedelta.

    Raises:
        ConfigError: If the duration cannot be parsed.

    """
    if value.isdigit():
        return timedelta(seconds=int(value))

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART_RE.finditer(value):
        if match.start() != pos:
            break
        number, unit = match.groups()
        seconds += float(number) * _DURATION_UNITS[unit]
        pos = match.end()

    if pos == 0 or pos != len(value):
        msg = f"'{value}' is not a valid duration"
        raise ConfigError(msg)

    return timedelta(seconds=seconds)


def _parse_bool(value: str, name: str) -> bool:
    if value not in ("0", "1"):
        msg = f"`{name}' must be 0 or 1"
        raise ConfigError(msg)
    return value == "1"


def _parse_environment() -> dict[str, object]:
    """Parse configuration from environment variables.

    Returns:
        Dictionary of configuration values from environment.

    Raises:
        ConfigError: If environment values are invalid.

    """
    config: dict[str, object] = {}

    if value := os.environ.get("GEOIPSYNC_DB_DIR"):
        config["database_directory"] = Path(value)

    if value := os.environ.get("GEOIPSYNC_DB_FILE"):
        config["database_file"] = value

    if value := os.environ.get("GEOIPSYNC_DB_URL"):
        config["database_url"] = _parse_url(value, "GEOIPSYNC_DB_URL")

    if value := os.environ.get("GEOIPSYNC_DIGEST_URL"):
        config["digest_url"] = _parse_url(value, "GEOIPSYNC_DIGEST_URL")

    if value := os.environ.get("GEOIPSYNC_UPDATE_INTERVAL"):
        config["update_interval"] = _parse_duration(value)

    if value := os.environ.get("GEOIPSYNC_REQUEST_TIMEOUT"):
        config["request_timeout"] = _parse_duration(value)

    if value := os.environ.get("GEOIPSYNC_RETRY_FOR"):
        config["retry_for"] = _parse_duration(value)

    if value := os.environ.get("GEOIPSYNC_LOCK_FILE"):
        config["lock_file"] = Path(value)

    if value := os.environ.get("GEOIPSYNC_PROXY"):
        config["_proxy_url"] = value

    if value := os.environ.get("GEOIPSYNC_PROXY_USER_PASSWORD"):
        config["_proxy_user_password"] = value

    if value := os.environ.get("GEOIPSYNC_VERBOSE"):
        config["verbose"] = _parse_bool(value, "GEOIPSYNC_VERBOSE")

    return config


def _build_proxy_url(
    proxy_url: str | None,
    proxy_user_password: str | None,
) -> str | None:
    """Build a complete proxy URL from components.

    Args:
        proxy_url: Proxy host/URL.
        proxy_user_password: Proxy credentials in "user:password" format.

    Returns:
        Complete proxy URL or None.

    Raises:
        ConfigError: If proxy configuration is invalid.

    """
    if not proxy_url:
        return None

    match = _SCHEME_RE.match(proxy_url)
    if not match:
        proxy_url = f"http://{proxy_url}"
    else:
        scheme = match.group(1).lower()
        if scheme not in ("http", "https", "socks5"):
            msg = f"unsupported proxy type: {scheme}"
            raise ConfigError(msg)

    try:
        parsed = urlparse(proxy_url)
        port = parsed.port
    except ValueError as e:
        msg = f"parsing proxy URL: {e}"
        raise ConfigError(msg) from e

    host = parsed.hostname or ""
    if port is None:
        port = 1080  # cURL's default

    netloc = f"{host}:{port}"

    if parsed.username is None and proxy_user_password:
        parts = proxy_user_password.split(":", 1)
        if len(parts) != 2:
            msg = "proxy user/password is malformed"
            raise ConfigError(msg)
        username, password = parts
        netloc = f"{username}:{password}@{netloc}"
    elif parsed.username:
        if parsed.password:
            netloc = f"{parsed.username}:{parsed.password}@{netloc}"
        else:
            netloc = f"{parsed.username}@{netloc}"

    return urlunparse((parsed.scheme, netloc, parsed.path, "", "", ""))
