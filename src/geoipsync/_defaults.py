"""Platform-specific defaults for geoipsync."""

from __future__ import annotations

import os
import platform
from pathlib import Path

DEFAULT_DATABASE_FILE = "GeoLite2-City.mmdb"
DEFAULT_DATABASE_URL = "https://geoip.zinclabs.dev/GeoLite2-City.mmdb"
DEFAULT_DIGEST_URL = "https://geoip.zinclabs.dev/GeoLite2-City.sha256"


def get_default_config_file() -> Path:
    """Get the platform-specific default configuration file path.

    Returns:
        Path to the default configuration file.

    """
    if platform.system() == "Windows":
        system_drive = os.environ.get("SYSTEMDRIVE", "C:")
        return Path(system_drive) / "ProgramData/geoipsync/geoipsync.conf"
    return Path("/usr/local/etc/geoipsync.conf")


def get_default_database_directory() -> Path:
    """Get the platform-specific default database directory path.

    Returns:
        Path to the default database directory.

    """
    if platform.system() == "Windows":
        system_drive = os.environ.get("SYSTEMDRIVE", "C:")
        return Path(system_drive) / "ProgramData/geoipsync/GeoIP"
    return Path("/usr/local/share/GeoIP")
