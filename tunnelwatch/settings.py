"""Application settings loaded from an INI file."""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .logging_utility import logger

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_FILE = PROJECT_ROOT / "config" / "tunnelwatch.conf"
SECTION = "tunnelwatch"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the tunnel supervisor and poller."""
    openvpn_binary: str = "openvpn"
    use_sudo: bool = False
    verb: int = 3
    config_dir: Path = PROJECT_ROOT / "config" / "tunnels"
    credentials_dir: Path = PROJECT_ROOT / "config" / "credentials"
    log_dir: Path = PROJECT_ROOT / "logs" / "tunnels"
    grace_period: float = 2.0
    tail_lines: int = 200
    stop_timeout: float = 5.0


def _resolve_path(value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


def load_settings(config_file: Optional[str] = None) -> Settings:
    """
    Read settings from the ``[tunnelwatch]`` section of an INI file.

    Args:
        config_file: Path to the INI file. Falls back to ``TUNNELWATCH_CONFIG``
            and then to ``config/tunnelwatch.conf``.

    Returns:
        Settings with defaults for every missing key
    """
    config_file = config_file or os.environ.get("TUNNELWATCH_CONFIG") or str(DEFAULT_CONFIG_FILE)

    config = configparser.ConfigParser()
    read_files = config.read(config_file)
    if not read_files:
        logger.warning(f"Settings file {config_file} not found, using defaults")
        return Settings()
    if not config.has_section(SECTION):
        logger.warning(f"No [{SECTION}] section in {config_file}, using defaults")
        return Settings()

    defaults = Settings()
    section = config[SECTION]
    try:
        return Settings(
            openvpn_binary=section.get("openvpn_binary", defaults.openvpn_binary),
            use_sudo=section.getboolean("use_sudo", defaults.use_sudo),
            verb=section.getint("verb", defaults.verb),
            config_dir=_resolve_path(section["config_dir"]) if "config_dir" in section else defaults.config_dir,
            credentials_dir=(
                _resolve_path(section["credentials_dir"])
                if "credentials_dir" in section else defaults.credentials_dir
            ),
            log_dir=_resolve_path(section["log_dir"]) if "log_dir" in section else defaults.log_dir,
            grace_period=section.getfloat("grace_period", defaults.grace_period),
            tail_lines=section.getint("tail_lines", defaults.tail_lines),
            stop_timeout=section.getfloat("stop_timeout", defaults.stop_timeout),
        )
    except ValueError as e:
        raise ValueError(f"Invalid settings in {config_file}: {str(e)}")
