"""Read-only access to tunnel definitions and credentials on disk."""

from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ConfigMissingError

CONFIG_SUFFIX = ".ovpn"
CREDENTIALS_SUFFIX = ".auth"


class FileConfigStore:
    """Resolves tunnel names to ``<config_dir>/<name>.ovpn`` files."""

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def resolve(self, name: str) -> Path:
        """
        Get the config file for a tunnel.

        Raises:
            ConfigMissingError: No config with that name exists
        """
        if not name or Path(name).name != name:
            raise ConfigMissingError(f"Invalid config name: {name!r}")
        path = self.config_dir / f"{name}{CONFIG_SUFFIX}"
        if not path.is_file():
            raise ConfigMissingError(f"Config file not found: {name}")
        return path

    def list_configs(self) -> List[Dict[str, str]]:
        """
        List available tunnel definitions.

        Names follow ``<user>-<server>-<protocol>``; the server and protocol
        parts are reported when present.
        """
        if not self.config_dir.is_dir():
            return []

        configs = []
        for path in sorted(self.config_dir.glob(f"*{CONFIG_SUFFIX}")):
            name = path.stem
            parts = name.split("-")
            configs.append({
                "name": name,
                "server": parts[1] if len(parts) > 1 else "unknown",
                "protocol": parts[2] if len(parts) > 2 else "udp",
            })
        return configs


class FileCredentialStore:
    """Looks up ``<credentials_dir>/<name>.auth`` auth-user-pass files."""

    def __init__(self, credentials_dir: Path):
        self.credentials_dir = Path(credentials_dir)

    def load(self, name: str) -> Optional[Path]:
        path = self.credentials_dir / f"{name}{CREDENTIALS_SUFFIX}"
        return path if path.is_file() else None
