"""Configuration Manager for Strongbox"""

import logging
from pathlib import Path
from typing import Any, cast

import yaml


class ConfigManager:
    """Manages settings and the server registry for the archiver"""

    def __init__(self, config_dir: str | Path | None = None):
        self.config_dir = Path(config_dir or Path(__file__).parent.parent.parent / "config")
        self.settings_file = self.config_dir / "settings.yaml"
        self.servers_file = self.config_dir / "servers.yaml"

        # Check if config files exist, guide user to setup if not
        self._check_config_exists()

        self.settings = self._load_yaml(self.settings_file)
        self.servers = self._load_yaml(self.servers_file)

    def _check_config_exists(self) -> None:
        """Check if config files exist and provide setup guidance if not"""
        if not self.settings_file.exists():
            example = self.config_dir / "settings.yaml.example"
            if example.exists():
                logging.error(
                    "Configuration not found. Copy the example configs first:\n"
                    f"  cp {example} {self.settings_file}\n"
                    f"  cp {self.config_dir / 'servers.yaml.example'} {self.servers_file}"
                )
                raise SystemExit(1)

    def _load_yaml(self, file_path: Path) -> dict[str, Any]:
        """Load YAML configuration file"""
        if not file_path.exists():
            return {}

        with open(file_path) as f:
            return yaml.safe_load(f) or {}

    def _save_yaml(self, data: dict[str, Any], file_path: Path) -> None:
        """Save configuration to YAML file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value with optional default

        Args:
            key: Setting key (supports nested keys with dot notation, e.g., 'system.archive_directory')
            default: Default value if setting not found

        Returns:
            Setting value or default
        """
        keys = key.split(".")
        value: Any = self.settings

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default

    def get_archive_directory(self) -> Path:
        """Directory holding one <server id>.tar.gz per server"""
        return Path(self.get_setting("system.archive_directory", str(Path.home() / "strongbox" / "archives"))).expanduser()

    def get_data_directory(self) -> Path:
        """Root directory under which server data directories live by default"""
        return Path(self.get_setting("system.data_directory", str(Path.home() / "strongbox" / "volumes"))).expanduser()

    def get_server(self, server_id: str) -> dict[str, Any] | None:
        """Get server configuration by id

        Servers not listed in servers.yaml fall back to <data_directory>/<id>
        when that directory exists.
        """
        server = self.get_all_servers().get(server_id)
        if server:
            return cast("dict[str, Any]", server)

        fallback = self.get_data_directory() / server_id
        if fallback.is_dir():
            return {"path": str(fallback)}
        return None

    def get_all_servers(self) -> dict[str, Any]:
        """Get all registered server configurations

        YAML reads keys like `12345:` as integers; ids are always returned as strings.
        """
        return {str(key): value for key, value in (self.servers.get("servers") or {}).items()}

    def add_server(self, server_id: str, config: dict[str, Any]) -> None:
        """Register a server and persist servers.yaml"""
        if not self.servers.get("servers"):
            self.servers["servers"] = {}

        self.servers["servers"][server_id] = config
        self._save_yaml(self.servers, self.servers_file)

    def remove_server(self, server_id: str) -> bool:
        """Remove a server registration"""
        for key in list(self.servers.get("servers") or {}):
            if str(key) == server_id:
                del self.servers["servers"][key]
                self._save_yaml(self.servers, self.servers_file)
                return True
        return False
