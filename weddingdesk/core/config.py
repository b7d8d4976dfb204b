"""
Configuration management for WeddingDesk
Handles loading and saving system settings, dashboard rules and
notification channel tuning
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional


PROJECT_ROOT = Path(__file__).parent.parent.parent


class Config:
    """Configuration manager for the coordination engine"""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to configuration directory (defaults to
                $WEDDINGDESK_CONFIG_DIR, then ./config)
        """
        if config_dir is None:
            env_dir = os.environ.get("WEDDINGDESK_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else PROJECT_ROOT / "config"

        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.settings_file = self.config_dir / "settings.json"
        self.dashboard_file = self.config_dir / "dashboard.json"
        self.notifications_file = self.config_dir / "notifications.json"

        # Load configurations
        self.settings = self._load_json(self.settings_file, self._default_settings())
        self.dashboard = self._load_json(self.dashboard_file, self._default_dashboard())
        self.notifications = self._load_json(
            self.notifications_file, self._default_notifications()
        )

    def _load_json(self, file_path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
        """Load JSON file or return default if file doesn't exist"""
        if file_path.exists():
            with open(file_path, 'r') as f:
                loaded = json.load(f)
            # Keys added in newer versions fall back to their defaults
            return {**default, **loaded}
        else:
            # Create file with defaults
            self._save_json(file_path, default)
            return default

    def _save_json(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to JSON file"""
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _default_settings(self) -> Dict[str, Any]:
        """Default system settings"""
        return {
            "database_path": "data/database/weddingdesk.db",
            "timezone": "America/Chicago",
            "log_level": "INFO",
        }

    def _default_dashboard(self) -> Dict[str, Any]:
        """Default dashboard aggregation rules"""
        return {
            "hidden_statuses": ["Completed", "Cancelled"],
            "upcoming_window_days": 183,
            "soon_window_days": 30,
            "default_sort": "due_date",
        }

    def _default_notifications(self) -> Dict[str, Any]:
        """Default notification channel tuning"""
        return {
            "silence_timeout_seconds": 90,
            "watchdog_interval_seconds": 15,
            "feed_limit": 25,
        }

    def _sections(self) -> Dict[str, Any]:
        return {
            "settings": (self.settings, self.settings_file),
            "dashboard": (self.dashboard, self.dashboard_file),
            "notifications": (self.notifications, self.notifications_file),
        }

    def get(self, key: str, section: str = "settings", default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            key: Configuration key
            section: Configuration section ('settings', 'dashboard', 'notifications')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        entry = self._sections().get(section)
        if entry is None:
            return default
        return entry[0].get(key, default)

    def set(self, key: str, value: Any, section: str = "settings") -> None:
        """
        Set configuration value and save to disk

        Args:
            key: Configuration key
            value: Value to set
            section: Configuration section ('settings', 'dashboard', 'notifications')
        """
        entry = self._sections().get(section)
        if entry is not None:
            config_dict, file_path = entry
            config_dict[key] = value
            self._save_json(file_path, config_dict)

    def get_database_path(self) -> Path:
        """Get full path to database file ($WEDDINGDESK_DB_PATH wins)"""
        env_path = os.environ.get("WEDDINGDESK_DB_PATH")
        if env_path:
            return Path(env_path)
        path = Path(self.settings["database_path"])
        return path if path.is_absolute() else PROJECT_ROOT / path
