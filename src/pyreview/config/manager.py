"""
Configuration Manager - review settings and skill locations.

Reads a YAML or JSON file on top of built-in defaults and applies
environment variable overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from loguru import logger


class ConfigManager:
    """
    Configuration manager for pyreview.

    Features:
    - YAML/JSON configuration files
    - Dot-notation access ("review.min_severity")
    - Environment variable overrides
    - Change watchers
    """

    DEFAULT_CONFIG = {
        "app": {
            "debug": False,
            "log_file": None,
        },
        "skills": {
            "builtin_dir": None,
            "user_dir": None,
            "state_path": None,
        },
        "router": {
            "min_confidence": 0.6,
            "min_margin": 0.2,
        },
        "review": {
            "include": ["*.py"],
            "exclude": [],
            "disabled_rules": [],
            "min_severity": "info",
            "max_findings": 500,
            "max_line_length": 100,
        },
    }

    ENV_OVERRIDES = {
        "PYREVIEW_DEBUG": ("app.debug", lambda x: x.lower() in ("1", "true", "yes")),
        "PYREVIEW_SKILLS_DIR": ("skills.builtin_dir", str),
        "PYREVIEW_USER_SKILLS_DIR": ("skills.user_dir", str),
        "PYREVIEW_MIN_SEVERITY": ("review.min_severity", lambda x: x.strip().lower()),
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file (defaults to ./pyreview.yaml)
        """
        self._config_path = Path(config_path) if config_path else Path("pyreview.yaml")
        self._config: Dict[str, Any] = self._deep_copy(self.DEFAULT_CONFIG)
        self._watchers: List[Callable[[str, Any], None]] = []
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        """Load configuration from file, falling back to defaults."""
        self._config = self._deep_copy(self.DEFAULT_CONFIG)

        if self._config_path.exists():
            try:
                content = self._config_path.read_text(encoding="utf-8")

                if self._config_path.suffix in [".yaml", ".yml"]:
                    file_config = yaml.safe_load(content) or {}
                else:
                    file_config = json.loads(content)

                if not isinstance(file_config, dict):
                    raise ValueError("configuration root must be a mapping")

                self._deep_merge(self._config, file_config)
                logger.info(f"Configuration loaded from {self._config_path}")

            except Exception as e:
                logger.warning(f"Failed to load config {self._config_path}: {e}, using defaults")
        else:
            logger.debug(f"No config file at {self._config_path}, using defaults")

        self._apply_env_overrides()
        self._loaded = True

    def save(self) -> None:
        """Save configuration to file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        if self._config_path.suffix in [".yaml", ".yml"]:
            content = yaml.safe_dump(self._config, default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(self._config, indent=2)

        self._config_path.write_text(content, encoding="utf-8")
        logger.debug(f"Configuration saved to {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "review.min_severity")
            default: Default value if not found or None

        Returns:
            Configuration value
        """
        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value and notify watchers."""
        parts = key.split(".")
        config = self._config

        for part in parts[:-1]:
            if not isinstance(config.get(part), dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

        for watcher in self._watchers:
            try:
                watcher(key, value)
            except Exception as e:
                logger.warning(f"Config watcher error: {e}")

    def watch(self, callback: Callable[[str, Any], None]) -> None:
        """Register a configuration change watcher."""
        self._watchers.append(callback)

    def unwatch(self, callback: Callable[[str, Any], None]) -> None:
        """Unregister a watcher."""
        if callback in self._watchers:
            self._watchers.remove(callback)

    def _apply_env_overrides(self) -> None:
        for env_var, (config_key, converter) in self.ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value:
                try:
                    self.set(config_key, converter(value))
                    logger.debug(f"Applied env override: {env_var}")
                except Exception as e:
                    logger.warning(f"Failed to apply {env_var}: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Deep merge override into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _deep_copy(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: self._deep_copy(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._deep_copy(item) for item in obj]
        return obj
