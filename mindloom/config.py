"""
Configuration management for Mindloom.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized way to manage all settings and makes it easy to
modify behavior without changing code.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


DEFAULT_CATEGORY_SCHEMA = [
    "Social",
    "Technological",
    "Economic",
    "Environmental",
    "Political",
    "Legal",
    "Ethical",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "llm": {
        "provider": "ollama",
        "host": "http://localhost:11434",
        "api_url": None,
        "api_key": None,
        "model": "gemma3",
        "timeout": 60.0,
        "max_tokens": 4000
    },
    "mindmap": {
        "category_schema": DEFAULT_CATEGORY_SCHEMA,
        "tag_weighting": "high",
        "enable_multi_parent": True,
        "link_title_threshold": 90,
        "max_links_per_node": 5,
        "dedup_tag_threshold": 0.8,
        "dedup_min_shared_tags": 2
    },
    "content": {
        "max_source_files": 50,
        "include_content": True,
        "max_content_chars": 4000
    },
    "paths": {
        "mindmaps_folder": "AI Mindmaps",
        "database": "mindloom.db",
        "log_file": "mindloom.log"
    },
    "output": {
        "output_format": "both",
        "auto_save": True,
        "save_format": "both"
    },
    "versioning": {
        "auto_commit": False
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    }
}


class ConfigManager:
    """
    Manages configuration loading and access for Mindloom.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file, layered over the defaults."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError(f"Configuration root must be a mapping, got {type(loaded).__name__}")

            self._config = self._merge(self._get_default_config(), loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except Exception as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return copy.deepcopy(DEFAULT_CONFIG)

    @classmethod
    def _merge(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively overlay `override` onto `base`."""
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = cls._merge(base[key], value)
            else:
                base[key] = value
        return base

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "llm.model")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("llm.model")  # Returns "gemma3"
            config.get("mindmap.tag_weighting")  # Returns "high"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def llm_provider(self) -> str:
        return self.get("llm.provider", "ollama")

    @property
    def llm_host(self) -> str:
        return self.get("llm.host", "http://localhost:11434")

    @property
    def llm_api_url(self) -> Optional[str]:
        return self.get("llm.api_url")

    @property
    def llm_api_key(self) -> Optional[str]:
        return self.get("llm.api_key")

    @property
    def model_name(self) -> str:
        """Get AI model name."""
        return self.get("llm.model", "gemma3")

    @property
    def llm_timeout(self) -> float:
        return float(self.get("llm.timeout", 60.0))

    @property
    def max_tokens(self) -> int:
        return int(self.get("llm.max_tokens", 4000))

    @property
    def category_schema(self) -> List[str]:
        """Get the default ordered top-level category schema."""
        schema = self.get("mindmap.category_schema", DEFAULT_CATEGORY_SCHEMA)
        return [str(name) for name in schema]

    @property
    def tag_weighting(self) -> str:
        """Get the tag weighting mode (high, medium or low)."""
        return self.get("mindmap.tag_weighting", "high")

    @property
    def enable_multi_parent(self) -> bool:
        return bool(self.get("mindmap.enable_multi_parent", True))

    @property
    def max_source_files(self) -> int:
        return int(self.get("content.max_source_files", 50))

    @property
    def include_content(self) -> bool:
        return bool(self.get("content.include_content", True))

    @property
    def mindmaps_folder(self) -> str:
        """Get the folder saved mindmaps live in."""
        return self.get("paths.mindmaps_folder", "AI Mindmaps")

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("paths.database", "mindloom.db")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "mindloom.log")

    @property
    def output_format(self) -> str:
        return self.get("output.output_format", "both")

    @property
    def auto_save(self) -> bool:
        return bool(self.get("output.auto_save", True))

    @property
    def save_format(self) -> str:
        """Get save format: 'markdown' or 'both' (markdown + metadata backup)."""
        return self.get("output.save_format", "both")

    @property
    def auto_commit(self) -> bool:
        return bool(self.get("versioning.auto_commit", False))

    def linker_options(self) -> Dict[str, Any]:
        """Keyword arguments for MultiParentLinker."""
        return {
            "title_threshold": int(self.get("mindmap.link_title_threshold", 90)),
            "max_links_per_node": self.get("mindmap.max_links_per_node", 5),
        }

    def combiner_options(self) -> Dict[str, Any]:
        """Keyword arguments for MindmapCombiner deduplication."""
        return {
            "tag_threshold": float(self.get("mindmap.dedup_tag_threshold", 0.8)),
            "min_shared_tags": int(self.get("mindmap.dedup_min_shared_tags", 2)),
        }


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
