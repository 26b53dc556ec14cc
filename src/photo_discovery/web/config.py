"""Configuration for photo-discovery web API."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from ..discovery.config import CONFIG_FILE_PATH, SearchConfig

logger = logging.getLogger(__name__)

# Default configuration for end-users
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000

# Environment variables
ENV_COLLECTION = "PHOTO_DISCOVERY_COLLECTION"
ENV_BASE_URL = "PHOTO_DISCOVERY_BASE_URL"


class WebConfig:
    """Configuration manager for web application."""

    def __init__(
        self,
        collection_path: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        base_url: Optional[str] = None,
        search: Optional[SearchConfig] = None,
    ):
        collection_path = collection_path or os.environ.get(ENV_COLLECTION)
        # Expand ~ in collection_path if present
        self.collection_path = os.path.expanduser(collection_path) if collection_path else None
        self.host = host or DEFAULT_HOST
        self.port = port or DEFAULT_PORT
        self.base_url = (base_url or os.environ.get(ENV_BASE_URL) or "").rstrip("/")
        self.search = search or SearchConfig()

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "WebConfig":
        """Load configuration from the "web" section of the JSON config file."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        search = SearchConfig.load_from_file(config_path)
        if not config_path.exists():
            return cls(search=search)

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
            return cls(search=search)

        web = config_data.get("web", {}) if isinstance(config_data, dict) else {}
        return cls(
            collection_path=web.get("collection_path"),
            host=web.get("host"),
            port=web.get("port"),
            base_url=web.get("base_url"),
            search=search,
        )

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to JSON file."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        # Ensure config directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_data = {
            "web": {
                "collection_path": self.collection_path,
                "host": self.host,
                "port": self.port,
                "base_url": self.base_url,
            },
            "search": self.search.to_dict(),
        }
        try:
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.error(f"Failed to save config file {config_path}: {e}")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "collection_path": self.collection_path,
            "host": self.host,
            "port": self.port,
            "base_url": self.base_url,
            "search": self.search.to_dict(),
        }


def get_default_config() -> WebConfig:
    """Create default configuration for web application."""
    return WebConfig.load_from_file()
