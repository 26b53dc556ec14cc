"""Configuration for search, matching and conversational context."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Default tuning values
DEFAULT_FUZZY_THRESHOLD = 0.6  # Minimum similarity for a fuzzy term match
DEFAULT_FUZZY_DISCOUNT = 0.8  # Weight applied to fuzzy matches relative to exact ones
DEFAULT_DEBOUNCE_MS = 300
DEFAULT_PERFORMANCE_THRESHOLD_MS = 3000
DEFAULT_MAX_RESULTS = 50
DEFAULT_TOPIC_OVERLAP_THRESHOLD = 0.0  # Semantic overlap at or below this starts a new topic
DEFAULT_MIN_PARAMETERS = 1  # Fewer extractable parameters than this is too vague
DEFAULT_INDEX_BATCH_SIZE = 500  # Records indexed between yields to the event loop

# Configuration file path
CONFIG_FILE_PATH = Path.home() / ".photo-discovery" / "config.json"

# Environment variable prefix for overrides, e.g. PHOTO_DISCOVERY_FUZZY_THRESHOLD
ENV_PREFIX = "PHOTO_DISCOVERY_"


class SearchConfig:
    """Tunable parameters of the discovery engine."""

    FIELDS = {
        "fuzzy_threshold": float,
        "fuzzy_discount": float,
        "debounce_ms": float,
        "performance_threshold_ms": float,
        "max_results": int,
        "topic_overlap_threshold": float,
        "min_parameters": int,
        "index_batch_size": int,
    }

    def __init__(
        self,
        fuzzy_threshold: Optional[float] = None,
        fuzzy_discount: Optional[float] = None,
        debounce_ms: Optional[float] = None,
        performance_threshold_ms: Optional[float] = None,
        max_results: Optional[int] = None,
        topic_overlap_threshold: Optional[float] = None,
        min_parameters: Optional[int] = None,
        index_batch_size: Optional[int] = None,
    ):
        self.fuzzy_threshold = DEFAULT_FUZZY_THRESHOLD if fuzzy_threshold is None else fuzzy_threshold
        self.fuzzy_discount = DEFAULT_FUZZY_DISCOUNT if fuzzy_discount is None else fuzzy_discount
        self.debounce_ms = DEFAULT_DEBOUNCE_MS if debounce_ms is None else debounce_ms
        self.performance_threshold_ms = (
            DEFAULT_PERFORMANCE_THRESHOLD_MS if performance_threshold_ms is None else performance_threshold_ms
        )
        self.max_results = max_results or DEFAULT_MAX_RESULTS
        self.topic_overlap_threshold = (
            DEFAULT_TOPIC_OVERLAP_THRESHOLD if topic_overlap_threshold is None else topic_overlap_threshold
        )
        self.min_parameters = DEFAULT_MIN_PARAMETERS if min_parameters is None else min_parameters
        self.index_batch_size = index_batch_size or DEFAULT_INDEX_BATCH_SIZE

        if not 0.0 < self.fuzzy_threshold <= 1.0:
            raise ValueError(f"fuzzy_threshold must be in (0, 1], got {self.fuzzy_threshold}")
        if not 0.0 < self.fuzzy_discount < 1.0:
            raise ValueError(f"fuzzy_discount must be in (0, 1), got {self.fuzzy_discount}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchConfig":
        """Create from a dictionary, ignoring unknown keys."""
        values = {}
        for key, caster in cls.FIELDS.items():
            if data.get(key) is not None:
                values[key] = caster(data[key])
        return cls(**values)

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "SearchConfig":
        """Load configuration from JSON file, then apply environment overrides."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                # Either a flat file or one with a "search" section
                data = loaded.get("search", loaded) if isinstance(loaded, dict) else {}
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config file {config_path}: {e}")

        data.update(cls._env_overrides())
        try:
            return cls.from_dict(data)
        except ValueError as e:
            logger.warning(f"Invalid search configuration ({e}), using defaults")
            return cls()

    @classmethod
    def _env_overrides(cls) -> Dict[str, Any]:
        overrides = {}
        for key in cls.FIELDS:
            value = os.environ.get(ENV_PREFIX + key.upper())
            if value is not None:
                overrides[key] = value
        return overrides

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Save the "search" section of the JSON file, keeping its other sections."""
        if config_path is None:
            config_path = CONFIG_FILE_PATH

        config_data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                # A flat file holds only search settings and is replaced
                if isinstance(loaded, dict) and not set(loaded) & set(self.FIELDS):
                    config_data = loaded
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to read config file {config_path}, overwriting: {e}")
        config_data["search"] = self.to_dict()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(config_data, f, indent=2)
        except IOError as e:
            logger.error(f"Failed to save config file {config_path}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {key: getattr(self, key) for key in self.FIELDS}


def get_default_config() -> SearchConfig:
    """Create default search configuration."""
    return SearchConfig.load_from_file()
