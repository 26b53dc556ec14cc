"""Factory for creating query parsers based on strategy names."""

import logging
from typing import Optional

from .config import SearchConfig
from .parser import QueryParser

logger = logging.getLogger(__name__)

SUPPORTED_STRATEGIES = ("pattern",)


def create_parser(strategy: str = "pattern", config: Optional[SearchConfig] = None, **kwargs) -> QueryParser:
    """Create a query parser for a recognition strategy.

    Args:
        strategy: Strategy identifier (currently only "pattern")
        config: Search configuration used for validation thresholds
        **kwargs: Additional arguments passed to the recognizer constructor

    Returns:
        QueryParser instance

    Raises:
        ValueError: If the strategy is not recognized
    """
    strategy_lower = strategy.lower().strip()

    if strategy_lower == "pattern":
        from .recognizers import PatternEntityRecognizer, PatternIntentClassifier
        logger.debug("Using pattern-based recognition")
        return QueryParser(
            recognizer=PatternEntityRecognizer(**kwargs),
            classifier=PatternIntentClassifier(),
            config=config,
        )

    raise ValueError(
        f"Unrecognized parser strategy: {strategy}. "
        f"Supported strategies: {', '.join(SUPPORTED_STRATEGIES)}"
    )
