"""photo-discovery - semantic photo search with natural-language queries."""

__version__ = "0.1.0"
__author__ = "photo-discovery contributors"
__license__ = "MIT"

import logging

from .discovery import PhotoDiscoveryService, SearchConfig

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "PhotoDiscoveryService",
    "SearchConfig",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
