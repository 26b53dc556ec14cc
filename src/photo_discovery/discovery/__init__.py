"""Semantic photo discovery: indexing, query parsing, ranking and agent commands."""

from .adapter import format_interactive, format_structured, validate_structured_data
from .base import ActionRegistry, EntityRecognizer, IntentClassifier, PhotoProvider
from .commands import AgentCommandProcessor, CommandResult
from .config import SearchConfig, get_default_config
from .context import ConversationContextManager
from .engine import Pagination, SemanticSearchEngine
from .errors import (
    DiscoveryError,
    ExecutionTimeout,
    IndexCorruptedError,
    IndexingError,
    ParseAmbiguity,
    UnknownParameter,
    ValidationError,
)
from .factory import create_parser
from .indexer import MetadataIndexer, PhotoIndex
from .models import IntentType, ParsedQuery, PhotoMetadata, PhotoRecord, SearchResult
from .parser import QueryParser
from .providers import DirectoryPhotoProvider, JsonCollectionProvider
from .service import PhotoDiscoveryService

__all__ = [
    "ActionRegistry",
    "AgentCommandProcessor",
    "CommandResult",
    "ConversationContextManager",
    "DirectoryPhotoProvider",
    "DiscoveryError",
    "EntityRecognizer",
    "ExecutionTimeout",
    "IndexCorruptedError",
    "IndexingError",
    "IntentClassifier",
    "IntentType",
    "JsonCollectionProvider",
    "MetadataIndexer",
    "Pagination",
    "ParseAmbiguity",
    "ParsedQuery",
    "PhotoDiscoveryService",
    "PhotoIndex",
    "PhotoMetadata",
    "PhotoProvider",
    "PhotoRecord",
    "QueryParser",
    "SearchConfig",
    "SearchResult",
    "SemanticSearchEngine",
    "UnknownParameter",
    "ValidationError",
    "create_parser",
    "format_interactive",
    "format_structured",
    "get_default_config",
    "validate_structured_data",
]
