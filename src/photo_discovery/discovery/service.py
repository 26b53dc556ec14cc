"""Public facade wiring indexer, parser, context manager, engine and adapters."""

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .adapter import format_interactive, format_structured
from .base import ActionRegistry, EntityRecognizer, IntentClassifier, PhotoProvider
from .commands import AgentCommandProcessor, CommandResult
from .config import SearchConfig
from .context import DEFAULT_CONVERSATION_ID, ConversationContextManager
from .engine import Pagination, SemanticSearchEngine
from .errors import ValidationError
from .indexer import PhotoIndex
from .models import (
    Intent,
    IntentType,
    ParsedQuery,
    SearchContext,
    SearchResult,
    SearchSuggestion,
    TokenizeResult,
    ValidationResult,
)
from .parser import QueryParser

logger = logging.getLogger(__name__)


class PhotoDiscoveryService:
    """Semantic photo discovery over an injected photo collection.

    Collaborators are passed in rather than looked up globally: the photo
    provider, the action registry that performs side effects, and the
    recognition strategies used by the parser.

    Args:
        config: Search tuning parameters
        provider: Source of photo records for ``index_photos()`` without arguments
        registry: Executor for side-effecting agent commands
        recognizer: Entity recognition strategy
        classifier: Intent classification strategy
        clock: Monotonic clock in seconds for the search soft deadline
        today: Reference date for relative periods
        sleep: Awaitable sleep for the debounce window
        base_url: Prefix for URLs in structured output
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        provider: Optional[PhotoProvider] = None,
        registry: Optional[ActionRegistry] = None,
        recognizer: Optional[EntityRecognizer] = None,
        classifier: Optional[IntentClassifier] = None,
        clock: Optional[Callable[[], float]] = None,
        today: Optional[Callable[[], date]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        base_url: str = "",
    ):
        self.config = config or SearchConfig()
        self.provider = provider
        self.base_url = base_url
        self.parser = QueryParser(recognizer=recognizer, classifier=classifier, config=self.config)
        self.contexts = ConversationContextManager(parser=self.parser, config=self.config)
        self.engine = SemanticSearchEngine(config=self.config, clock=clock, today=today, sleep=sleep)
        self.commands = AgentCommandProcessor(
            self.parser, self.engine, self.contexts, registry=registry, base_url=base_url
        )

    @property
    def index(self) -> PhotoIndex:
        return self.engine.index

    def _photos(self, photos: Optional[Iterable[Any]]) -> Iterable[Any]:
        if photos is not None:
            return photos
        if self.provider is None:
            raise ValueError("No photos given and no photo provider configured")
        return self.provider.load_photos()

    def index_photos(self, photos: Optional[Iterable[Any]] = None) -> PhotoIndex:
        """Replace the index with one built from ``photos`` (or the provider's collection)."""
        return self.engine.index_photos(self._photos(photos))

    async def index_photos_async(self, photos: Optional[Iterable[Any]] = None) -> PhotoIndex:
        return await self.engine.index_photos_async(self._photos(photos))

    async def search(
        self,
        query: Union[ParsedQuery, Dict[str, Any]],
        pagination: Union[Pagination, Dict[str, Any], None] = None,
    ) -> SearchResult:
        query = _as_query(query)
        return await self.engine.search(query, pagination)

    async def search_with_debounce(
        self,
        query: Union[ParsedQuery, Dict[str, Any]],
        pagination: Union[Pagination, Dict[str, Any], None] = None,
    ) -> Optional[SearchResult]:
        query = _as_query(query)
        return await self.engine.search_with_debounce(query, pagination)

    def tokenize(self, text: str) -> TokenizeResult:
        return self.parser.tokenize(text)

    def extract_intent(self, text: str) -> Intent:
        return self.parser.extract_intent(text)

    def extract_parameters(self, text: str, intent_type: Union[IntentType, str, None] = None) -> ParsedQuery:
        return self.parser.extract_parameters(text, intent_type)

    def validate_query(self, text: str) -> ValidationResult:
        return self.parser.validate_query(text)

    def suggest_refinements(self, text: str) -> List[SearchSuggestion]:
        return self.parser.suggest_refinements(text)

    def process_query(self, text: str, conversation_id: str = DEFAULT_CONVERSATION_ID) -> ParsedQuery:
        """Fold an utterance into its conversation and return the accumulated query."""
        return self.contexts.process_query(text, conversation_id)

    def get_context(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> Optional[SearchContext]:
        return self.contexts.get_context(conversation_id)

    def reset_context(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> bool:
        return self.contexts.reset(conversation_id)

    async def process_agent_command(self, command: Any) -> CommandResult:
        return await self.commands.process(command)

    def format_interactive(self, result: SearchResult) -> Dict[str, Any]:
        return format_interactive(result)

    def format_structured(self, result: SearchResult, query_text: Optional[str] = None) -> Dict[str, Any]:
        return format_structured(result, query_text, self.base_url)

    def stats(self) -> Dict[str, Any]:
        data = self.index.stats()
        data["conversations"] = self.contexts.conversation_count()
        data["config"] = self.config.to_dict()
        return data


def _as_query(query: Union[ParsedQuery, Dict[str, Any]]) -> ParsedQuery:
    if isinstance(query, ParsedQuery):
        return query
    try:
        return ParsedQuery.from_dict(query)
    except ValueError as e:
        raise ValidationError(str(e), field="query")
