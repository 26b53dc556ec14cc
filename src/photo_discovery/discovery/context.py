"""Conversational search context across query turns."""

import logging
import re
from dataclasses import fields, replace
from datetime import datetime
from typing import Dict, Optional

from .config import SearchConfig
from .models import ParsedQuery, SearchContext
from .parser import QueryParser

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"

# Phrases that mark an utterance as narrowing or extending the current search
REFINEMENT_CUES = re.compile(
    r"\b(?:but\s+only|just\s+the\s+ones|only\s+(?:from|with|in|the)|also|plus|except|narrow|what\s+about|and\s+only)\b",
    re.I,
)

NEW_TOPIC = "new_topic"
REFINEMENT = "refinement"


def merge_queries(current: ParsedQuery, update: ParsedQuery) -> ParsedQuery:
    """Merge ``update`` into ``current`` group by group.

    List fields are unioned keeping first-seen order; scalar fields in the
    update overwrite the current ones. Groups absent from the update are kept.
    """
    merged = {}
    for name in ParsedQuery.GROUP_TYPES:
        old = getattr(current, name)
        new = getattr(update, name)
        if new is None or new.is_empty():
            merged[name] = old
            continue
        if old is None or old.is_empty() or name == "operation":
            merged[name] = replace(new)
            continue
        values = {}
        for f in fields(old):
            old_value, new_value = getattr(old, f.name), getattr(new, f.name)
            if isinstance(old_value, list):
                union = list(old_value)
                lowered = {v.lower() for v in union}
                for value in new_value:
                    if value.lower() not in lowered:
                        union.append(value)
                        lowered.add(value.lower())
                values[f.name] = union
            else:
                values[f.name] = old_value if new_value is None else new_value
        merged[name] = type(old)(**values)
    return ParsedQuery(**merged)


class ConversationContextManager:
    """Keep one accumulated query per conversation.

    A turn either refines the current context (merge) or starts a new topic
    (replace). Contexts never expire; call ``reset`` to drop one.
    """

    def __init__(self, parser: Optional[QueryParser] = None, config: Optional[SearchConfig] = None):
        self.config = config or SearchConfig()
        self.parser = parser or QueryParser(config=self.config)
        self._contexts: Dict[str, SearchContext] = {}

    def process_query(self, text: str, conversation_id: str = DEFAULT_CONVERSATION_ID) -> ParsedQuery:
        """Parse an utterance and fold it into the conversation's context.

        Args:
            text: Natural-language utterance
            conversation_id: Conversation the utterance belongs to

        Returns:
            The accumulated query after this turn
        """
        update = self.parser.extract_parameters(text)
        context = self._contexts.get(conversation_id)
        if context is None:
            context = SearchContext(conversation_id=conversation_id)
            self._contexts[conversation_id] = context

        decision = self.classify_turn(text, context.query, update)
        if decision == NEW_TOPIC:
            context.query = update
        else:
            context.query = merge_queries(context.query, update)

        context.turns += 1
        context.last_decision = decision
        context.updated_at = datetime.now()
        logger.debug(f"Conversation {conversation_id} turn {context.turns}: {decision}")
        return context.query

    def classify_turn(self, text: str, current: ParsedQuery, update: ParsedQuery) -> str:
        """Decide whether an utterance refines the current context or replaces it."""
        if current.is_empty():
            return NEW_TOPIC
        if REFINEMENT_CUES.search(text):
            return REFINEMENT

        new_terms = update.semantic_terms()
        old_terms = current.semantic_terms()
        if not new_terms or not old_terms:
            return REFINEMENT
        overlap = len(set(new_terms) & set(old_terms)) / len(new_terms)
        if overlap <= self.config.topic_overlap_threshold:
            return NEW_TOPIC
        return REFINEMENT

    def get_context(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> Optional[SearchContext]:
        return self._contexts.get(conversation_id)

    def reset(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> bool:
        """Forget a conversation. Returns whether it existed."""
        return self._contexts.pop(conversation_id, None) is not None

    def conversation_count(self) -> int:
        return len(self._contexts)
