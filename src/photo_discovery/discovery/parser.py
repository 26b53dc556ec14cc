"""Natural-language query parser for photo discovery."""

import logging
import re
from datetime import date
from typing import List, Optional, Tuple, Union

from .base import EntityRecognizer, IntentClassifier
from .config import SearchConfig
from .models import (
    BulkOperation,
    Entity,
    Intent,
    IntentType,
    ParsedQuery,
    PeopleFilter,
    SearchSuggestion,
    SemanticFilter,
    SpatialFilter,
    TechnicalFilter,
    TemporalFilter,
    TokenizeResult,
    ValidationResult,
)
from .recognizers import KNOWN_LOCATIONS, PatternEntityRecognizer, PatternIntentClassifier
from .temporal import (
    find_malformed_dates,
    last_day_of_month,
    month_number,
    normalize_period,
    parse_date_token,
)

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r'"([^"]+)"|“([^”]+)”|([\w\'-]+)')
_RANGE_RE = re.compile(r"^(?:between|from)\s+(.+?)\s+(?:and|to|until|through)\s+(.+)$", re.I)
_NAME_SPLIT_RE = re.compile(r"\s*,\s*|\s+and\s+")

_TARGET_WORD = r"(?!(?:to|into|from)\b)[\w'-]+"
_TARGET_RE = re.compile(
    rf"\s*\b(to|into|from)\s+(?:the\s+|my\s+|a\s+|new\s+)*"
    rf"(?:\"([^\"]+)\"|({_TARGET_WORD}(?:\s+{_TARGET_WORD}){{0,3}}?))\s+(album|folder|collection)\b",
    re.I,
)
_OPERATION_VERB_RE = re.compile(r"\b(add|move|copy|organize|export|delete|remove|download|share)\b", re.I)

# Generic people words and the people filter field they set
_PEOPLE_WORD_FIELDS = {
    "family": ("relationship", "family"),
    "friends": ("relationship", "friends"),
    "colleagues": ("relationship", "colleagues"),
    "couple": ("group_size", "couple"),
    "kids": ("age_group", "children"),
    "children": ("age_group", "children"),
    "adults": ("age_group", "adults"),
    "teens": ("age_group", "teens"),
    "group": ("group_size", "group"),
    "crowd": ("group_size", "group"),
    "solo": ("group_size", "solo"),
    "alone": ("group_size", "solo"),
}

VAGUE_TIME_WORDS = ("old", "older", "vintage", "recent", "new", "newer")
INTENT_CONFIDENCE_FLOOR = 0.5


class _Bound:
    """One side of a parsed date range."""

    def __init__(self, text: str):
        self.text = text
        self.month: Optional[int] = None
        self.year: Optional[int] = None
        self.exact: Optional[date] = None
        words = text.split()
        if len(words) == 1 and re.fullmatch(r"\d{4}", words[0]):
            self.year = int(words[0])
        elif re.fullmatch(r"[\d/-]+", text):
            self.exact = parse_date_token(text)
        else:
            self.month = month_number(words[0])
            if len(words) > 1 and words[1].isdigit():
                self.year = int(words[1])

    @property
    def is_month_only(self) -> bool:
        return self.month is not None and self.year is None and self.exact is None


class QueryParser:
    """Turn free text into tokens, entities, an intent and typed filters.

    Recognition is delegated to an ``EntityRecognizer`` and an
    ``IntentClassifier`` so a statistical model can replace the default
    pattern strategies without changing this contract.
    """

    def __init__(
        self,
        recognizer: Optional[EntityRecognizer] = None,
        classifier: Optional[IntentClassifier] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.recognizer = recognizer or PatternEntityRecognizer()
        self.classifier = classifier or PatternIntentClassifier()
        self.config = config or SearchConfig()

    def tokenize(self, text: str) -> TokenizeResult:
        """Split text into lowercase tokens, keeping quoted phrases whole, and tag entities."""
        tokens = []
        for match in _TOKEN_RE.finditer(text):
            phrase = match.group(1) or match.group(2)
            if phrase is not None:
                if phrase.strip():
                    tokens.append(phrase.strip())
                continue
            token = match.group(3).lower().strip("'-")
            if token:
                tokens.append(token)
        return TokenizeResult(tokens=tokens, entities=self.recognizer.recognize(text), original_query=text)

    def extract_intent(self, text: str) -> Intent:
        """Classify a query as discovery, filter or bulk_operation."""
        return self.classifier.classify(text)

    def extract_parameters(self, text: str, intent_type: Union[IntentType, str, None] = None) -> ParsedQuery:
        """Extract typed filter groups from text.

        Args:
            text: Natural-language query
            intent_type: Intent of the query; classified from the text when omitted

        Returns:
            ParsedQuery with only the groups the text populates
        """
        if intent_type is None:
            intent_type = self.extract_intent(text).type
        intent_type = IntentType(intent_type)

        operation = None
        if intent_type == IntentType.BULK_OPERATION:
            operation, text = self._extract_operation(text)

        semantic = SemanticFilter()
        spatial = SpatialFilter()
        temporal = TemporalFilter()
        people = PeopleFilter()
        technical = TechnicalFilter()

        for entity in self.recognizer.recognize(text):
            if entity.type in ("time_period", "date"):
                self._apply_temporal(entity, temporal)
            elif entity.type == "location":
                if spatial.location is None:
                    spatial.location = entity.value
            elif entity.type == "person":
                self._apply_people(entity, people)
            elif entity.type == "camera":
                technical.camera = entity.value
            elif entity.type == "object":
                _append_unique(semantic.objects, entity.value)
            elif entity.type == "scene":
                _append_unique(semantic.scenes, entity.value)
            elif entity.type == "mood":
                _append_unique(semantic.mood, entity.value)
            elif entity.type == "keyword_phrase":
                if entity.value.lower() in KNOWN_LOCATIONS and spatial.location is None:
                    spatial.location = entity.value
                else:
                    _append_unique(semantic.keywords, entity.value)

        query = ParsedQuery(
            semantic=None if semantic.is_empty() else semantic,
            spatial=None if spatial.is_empty() else spatial,
            temporal=None if temporal.is_empty() else temporal,
            people=None if people.is_empty() else people,
            technical=None if technical.is_empty() else technical,
            operation=operation,
        )
        logger.debug(f"Parameters for {text!r}: {query.to_dict()}")
        return query

    def validate_query(self, text: str) -> ValidationResult:
        """Check a query for vagueness, unclear intent and malformed dates."""
        tokenized = self.tokenize(text)
        intent = self.extract_intent(text)
        parameters = self.extract_parameters(text, intent.type)
        count = parameters.parameter_count()

        issues = []
        if count == 0:
            issues.append("no_parameters")
        if count < self.config.min_parameters:
            issues.append("too_vague")
        if intent.confidence < INTENT_CONFIDENCE_FLOOR:
            issues.append("unclear_intent")

        errors = [f"Invalid date format: '{token}'" for token in find_malformed_dates(text)]

        warnings = []
        if intent.type == IntentType.BULK_OPERATION and (parameters.operation is None or not parameters.operation.target):
            if parameters.operation is None or parameters.operation.action in (None, "add_to_album"):
                warnings.append("Bulk operation has no target album")

        confidence = min(intent.confidence * 0.6 + count * 0.1 + len(tokenized.entities) * 0.05, 1.0)
        return ValidationResult(
            is_valid=not issues and not errors,
            confidence=confidence,
            extractable_parameters=count,
            issues=issues,
            errors=errors,
            warnings=warnings,
        )

    def suggest_refinements(self, text: str) -> List[SearchSuggestion]:
        """Suggest how to make a vague or underspecified query more specific."""
        validation = self.validate_query(text)
        parameters = self.extract_parameters(text)
        lowered_tokens = set(self.tokenize(text).tokens)
        vague_time = bool(lowered_tokens.intersection(VAGUE_TIME_WORDS))

        underspecified = not validation.is_valid or validation.extractable_parameters < 2 or vague_time
        if not underspecified:
            return []

        suggestions = []
        if "too_vague" in validation.issues:
            suggestions.append(SearchSuggestion(
                type="add_context",
                suggestion="Try to be more specific about what you're looking for",
                examples=['Instead of "photos", try "sunset photos from our beach vacation"'],
            ))
        if "unclear_intent" in validation.issues:
            suggestions.append(SearchSuggestion(
                type="clarify_intent",
                suggestion="Start with what you want to do",
                examples=["show me sunset photos", "find pictures with Sarah", "add beach photos to Summer album"],
            ))
        if validation.errors:
            suggestions.append(SearchSuggestion(
                type="date_format",
                suggestion="Use a real calendar date",
                examples=["photos from 2023-06-15", "photos between 06/01/2023 and 06/30/2023"],
            ))
        if parameters.temporal is None or vague_time:
            suggestions.append(SearchSuggestion(
                type="temporal_refinement",
                suggestion="Specify a time period",
                examples=["photos from 2020", "photos from last summer", "photos between June and August"],
            ))
        if parameters.spatial is None:
            suggestions.append(SearchSuggestion(
                type="spatial_refinement",
                suggestion="Add a location",
                examples=["beach photos in Hawaii", "pictures at Central Park"],
            ))
        if parameters.semantic is None:
            suggestions.append(SearchSuggestion(
                type="semantic_refinement",
                suggestion="Add descriptive keywords",
                examples=["sunset beach photos", "family vacation pictures", "snowy mountain landscapes"],
            ))
        return suggestions

    def _extract_operation(self, text: str) -> Tuple[BulkOperation, str]:
        """Pull the bulk action and its target out of the text.

        The target clause ("to Summer album") is removed so that it is not
        read as a search filter.
        """
        verb_match = _OPERATION_VERB_RE.search(text)
        verb = verb_match.group(1).lower() if verb_match else None

        target = None
        container = "album"
        direction = None
        target_match = _TARGET_RE.search(text)
        if target_match:
            direction = target_match.group(1).lower()
            target = (target_match.group(2) or target_match.group(3)).strip()
            container = target_match.group(4).lower()
            text = text[:target_match.start()] + text[target_match.end():]

        if verb in ("delete", "remove"):
            action = f"remove_from_{container}" if direction == "from" else "delete_photos"
        elif verb in ("export", "download", "share"):
            action = f"{verb}_photos"
        elif verb is not None and target is not None:
            action = f"add_to_{container}"
        elif verb is not None:
            action = "add_to_album"
        else:
            action = None
        return BulkOperation(action=action, target=target), text

    def _apply_temporal(self, entity: Entity, temporal: TemporalFilter) -> None:
        value = entity.value.strip()

        range_match = _RANGE_RE.match(value)
        if range_match:
            self._apply_range(_Bound(range_match.group(1)), _Bound(range_match.group(2)), temporal)
            return

        if entity.type == "date":
            exact = parse_date_token(value)
            if exact is not None:
                temporal.date_range = (exact, exact)
            else:
                logger.debug(f"Ignoring malformed date {value!r}")
            return

        period = normalize_period(value)
        if period is not None:
            temporal.relative_period = period
            return

        if re.fullmatch(r"\d{4}", value):
            temporal.year = int(value)
            return

        bound = _Bound(value)
        if bound.month is not None:
            if temporal.start_month is None:
                temporal.start_month = bound.month
            else:
                temporal.end_month = bound.month
            if bound.year is not None:
                temporal.year = bound.year

    def _apply_range(self, start: _Bound, end: _Bound, temporal: TemporalFilter) -> None:
        if start.is_month_only and end.is_month_only:
            temporal.start_month = start.month
            temporal.end_month = end.month
            return

        wraps = start.month is not None and end.month is not None and start.month > end.month
        start_year = start.year if start.year is not None else (end.year - 1 if wraps else end.year) if end.year else None
        end_year = end.year if end.year is not None else (start.year + 1 if wraps else start.year) if start.year else None

        if start.exact is not None:
            start_date = start.exact
        elif start_year is not None:
            start_date = date(start_year, start.month or 1, 1)
        else:
            start_date = None

        if end.exact is not None:
            end_date = end.exact
        elif end_year is not None:
            end_date = last_day_of_month(end_year, end.month) if end.month else date(end_year, 12, 31)
        else:
            end_date = None

        if start_date is None or end_date is None:
            logger.debug(f"Could not resolve date range {start.text!r} .. {end.text!r}")
            return
        if start_date > end_date:
            start_date, end_date = end_date, start_date
        temporal.date_range = (start_date, end_date)

    def _apply_people(self, entity: Entity, people: PeopleFilter) -> None:
        lowered = entity.value.lower()
        if lowered in _PEOPLE_WORD_FIELDS:
            field_name, value = _PEOPLE_WORD_FIELDS[lowered]
            setattr(people, field_name, value)
            return
        if lowered == "people" or not entity.value[:1].isupper():
            return
        for name in _NAME_SPLIT_RE.split(entity.value):
            if name.strip():
                _append_unique(people.named_people, name.strip())


def _append_unique(values: List[str], value: str) -> None:
    if value.lower() not in (v.lower() for v in values):
        values.append(value)
