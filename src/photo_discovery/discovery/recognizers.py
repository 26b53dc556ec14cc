"""Pattern-based entity recognition and intent classification."""

import logging
import re
from typing import Callable, List, NamedTuple, Optional, Pattern, Tuple

from .base import EntityRecognizer, IntentClassifier
from .models import Entity, Intent, IntentType
from .temporal import MONTH_PATTERN, MONTHS

logger = logging.getLogger(__name__)

# Vocabularies of common photo subjects (singular forms)
OBJECT_VOCABULARY = (
    "sunset", "sunrise", "mountain", "ocean", "lake", "river", "waterfall", "tree",
    "flower", "animal", "dog", "cat", "bird", "horse", "car", "bicycle", "boat",
    "building", "bridge", "food", "cake", "snow", "sky", "cloud", "sea", "wave",
)
SCENE_VOCABULARY = (
    "landscape", "portrait", "macro", "street", "architecture", "nature", "urban",
    "rural", "indoor", "outdoor", "night", "beach", "forest", "desert", "city",
    "park", "garden", "vacation", "wedding", "party", "travel", "holiday",
    "birthday", "concert", "sport", "hiking", "selfie",
)
MOOD_VOCABULARY = (
    "happy", "joyful", "romantic", "peaceful", "calm", "serene", "dramatic",
    "moody", "cozy", "vibrant", "nostalgic", "melancholy", "fun", "energetic",
)
CAMERA_MAKES = (
    "canon", "nikon", "sony", "fujifilm", "fuji", "olympus", "panasonic", "leica",
    "pentax", "iphone", "pixel", "samsung", "gopro", "dji",
)
PEOPLE_WORDS = (
    "family", "friends", "colleagues", "couple", "kids", "children", "adults",
    "teens", "group", "crowd", "people", "solo", "alone",
)
# Place names recognized regardless of capitalization
KNOWN_LOCATIONS = (
    "new york", "los angeles", "san francisco", "central park", "swiss alps",
    "hawaii", "paris", "london", "tokyo", "rome", "berlin", "california",
    "florida", "yosemite", "iceland", "italy", "japan", "alps",
)
_NOT_LOCATIONS = set(MONTHS) | {
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "christmas", "easter", "me", "my", "the",
} | set(OBJECT_VOCABULARY) | set(SCENE_VOCABULARY) | set(MOOD_VOCABULARY) | set(CAMERA_MAKES)

# Bounds of a date range: month (optionally with year), ISO date, US date or year
_RANGE_BOUND = rf"(?:(?:{MONTH_PATTERN})(?:\s+\d{{4}})?|\d{{4}}-\d{{1,2}}-\d{{1,2}}|\d{{1,2}}/\d{{1,2}}/\d{{2,4}}|\d{{4}})"


def _words(vocabulary) -> str:
    return "|".join(re.escape(word) for word in sorted(vocabulary, key=len, reverse=True))


def _is_location(value: str) -> bool:
    return value.lower() not in _NOT_LOCATIONS


def _is_name(value: str) -> bool:
    lowered = value.lower()
    return lowered not in CAMERA_MAKES and lowered not in KNOWN_LOCATIONS and lowered not in _NOT_LOCATIONS


class EntityPattern(NamedTuple):
    """A regex that tags matches with an entity type."""
    type: str
    regex: Pattern
    confidence: float
    group: int = 1  # 0 tags the whole match
    accept: Optional[Callable[[str], bool]] = None
    span_group: Optional[int] = None  # defaults to group


ENTITY_PATTERNS: Tuple[EntityPattern, ...] = (
    # Temporal
    EntityPattern("time_period", re.compile(rf"\bbetween\s+{_RANGE_BOUND}\s+and\s+{_RANGE_BOUND}\b", re.I), 0.85, 0),
    EntityPattern("time_period", re.compile(rf"\bfrom\s+{_RANGE_BOUND}\s+(?:to|until|through)\s+{_RANGE_BOUND}\b", re.I), 0.85, 0),
    EntityPattern("time_period", re.compile(r"\b((?:last|this|next)\s+(?:year|month|week|spring|summer|fall|autumn|winter))\b", re.I), 0.8),
    EntityPattern("time_period", re.compile(r"\b((?:past|last)\s+\d+\s+(?:days?|weeks?|months?|years?))\b", re.I), 0.8),
    EntityPattern("time_period", re.compile(r"\b(today|yesterday)\b", re.I), 0.8),
    EntityPattern("date", re.compile(r"\b(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}/\d{1,2}/\d{2,4})\b"), 0.9),
    EntityPattern("time_period", re.compile(rf"\b((?:{MONTH_PATTERN})(?:\s+\d{{4}})?)\b", re.I), 0.8),
    EntityPattern("time_period", re.compile(r"\b((?:19|20)\d{2})\b"), 0.8),
    # Spatial
    EntityPattern(
        "location",
        re.compile(r"\b(?:[Ii]n|[Aa]t|[Nn]ear|[Ff]rom|[Aa]round)\s+(?:the\s+)?([A-Z][\w'-]*(?:\s+[A-Z][\w'-]*)*)"),
        0.7,
        accept=_is_location,
    ),
    EntityPattern("location", re.compile(rf"\b({_words(KNOWN_LOCATIONS)})\b", re.I), 0.6),
    # People
    EntityPattern("person", re.compile(r"\bwith\s+([A-Z][a-z]+(?:(?:\s*,\s*|\s+and\s+|\s+)[A-Z][a-z]+)*)"), 0.8, accept=_is_name),
    EntityPattern("person", re.compile(rf"\b({_words(PEOPLE_WORDS)})\b", re.I), 0.8),
    # Technical
    EntityPattern("camera", re.compile(rf"\b({_words(CAMERA_MAKES)})\b", re.I), 0.8),
    # Semantic
    EntityPattern("mood", re.compile(rf"\b({_words(MOOD_VOCABULARY)})\b", re.I), 0.6),
    EntityPattern("scene", re.compile(rf"\b({_words(SCENE_VOCABULARY)})(?:s|es)?\b", re.I), 0.7, span_group=0),
    EntityPattern("object", re.compile(rf"\b({_words(OBJECT_VOCABULARY)})(?:s|es)?\b", re.I), 0.6, span_group=0),
    EntityPattern(
        "object",
        re.compile(r"\b(?:photos?|pictures?|images?)\s+(?:of|with|containing)\s+(?:the\s+|my\s+|a\s+|an\s+|some\s+)?([a-z]{3,})\b"),
        0.5,
        accept=lambda value: value not in ("all", "any", "our", "your", "these", "those"),
    ),
)

_QUOTED_RE = re.compile(r'"([^"]+)"|“([^”]+)”')


class PatternEntityRecognizer(EntityRecognizer):
    """Recognize entities with regular expressions over a fixed vocabulary."""

    def __init__(self, patterns: Tuple[EntityPattern, ...] = ENTITY_PATTERNS, phrase_confidence: float = 0.9):
        self.patterns = patterns
        self.phrase_confidence = phrase_confidence

    @property
    def name(self) -> str:
        return "pattern"

    def recognize(self, text: str) -> List[Entity]:
        # Quoted phrases win over anything inside them
        accepted: List[Entity] = []
        masked = list(text)
        for match in _QUOTED_RE.finditer(text):
            phrase = (match.group(1) or match.group(2)).strip()
            if phrase:
                accepted.append(Entity("keyword_phrase", phrase, self.phrase_confidence, match.start(), match.end()))
            for i in range(match.start(), match.end()):
                masked[i] = " "
        searchable = "".join(masked)

        candidates: List[Entity] = []
        for pattern in self.patterns:
            for match in pattern.regex.finditer(searchable):
                value = match.group(pattern.group).strip()
                if not value:
                    continue
                if pattern.accept is not None and not pattern.accept(value):
                    continue
                if pattern.type in ("object", "scene", "mood", "camera"):
                    value = value.lower()
                span_group = pattern.group if pattern.span_group is None else pattern.span_group
                candidates.append(
                    Entity(pattern.type, value, pattern.confidence, match.start(span_group), match.end(span_group))
                )

        # Earlier first, then longer, then more confident
        candidates.sort(key=lambda e: (e.start, -(e.end - e.start), -e.confidence))
        for entity in candidates:
            if any(entity.start < other.end and other.start < entity.end for other in accepted):
                continue
            accepted.append(entity)

        accepted.sort(key=lambda e: e.start)
        logger.debug(f"Recognized {len(accepted)} entities in {text!r}")
        return accepted


class IntentPattern(NamedTuple):
    type: IntentType
    regexes: Tuple[Pattern, ...]
    weight: float


_PHOTO_NOUN = r"(?:photos?|pictures?|images?|shots?)"

INTENT_PATTERNS: Tuple[IntentPattern, ...] = (
    IntentPattern(
        IntentType.BULK_OPERATION,
        (
            re.compile(rf"\b(?:add|delete|remove|export|move|copy|organize|download)\s+(?:\w+\s+){{0,4}}?{_PHOTO_NOUN}\b", re.I),
            re.compile(r"\b(?:add|delete|remove|export|move|copy|organize)\b.*?\b(?:to|from|into)\s+(?:\S+\s+){0,3}?(?:album|folder|collection)\b", re.I),
        ),
        1.0,
    ),
    IntentPattern(
        IntentType.FILTER,
        (
            re.compile(r"\b(?:filter\s+by|show\s+only|display\s+only|only\s+show|limit\s+to|narrow\s+(?:down\s+)?to)\b", re.I),
            re.compile(r"\b(?:taken|shot|captured)\s+(?:in|on|at|with|from|during)\b", re.I),
            re.compile(rf"\b(?:{_words(CAMERA_MAKES)})\b", re.I),
        ),
        0.9,
    ),
    IntentPattern(
        IntentType.DISCOVERY,
        (
            re.compile(r"\b(?:show\s+me|find|search\s+for|look\s+for|get|display|browse)\b", re.I),
            re.compile(rf"\b{_PHOTO_NOUN}\s+(?:of|with|from|containing)\b", re.I),
            re.compile(rf"\b(?:{_words(OBJECT_VOCABULARY + SCENE_VOCABULARY)})s?\s+{_PHOTO_NOUN}\b", re.I),
        ),
        0.9,
    ),
)

# Returned when nothing matches
FALLBACK_INTENT_CONFIDENCE = 0.1


class PatternIntentClassifier(IntentClassifier):
    """Classify intent by counting verb and phrase cues."""

    def __init__(self, patterns: Tuple[IntentPattern, ...] = INTENT_PATTERNS):
        self.patterns = patterns

    @property
    def name(self) -> str:
        return "pattern"

    def classify(self, text: str) -> Intent:
        best = Intent(IntentType.DISCOVERY, FALLBACK_INTENT_CONFIDENCE)
        # Patterns are ordered most specific first; ties keep the earlier one
        for pattern in self.patterns:
            matches = sum(len(regex.findall(text)) for regex in pattern.regexes)
            if matches == 0:
                continue
            confidence = min(matches * pattern.weight, 1.0)
            if confidence > best.confidence:
                best = Intent(pattern.type, confidence)
        logger.debug(f"Intent for {text!r}: {best.type.value} ({best.confidence:.2f})")
        return best
