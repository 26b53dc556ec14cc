"""Data models for photo records, parsed queries and search results."""

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

# Confidence assumed for records whose extractor did not report one
DEFAULT_CONFIDENCE = 1.0


def as_string_list(value: Any) -> List[str]:
    """Coerce a metadata field to a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return []
    result = []
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            result.append(text)
    return result


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a capture timestamp, returning None when it is absent or unreadable.

    Accepts datetimes, dates, epoch seconds, ISO 8601 strings and EXIF
    ``YYYY:MM:DD HH:MM:SS`` strings. Aware values are reduced to their
    wall-clock time.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.strptime(text, "%Y:%m:%d %H:%M:%S")
            except ValueError:
                return None
    else:
        return None
    return parsed.replace(tzinfo=None)


def _as_text(value: Any) -> Optional[str]:
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def parse_confidence(value: Any) -> Optional[float]:
    """Parse an extraction confidence, clamped to [0, 1]."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return min(max(number, 0.0), 1.0)


@dataclass
class PhotoMetadata:
    """AI-generated and capture metadata attached to a photo."""
    keywords: List[str] = field(default_factory=list)
    objects: List[str] = field(default_factory=list)
    scenes: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    location: Optional[str] = None
    camera: Optional[str] = None
    taken_at: Optional[datetime] = None
    confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PhotoMetadata":
        """Create from a provider dictionary, treating bad fields as empty."""
        if not isinstance(data, dict):
            return cls()
        return cls(
            keywords=as_string_list(data.get("keywords")),
            objects=as_string_list(data.get("objects")),
            scenes=as_string_list(data.get("scenes")),
            people=as_string_list(data.get("people")),
            location=_as_text(data.get("location")),
            camera=_as_text(data.get("camera")),
            taken_at=parse_timestamp(data.get("taken_at", data.get("takenAt"))),
            confidence=parse_confidence(data.get("confidence")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "keywords": list(self.keywords),
            "objects": list(self.objects),
            "scenes": list(self.scenes),
            "people": list(self.people),
            "location": self.location,
            "camera": self.camera,
            "taken_at": self.taken_at.isoformat() if self.taken_at else None,
            "confidence": self.confidence,
        }


@dataclass
class PhotoRecord:
    """A photo as supplied by the storage provider."""
    id: str
    filename: str = ""
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    metadata: PhotoMetadata = field(default_factory=PhotoMetadata)

    @property
    def confidence(self) -> float:
        """Extraction confidence used for scoring and tie-breaking."""
        if self.metadata.confidence is None:
            return DEFAULT_CONFIDENCE
        return self.metadata.confidence

    @property
    def display_name(self) -> str:
        return self.title or self.filename or f"Photo {self.id}"

    @classmethod
    def from_dict(cls, data: Any) -> "PhotoRecord":
        """Create from a provider dictionary.

        Raises:
            ValueError: If the record is not a mapping or has no identifier
        """
        if not isinstance(data, dict):
            raise ValueError(f"Photo record must be an object, got {type(data).__name__}")
        photo_id = data.get("id")
        if photo_id is None or str(photo_id).strip() == "":
            raise ValueError("Photo record has no id")
        return cls(
            id=str(photo_id),
            filename=str(data.get("filename") or ""),
            url=data.get("url"),
            thumbnail_url=data.get("thumbnail_url", data.get("thumbnailUrl")),
            title=data.get("title"),
            metadata=PhotoMetadata.from_dict(data.get("metadata")),
        )

    def sanitized(self) -> "PhotoRecord":
        """Copy whose metadata is coerced the way ``from_dict`` coerces it.

        Raises:
            ValueError: If the record has no identifier
        """
        if self.id is None or str(self.id).strip() == "":
            raise ValueError("Photo record has no id")
        metadata = self.metadata
        if isinstance(metadata, PhotoMetadata):
            metadata = vars(metadata)
        return replace(self, id=str(self.id), metadata=PhotoMetadata.from_dict(metadata))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "filename": self.filename,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "title": self.title,
            "metadata": self.metadata.to_dict(),
        }


class _FilterGroup:
    """Shared helpers for the filter group dataclasses."""

    def field_count(self) -> int:
        """Number of populated fields in this group."""
        count = 0
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                count += 1 if value else 0
            elif value is not None:
                count += 1
        return count

    def is_empty(self) -> bool:
        return self.field_count() == 0

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == []:
                continue
            data[f.name] = list(value) if isinstance(value, list) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], group: str):
        if not isinstance(data, dict):
            raise ValueError(f"Filter group '{group}' must be an object")
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                raise ValueError(f"Unknown field '{group}.{key}'")
            if known[key].default_factory is list:
                value = as_string_list(value)
            elif known[key].type == Optional[str] and value is not None and not isinstance(value, str):
                raise ValueError(f"Invalid value for '{group}.{key}': expected text, got {value!r}")
            values[key] = value
        return cls(**values)


@dataclass
class SemanticFilter(_FilterGroup):
    """What the photo shows."""
    keywords: List[str] = field(default_factory=list)
    objects: List[str] = field(default_factory=list)
    scenes: List[str] = field(default_factory=list)
    mood: List[str] = field(default_factory=list)

    def terms(self) -> List[str]:
        """All semantic terms, lowercased and de-duplicated in order."""
        seen = []
        for term in self.keywords + self.objects + self.scenes + self.mood:
            lowered = term.lower()
            if lowered not in seen:
                seen.append(lowered)
        return seen


@dataclass
class SpatialFilter(_FilterGroup):
    """Where the photo was taken."""
    location: Optional[str] = None


@dataclass
class TemporalFilter(_FilterGroup):
    """When the photo was taken. Months are 1-12."""
    year: Optional[int] = None
    relative_period: Optional[str] = None
    date_range: Optional[Tuple[date, date]] = None
    start_month: Optional[int] = None
    end_month: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.date_range:
            data["date_range"] = {
                "start": self.date_range[0].isoformat(),
                "end": self.date_range[1].isoformat(),
            }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], group: str = "temporal") -> "TemporalFilter":
        if not isinstance(data, dict):
            raise ValueError(f"Filter group '{group}' must be an object")
        data = dict(data)
        if data.get("date_range") is not None:
            raw = data["date_range"]
            if isinstance(raw, dict):
                raw = (raw.get("start"), raw.get("end"))
            if not isinstance(raw, (list, tuple)) or len(raw) != 2:
                raise ValueError(f"Invalid date range: {data['date_range']!r}")
            start, end = parse_timestamp(raw[0]), parse_timestamp(raw[1])
            if start is None or end is None:
                raise ValueError(f"Invalid date range: {data['date_range']!r}")
            data["date_range"] = (start.date(), end.date())
        for key in ("year", "start_month", "end_month"):
            if data.get(key) is not None:
                try:
                    data[key] = int(data[key])
                except (TypeError, ValueError):
                    raise ValueError(f"Invalid value for '{group}.{key}': {data[key]!r}")
        return super().from_dict(data, group)


@dataclass
class PeopleFilter(_FilterGroup):
    """Who is in the photo."""
    named_people: List[str] = field(default_factory=list)
    relationship: Optional[str] = None
    age_group: Optional[str] = None
    group_size: Optional[str] = None


@dataclass
class TechnicalFilter(_FilterGroup):
    """Capture device details."""
    camera: Optional[str] = None


@dataclass
class BulkOperation(_FilterGroup):
    """Operation requested by a bulk_operation query, e.g. add to an album."""
    action: Optional[str] = None
    target: Optional[str] = None


@dataclass
class ParsedQuery:
    """Structured query made of independent, optional filter groups."""
    semantic: Optional[SemanticFilter] = None
    spatial: Optional[SpatialFilter] = None
    temporal: Optional[TemporalFilter] = None
    people: Optional[PeopleFilter] = None
    technical: Optional[TechnicalFilter] = None
    operation: Optional[BulkOperation] = None

    FILTER_GROUPS: ClassVar[Tuple[str, ...]] = ("semantic", "spatial", "temporal", "people", "technical")
    GROUP_TYPES: ClassVar[Dict[str, type]] = {
        "semantic": SemanticFilter,
        "spatial": SpatialFilter,
        "temporal": TemporalFilter,
        "people": PeopleFilter,
        "technical": TechnicalFilter,
        "operation": BulkOperation,
    }

    def populated_groups(self) -> List[str]:
        """Names of filter groups that constrain the search."""
        return [
            name for name in self.FILTER_GROUPS
            if getattr(self, name) is not None and not getattr(self, name).is_empty()
        ]

    def is_empty(self) -> bool:
        return not self.populated_groups()

    def parameter_count(self) -> int:
        """Number of populated fields across all filter groups."""
        return sum(getattr(self, name).field_count() for name in self.populated_groups())

    def semantic_terms(self) -> List[str]:
        if self.semantic is None:
            return []
        return self.semantic.terms()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting empty groups."""
        data = {}
        for name in self.GROUP_TYPES:
            group = getattr(self, name)
            if group is not None and not group.is_empty():
                data[name] = group.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ParsedQuery":
        """Create from a dictionary such as a JSON request body.

        Raises:
            ValueError: If a group or field name is not recognized
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("Query must be an object")
        groups = {}
        for name, value in data.items():
            group_type = cls.GROUP_TYPES.get(name)
            if group_type is None:
                raise ValueError(f"Unknown filter group '{name}'")
            if value is None:
                continue
            groups[name] = group_type.from_dict(value, name)
        return cls(**groups)


class IntentType(str, Enum):
    """Purpose of a query."""
    DISCOVERY = "discovery"
    FILTER = "filter"
    BULK_OPERATION = "bulk_operation"


@dataclass
class Intent:
    """Classified intent with a pattern-match confidence."""
    type: IntentType
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "confidence": round(self.confidence, 4)}


@dataclass
class Entity:
    """A recognized span of query text."""
    type: str
    value: str
    confidence: float
    start: int = 0
    end: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "confidence": self.confidence,
            "span": {"start": self.start, "end": self.end},
        }


@dataclass
class TokenizeResult:
    tokens: List[str]
    entities: List[Entity]
    original_query: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens": list(self.tokens),
            "entities": [e.to_dict() for e in self.entities],
            "original_query": self.original_query,
        }


@dataclass
class ValidationResult:
    """Outcome of validating a natural-language query."""
    is_valid: bool
    confidence: float
    extractable_parameters: int
    issues: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "confidence": round(self.confidence, 4),
            "extractable_parameters": self.extractable_parameters,
            "issues": list(self.issues),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class SearchSuggestion:
    """An actionable hint for improving a vague query."""
    type: str
    suggestion: str
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "suggestion": self.suggestion, "examples": list(self.examples)}


@dataclass
class RankedPhoto:
    """A photo with its relevance to a query."""
    photo: PhotoRecord
    relevance_score: float
    matched_criteria: List[str] = field(default_factory=list)
    fuzzy_terms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photo": self.photo.to_dict(),
            "relevance_score": round(self.relevance_score, 6),
            "matched_criteria": list(self.matched_criteria),
            "fuzzy_terms": list(self.fuzzy_terms),
        }


@dataclass
class SearchResult:
    """One page of ranked results."""
    photos: List[RankedPhoto]
    total_count: int
    search_time_ms: float
    offset: int = 0
    limit: int = 0
    next_offset: Optional[int] = None
    partial: bool = False
    warnings: List[str] = field(default_factory=list)
    query: Optional[ParsedQuery] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photos": [p.to_dict() for p in self.photos],
            "total_count": self.total_count,
            "search_time_ms": round(self.search_time_ms, 3),
            "offset": self.offset,
            "limit": self.limit,
            "next_offset": self.next_offset,
            "partial": self.partial,
            "warnings": list(self.warnings),
            "query": self.query.to_dict() if self.query else None,
        }


@dataclass
class SearchContext:
    """Accumulated filters of one conversation."""
    conversation_id: str
    query: ParsedQuery = field(default_factory=ParsedQuery)
    turns: int = 0
    last_decision: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.now)
