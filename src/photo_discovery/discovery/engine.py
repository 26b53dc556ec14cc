"""Matching and ranking of structured queries against the photo index."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .config import SearchConfig
from .errors import ExecutionTimeout, IndexCorruptedError, ValidationError
from .indexer import MetadataEntry, MetadataIndexer, PhotoIndex, normalize_term
from .models import ParsedQuery, PeopleFilter, RankedPhoto, SearchResult, TemporalFilter
from .scheduler import CoalescingScheduler
from .temporal import months_between, resolve_relative_period

logger = logging.getLogger(__name__)

SEMANTIC_INDEXES = ("keywords", "objects", "scenes")
# Each semantic field searches its own index; mood has none and searches them all
SEMANTIC_FIELD_INDEXES = {
    "keywords": ("keywords",),
    "objects": ("objects",),
    "scenes": ("scenes",),
    "mood": SEMANTIC_INDEXES,
}
# Words describing who is in a photo are annotated as keywords or scenes
PEOPLE_TERM_INDEXES = ("keywords", "scenes")

GROUP_SIZES = {"solo": (1, 1), "couple": (2, 2), "group": (3, None)}

# Exact matches never score below this, even for zero-confidence records
EXACT_MATCH_FLOOR = 0.05


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]."""
    if not a and not b:
        return 1.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


@dataclass
class Pagination:
    limit: Optional[int] = None
    offset: int = 0

    @classmethod
    def from_value(cls, value: Union["Pagination", Dict[str, Any], None]) -> "Pagination":
        if value is None:
            return cls()
        if isinstance(value, Pagination):
            return value
        if not isinstance(value, dict):
            raise ValidationError("Pagination must be an object", field="pagination")
        unknown = set(value) - {"limit", "offset"}
        if unknown:
            raise ValidationError(f"Unknown pagination field: {sorted(unknown)[0]}", field="pagination")
        try:
            limit = None if value.get("limit") is None else int(value["limit"])
            offset = int(value.get("offset") or 0)
        except (TypeError, ValueError):
            raise ValidationError("Pagination limit and offset must be integers", field="pagination")
        return cls(limit=limit, offset=offset)


@dataclass
class _Match:
    """Best match of one photo within one filter group."""
    score: float
    criteria: List[str] = field(default_factory=list)
    fuzzy_terms: List[str] = field(default_factory=list)


GroupMatches = Dict[str, _Match]


class _Deadline:
    """Soft deadline of one search. ``interrupted`` is set when a scan stops early."""

    def __init__(self, clock: Callable[[], float], at: float):
        self._clock = clock
        self.at = at
        self.interrupted = False

    def passed(self) -> bool:
        return self._clock() > self.at


class SemanticSearchEngine:
    """Execute ParsedQuery objects against an immutable PhotoIndex snapshot.

    Args:
        config: Search tuning parameters
        clock: Monotonic clock in seconds, used for the soft deadline
        today: Returns the date relative periods are resolved against
        sleep: Awaitable sleep used by the debounce scheduler
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        today: Optional[Callable[[], date]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.config = config or SearchConfig()
        self.indexer = MetadataIndexer(batch_size=self.config.index_batch_size)
        self._clock = clock or time.perf_counter
        self._today = today or date.today
        self.scheduler = CoalescingScheduler(self.config.debounce_ms / 1000.0, sleep=sleep)
        self._index = PhotoIndex.empty()

    @property
    def index(self) -> PhotoIndex:
        return self._index

    def use_index(self, index: PhotoIndex) -> None:
        """Swap in a prebuilt snapshot."""
        self._index = index

    def index_photos(self, photos: Iterable[Any]) -> PhotoIndex:
        """Rebuild the index from scratch. In-flight searches keep their snapshot."""
        index = self.indexer.build(photos)
        self._index = index
        return index

    async def index_photos_async(self, photos: Iterable[Any]) -> PhotoIndex:
        index = await self.indexer.build_async(photos)
        self._index = index
        return index

    async def search(
        self,
        query: ParsedQuery,
        pagination: Union[Pagination, Dict[str, Any], None] = None,
    ) -> SearchResult:
        """Rank the photos matching every populated filter group.

        Raises:
            ValidationError: If pagination values are negative
            IndexCorruptedError: If the index references a photo it does not hold
        """
        page = Pagination.from_value(pagination)
        limit = self.config.max_results if page.limit is None else page.limit
        if limit < 0:
            raise ValidationError(f"limit must not be negative, got {limit}", field="limit")
        if page.offset < 0:
            raise ValidationError(f"offset must not be negative, got {page.offset}", field="offset")

        index = self._index
        start = self._clock()
        deadline = _Deadline(self._clock, start + self.config.performance_threshold_ms / 1000.0)
        warnings: List[str] = []
        partial = False

        groups = query.populated_groups()
        candidates: Optional[Dict[str, List[_Match]]] = None
        if not groups:
            candidates = {photo_id: [] for photo_id in index.photos}

        for position, name in enumerate(groups, 1):
            matches = self._match_group(index, query, name, warnings, deadline)
            if candidates is None:
                candidates = {photo_id: [match] for photo_id, match in matches.items()}
            else:
                candidates = {
                    photo_id: found + [matches[photo_id]]
                    for photo_id, found in candidates.items()
                    if photo_id in matches
                }
            await asyncio.sleep(0)
            if deadline.interrupted or (position < len(groups) and deadline.passed()):
                partial = True
                timeout = ExecutionTimeout(
                    f"Search exceeded {self.config.performance_threshold_ms:g} ms; results are partial",
                    completed_groups=groups[:position - 1] if deadline.interrupted else groups[:position],
                )
                logger.warning(timeout.message)
                warnings.append(f"{timeout.code}: {timeout.message}")
                break

        ranked = self._rank(index, candidates or {})
        total = len(ranked)
        page_items = ranked[page.offset:page.offset + limit]
        next_offset = page.offset + limit if limit and page.offset + limit < total else None
        elapsed_ms = (self._clock() - start) * 1000
        logger.debug(f"Search matched {total} photos in {elapsed_ms:.1f} ms")
        return SearchResult(
            photos=page_items,
            total_count=total,
            search_time_ms=elapsed_ms,
            offset=page.offset,
            limit=limit,
            next_offset=next_offset,
            partial=partial,
            warnings=warnings,
            query=query,
        )

    async def search_with_debounce(
        self,
        query: ParsedQuery,
        pagination: Union[Pagination, Dict[str, Any], None] = None,
    ) -> Optional[SearchResult]:
        """Search after the debounce window; superseded calls resolve to None."""
        return await self.scheduler.submit(lambda: self.search(query, pagination))

    def _rank(self, index: PhotoIndex, candidates: Mapping[str, List[_Match]]) -> List[RankedPhoto]:
        group_count = len(ParsedQuery.FILTER_GROUPS)
        ranked = []
        for photo_id, matches in candidates.items():
            photo = index.photos.get(photo_id)
            if photo is None:
                raise IndexCorruptedError(
                    f"Index references unknown photo '{photo_id}'; re-index the collection",
                    photo_id=photo_id,
                )
            score = min(sum(m.score for m in matches) / group_count, 1.0)
            criteria = [c for m in matches for c in m.criteria]
            fuzzy = [t for m in matches for t in m.fuzzy_terms]
            ranked.append(RankedPhoto(photo=photo, relevance_score=score, matched_criteria=criteria, fuzzy_terms=fuzzy))
        ranked.sort(key=lambda r: (-r.relevance_score, -r.photo.confidence, r.photo.id))
        return ranked

    def _match_group(
        self,
        index: PhotoIndex,
        query: ParsedQuery,
        name: str,
        warnings: List[str],
        deadline: _Deadline,
    ) -> GroupMatches:
        if name == "semantic":
            lookups = [
                (term, SEMANTIC_FIELD_INDEXES[field_name])
                for field_name in SEMANTIC_FIELD_INDEXES
                for term in getattr(query.semantic, field_name)
            ]
            return self._match_terms(index, lookups, "semantic", deadline)
        if name == "spatial":
            return self._match_terms(index, [(query.spatial.location, ("locations",))], "location", deadline)
        if name == "technical":
            return self._match_terms(index, [(query.technical.camera, ("cameras",))], "camera", deadline)
        if name == "people":
            return self._match_people(index, query.people, deadline)
        if name == "temporal":
            return self._match_temporal(index, query.temporal, warnings)
        raise ValueError(f"Unknown filter group: {name}")

    def _match_terms(
        self,
        index: PhotoIndex,
        lookups: List[Tuple[str, Tuple[str, ...]]],
        label: str,
        deadline: _Deadline,
    ) -> GroupMatches:
        """Best match per photo over alternative (term, index names) lookups, exact before fuzzy.

        The fuzzy scan stops at the soft deadline and marks it interrupted.
        """
        best: GroupMatches = {}

        def offer(photo_id: str, score: float, criterion: str, fuzzy_term: Optional[str]) -> None:
            current = best.get(photo_id)
            if current is None or score > current.score:
                best[photo_id] = _Match(score, [criterion], [fuzzy_term] if fuzzy_term else [])

        for raw, index_names in lookups:
            term = normalize_term(raw)
            if not term:
                continue
            exact: List[MetadataEntry] = [
                index.term_index(n)[term] for n in index_names if term in index.term_index(n)
            ]
            if exact:
                for entry in exact:
                    for photo_id, confidence in entry.photos.items():
                        offer(photo_id, max(confidence, EXACT_MATCH_FLOOR), f"{label}:{term}", None)
                continue

            for n in index_names:
                for key, entry in index.term_index(n).items():
                    if deadline.passed():
                        deadline.interrupted = True
                        return best
                    ratio = similarity(term, key)
                    if ratio < self.config.fuzzy_threshold:
                        continue
                    for photo_id, confidence in entry.photos.items():
                        offer(
                            photo_id,
                            confidence * ratio * self.config.fuzzy_discount,
                            f"{label}:{term}~{key}",
                            key,
                        )
        return best

    def _match_people(self, index: PhotoIndex, people: PeopleFilter, deadline: _Deadline) -> GroupMatches:
        constraints: List[GroupMatches] = []
        if people.named_people:
            lookups = [(name, ("people",)) for name in people.named_people]
            constraints.append(self._match_terms(index, lookups, "person", deadline))
        if people.relationship:
            constraints.append(
                self._match_terms(index, [(people.relationship, PEOPLE_TERM_INDEXES)], "relationship", deadline)
            )
        if people.age_group:
            constraints.append(
                self._match_terms(index, [(people.age_group, PEOPLE_TERM_INDEXES)], "age_group", deadline)
            )
        if people.group_size:
            low, high = GROUP_SIZES.get(people.group_size.lower(), (None, None))
            sized: GroupMatches = {}
            if low is not None:
                for photo_id, count in index.people_counts.items():
                    if count >= low and (high is None or count <= high):
                        sized[photo_id] = _Match(
                            index.photos[photo_id].confidence if photo_id in index.photos else 0.0,
                            [f"group_size:{people.group_size.lower()}"],
                        )
            constraints.append(sized)
        return _intersect(constraints)

    def _match_temporal(self, index: PhotoIndex, temporal: TemporalFilter, warnings: List[str]) -> GroupMatches:
        allowed: Optional[Set[str]] = None
        criteria = []

        def narrow(ids: Iterable[str], criterion: str) -> None:
            nonlocal allowed
            ids = set(ids)
            allowed = ids if allowed is None else allowed & ids
            criteria.append(criterion)

        if temporal.year is not None:
            narrow(index.temporal.get(f"{temporal.year:04d}", frozenset()), f"year:{temporal.year}")

        if temporal.start_month is not None or temporal.end_month is not None:
            start_month = temporal.start_month or temporal.end_month
            end_month = temporal.end_month or start_month
            if not (1 <= start_month <= 12 and 1 <= end_month <= 12):
                warnings.append(f"Ignoring invalid month range {start_month}-{end_month}")
            else:
                ids: Set[str] = set()
                for month in months_between(start_month, end_month):
                    ids |= index.temporal.get(f"month:{month:02d}", frozenset())
                narrow(ids, f"months:{start_month:02d}-{end_month:02d}")

        if temporal.relative_period:
            resolved = resolve_relative_period(temporal.relative_period, self._today())
            if resolved is None:
                warnings.append(f"Ignoring unknown relative period '{temporal.relative_period}'")
            else:
                narrow(_dated_between(index, *resolved), f"period:{temporal.relative_period}")

        if temporal.date_range:
            start, end = temporal.date_range
            narrow(_dated_between(index, start, end), f"date_range:{start.isoformat()}..{end.isoformat()}")

        if allowed is None:
            return {}
        return {
            photo_id: _Match(index.photos[photo_id].confidence if photo_id in index.photos else 0.0, list(criteria))
            for photo_id in allowed
        }


def _dated_between(index: PhotoIndex, start: date, end: date) -> Set[str]:
    return {photo_id for photo_id, taken in index.timestamps.items() if start <= taken.date() <= end}


def _intersect(constraints: List[GroupMatches]) -> GroupMatches:
    """Photos satisfying every constraint, scored by their best one."""
    if not constraints:
        return {}
    result: GroupMatches = {}
    for photo_id in set(constraints[0]).intersection(*constraints[1:]):
        matches = [c[photo_id] for c in constraints]
        top = max(matches, key=lambda m: m.score)
        result[photo_id] = _Match(
            top.score,
            [criterion for m in matches for criterion in m.criteria],
            [term for m in matches for term in m.fuzzy_terms],
        )
    return result
