"""Metadata indexer building read-only lookup structures over a photo collection."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .errors import IndexingError
from .models import PhotoRecord

logger = logging.getLogger(__name__)

# Term indexes held by a PhotoIndex
TERM_FIELDS = ("keywords", "objects", "scenes", "locations", "people", "cameras")


def normalize_term(term: str) -> str:
    return " ".join(term.lower().split())


@dataclass(frozen=True)
class MetadataEntry:
    """Photos carrying one indexed term, with the confidence of each."""
    term: str
    photos: Mapping[str, float]

    @property
    def frequency(self) -> int:
        return len(self.photos)


@dataclass(frozen=True)
class PhotoIndex:
    """Immutable snapshot of the indexed collection.

    A search holds on to the snapshot it started with; re-indexing builds a
    new one instead of mutating this.
    """
    photos: Mapping[str, PhotoRecord]
    keywords: Mapping[str, MetadataEntry]
    objects: Mapping[str, MetadataEntry]
    scenes: Mapping[str, MetadataEntry]
    locations: Mapping[str, MetadataEntry]
    people: Mapping[str, MetadataEntry]
    cameras: Mapping[str, MetadataEntry]
    temporal: Mapping[str, frozenset]
    timestamps: Mapping[str, datetime]
    people_counts: Mapping[str, int]
    skipped: Tuple[IndexingError, ...] = ()
    built_at: datetime = field(default_factory=datetime.now)
    build_time_ms: float = 0.0

    @classmethod
    def empty(cls) -> "PhotoIndex":
        return _IndexBuilder().finish(0.0)

    def __len__(self) -> int:
        return len(self.photos)

    def term_index(self, name: str) -> Mapping[str, MetadataEntry]:
        if name not in TERM_FIELDS:
            raise KeyError(f"Unknown term index: {name}")
        return getattr(self, name)

    def stats(self) -> Dict[str, Any]:
        """Summary counts for reporting."""
        data: Dict[str, Any] = {"photos": len(self.photos)}
        for name in TERM_FIELDS:
            data[f"{name}_terms"] = len(getattr(self, name))
        data.update({
            "temporal_buckets": len(self.temporal),
            "dated_photos": len(self.timestamps),
            "skipped": len(self.skipped),
            "built_at": self.built_at.isoformat(),
            "build_time_ms": round(self.build_time_ms, 3),
        })
        return data


class _IndexBuilder:
    """Mutable accumulator turned into a PhotoIndex by ``finish``."""

    def __init__(self):
        self.photos: Dict[str, PhotoRecord] = {}
        self.terms: Dict[str, Dict[str, Dict[str, float]]] = {name: {} for name in TERM_FIELDS}
        self.temporal: Dict[str, Set[str]] = {}
        self.timestamps: Dict[str, datetime] = {}
        self.people_counts: Dict[str, int] = {}
        self.skipped: List[IndexingError] = []

    def add(self, position: int, raw: Any) -> None:
        try:
            record = raw.sanitized() if isinstance(raw, PhotoRecord) else PhotoRecord.from_dict(raw)
        except ValueError as e:
            self._skip(position, str(e), _raw_id(raw))
            return
        if record.id in self.photos:
            self._skip(position, f"Duplicate photo id '{record.id}'", record.id)
            return

        self.photos[record.id] = record
        metadata = record.metadata
        confidence = min(max(record.confidence, 0.0), 1.0)

        for term in metadata.keywords:
            self._add_term("keywords", term, record.id, confidence)
        for term in metadata.objects:
            self._add_term("objects", term, record.id, confidence)
        for term in metadata.scenes:
            self._add_term("scenes", term, record.id, confidence)
        for name in metadata.people:
            self._add_term("people", name, record.id, confidence)
        self.people_counts[record.id] = len(metadata.people)

        if metadata.location:
            self._add_term("locations", metadata.location, record.id, confidence)
            parts = [part for part in metadata.location.split(",") if part.strip()]
            if len(parts) > 1:
                for part in parts:
                    self._add_term("locations", part, record.id, confidence)

        if metadata.camera:
            self._add_term("cameras", metadata.camera, record.id, confidence)
            make = metadata.camera.split()[0]
            if make.lower() != metadata.camera.lower():
                self._add_term("cameras", make, record.id, confidence)

        if metadata.taken_at is not None:
            taken = metadata.taken_at
            self.timestamps[record.id] = taken
            for bucket in (f"{taken.year:04d}", f"{taken.year:04d}-{taken.month:02d}", f"month:{taken.month:02d}"):
                self.temporal.setdefault(bucket, set()).add(record.id)

    def _add_term(self, index_name: str, term: str, photo_id: str, confidence: float) -> None:
        key = normalize_term(term)
        if not key:
            return
        postings = self.terms[index_name].setdefault(key, {})
        postings[photo_id] = max(postings.get(photo_id, 0.0), confidence)

    def _skip(self, position: int, reason: str, photo_id: Optional[Any]) -> None:
        error = IndexingError(f"Record {position}: {reason}", position, None if photo_id is None else str(photo_id))
        logger.warning(f"Skipping photo record at position {position}: {reason}")
        self.skipped.append(error)

    def finish(self, elapsed_ms: float) -> PhotoIndex:
        term_maps = {
            name: MappingProxyType({
                term: MetadataEntry(term, MappingProxyType(dict(postings)))
                for term, postings in entries.items()
            })
            for name, entries in self.terms.items()
        }
        return PhotoIndex(
            photos=MappingProxyType(dict(self.photos)),
            temporal=MappingProxyType({bucket: frozenset(ids) for bucket, ids in self.temporal.items()}),
            timestamps=MappingProxyType(dict(self.timestamps)),
            people_counts=MappingProxyType(dict(self.people_counts)),
            skipped=tuple(self.skipped),
            build_time_ms=elapsed_ms,
            **term_maps,
        )


class MetadataIndexer:
    """Build a PhotoIndex from photo records in a single pass.

    Records may be ``PhotoRecord`` instances or provider dictionaries. A
    record that cannot be read is skipped and reported in ``index.skipped``;
    the batch is never aborted.
    """

    def __init__(self, batch_size: int = 500):
        self.batch_size = max(1, batch_size)

    def build(self, photos: Iterable[Any]) -> PhotoIndex:
        start = time.perf_counter()
        builder = _IndexBuilder()
        for position, raw in enumerate(photos):
            builder.add(position, raw)
        return self._finish(builder, start)

    async def build_async(self, photos: Iterable[Any], batch_size: Optional[int] = None) -> PhotoIndex:
        """Build the index, yielding to the event loop every ``batch_size`` records."""
        batch_size = max(1, batch_size or self.batch_size)
        start = time.perf_counter()
        builder = _IndexBuilder()
        for position, raw in enumerate(photos):
            builder.add(position, raw)
            if (position + 1) % batch_size == 0:
                await asyncio.sleep(0)
        return self._finish(builder, start)

    def _finish(self, builder: _IndexBuilder, start: float) -> PhotoIndex:
        elapsed_ms = (time.perf_counter() - start) * 1000
        index = builder.finish(elapsed_ms)
        logger.info(
            f"Indexed {len(index.photos)} photos in {elapsed_ms:.1f} ms "
            f"({len(index.skipped)} skipped)"
        )
        return index


def _raw_id(raw: Any) -> Optional[Any]:
    if isinstance(raw, PhotoRecord):
        return raw.id or None
    return raw.get("id") if isinstance(raw, dict) else None
