"""Shared fixtures for photo-discovery tests."""

import asyncio
import json
from datetime import date

import pytest

from photo_discovery.discovery.config import SearchConfig
from photo_discovery.discovery.engine import SemanticSearchEngine
from photo_discovery.discovery.service import PhotoDiscoveryService

SAMPLE_PHOTOS = [
    {
        "id": "p1",
        "filename": "sunset.jpg",
        "url": "https://photos.example.com/p1.jpg",
        "thumbnailUrl": "https://photos.example.com/p1_thumb.jpg",
        "metadata": {
            "keywords": ["sunset", "beach"],
            "objects": ["ocean", "sunset"],
            "scenes": ["beach"],
            "people": [],
            "location": "Hawaii",
            "camera": "Canon EOS R5",
            "takenAt": "2023-07-15T19:30:00Z",
            "confidence": 0.9,
        },
    },
    {
        "id": "p2",
        "filename": "family.jpg",
        "url": "https://photos.example.com/p2.jpg",
        "metadata": {
            "keywords": ["family", "portrait"],
            "scenes": ["park"],
            "people": ["Sarah", "John", "Emma"],
            "location": "Central Park, New York",
            "camera": "iPhone 14",
            "taken_at": "2022-12-24T12:00:00",
            "confidence": 0.8,
        },
    },
    {
        "id": "p3",
        "filename": "alps.jpg",
        "url": "https://photos.example.com/p3.jpg",
        "metadata": {
            "keywords": ["mountain", "snow"],
            "objects": ["mountain", "snow"],
            "scenes": ["landscape"],
            "location": "Swiss Alps",
            "camera": "Sony A7",
            "taken_at": "2021-02-10T09:00:00",
            "confidence": 0.95,
        },
    },
]

# Reference date for relative periods in tests
TODAY = date(2024, 1, 10)


async def no_wait(delay: float) -> None:
    """Debounce sleep that yields once instead of waiting."""
    await asyncio.sleep(0)


@pytest.fixture
def sample_photos():
    return [dict(photo) for photo in SAMPLE_PHOTOS]


@pytest.fixture
def engine(sample_photos):
    engine = SemanticSearchEngine(config=SearchConfig(), today=lambda: TODAY, sleep=no_wait)
    engine.index_photos(sample_photos)
    return engine


@pytest.fixture
def service(sample_photos):
    service = PhotoDiscoveryService(config=SearchConfig(), today=lambda: TODAY, sleep=no_wait)
    service.index_photos(sample_photos)
    return service


@pytest.fixture
def collection_file(tmp_path, sample_photos):
    path = tmp_path / "collection.json"
    path.write_text(json.dumps({"photos": sample_photos}), encoding="utf-8")
    return path
