"""Basic tests for photo-discovery."""

import asyncio

import pytest

import photo_discovery
from photo_discovery import PhotoDiscoveryService, SearchConfig, __version__
from photo_discovery.discovery import JsonCollectionProvider
from photo_discovery.discovery.errors import ValidationError


def test_version():
    """Test that version is defined."""
    assert __version__ == "0.1.0"


def test_public_exports():
    """Test the package re-exports the service facade."""
    assert set(photo_discovery.__all__) >= {"PhotoDiscoveryService", "SearchConfig"}


class TestSearchConfig:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = SearchConfig()
        assert config.fuzzy_threshold == 0.6
        assert config.debounce_ms == 300
        assert config.performance_threshold_ms == 3000

    def test_invalid_threshold(self):
        with pytest.raises(ValueError, match="fuzzy_threshold"):
            SearchConfig(fuzzy_threshold=1.5)

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        SearchConfig(max_results=7, debounce_ms=100).save_to_file(path)

        loaded = SearchConfig.load_from_file(path)
        assert loaded.max_results == 7
        assert loaded.debounce_ms == 100


class TestService:
    """Test the service facade."""

    def test_search_accepts_dict_queries(self, service):
        result = asyncio.run(service.search({"semantic": {"keywords": ["snow"]}}))
        assert [ranked.photo.id for ranked in result.photos] == ["p3"]

    def test_bad_dict_query(self, service):
        with pytest.raises(ValidationError):
            asyncio.run(service.search({"colour": {"value": "red"}}))

    @pytest.mark.parametrize("query", [
        {"spatial": {"location": 5}},
        {"technical": {"camera": ["canon"]}},
        {"people": {"group_size": 3}},
        {"temporal": {"relative_period": {"months": 2}}},
    ])
    def test_non_text_filter_values(self, service, query):
        with pytest.raises(ValidationError):
            asyncio.run(service.search(query))

    def test_index_without_photos_or_provider(self):
        with pytest.raises(ValueError):
            PhotoDiscoveryService().index_photos()

    def test_stats(self, service):
        service.process_query("Show me sunset photos")
        stats = service.stats()
        assert stats["photos"] == 3
        assert stats["conversations"] == 1
        assert stats["config"]["fuzzy_threshold"] == 0.6


@pytest.mark.integration
def test_end_to_end_with_provider(collection_file):
    """Index through a provider, converse, and format the results."""
    service = PhotoDiscoveryService(provider=JsonCollectionProvider(collection_file), base_url="https://photos.example.com")
    service.index_photos()

    query = service.process_query("Show me family photos")
    result = asyncio.run(service.search(query))
    assert [ranked.photo.id for ranked in result.photos] == ["p2"]

    query = service.process_query("but only from 2022")
    result = asyncio.run(service.search(query))
    assert result.total_count == 1

    page = service.format_structured(result, "family photos from 2022")
    assert page["potentialAction"]["target"]["urlTemplate"].startswith("https://photos.example.com")
    interactive = service.format_interactive(result)
    assert interactive["photos"][0]["actions"][0]["action"] == "view"
