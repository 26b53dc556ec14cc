"""Tests for tokenization, intent classification and parameter extraction."""

from datetime import date

import pytest

from photo_discovery.discovery.factory import create_parser
from photo_discovery.discovery.models import IntentType
from photo_discovery.discovery.parser import QueryParser
from photo_discovery.discovery.recognizers import PatternEntityRecognizer, PatternIntentClassifier
from photo_discovery.discovery.temporal import find_malformed_dates, normalize_period, resolve_relative_period


@pytest.fixture
def parser():
    return QueryParser()


class TestTokenize:
    """Test tokenization and entity tagging."""

    def test_lowercase_tokens_and_quoted_phrases(self, parser):
        """Test quoted phrases survive as single tokens."""
        result = parser.tokenize('Find "Golden Hour" photos')
        assert result.tokens == ["find", "Golden Hour", "photos"]
        assert result.original_query == 'Find "Golden Hour" photos'

    def test_entities_have_spans(self, parser):
        """Test entities carry type, confidence and span."""
        text = "Show me sunset photos from Hawaii"
        entities = parser.tokenize(text).entities

        by_type = {entity.type: entity for entity in entities}
        assert by_type["object"].value == "sunset"
        assert by_type["location"].value == "Hawaii"
        location = by_type["location"]
        assert text[location.start:location.end] == "Hawaii"
        assert 0.0 < location.confidence <= 1.0

    def test_month_is_not_a_location(self, parser):
        """Test capitalized months after 'from' are temporal, not spatial."""
        entities = PatternEntityRecognizer().recognize("photos from December 2022")
        assert [entity.type for entity in entities] == ["time_period"]
        assert entities[0].value == "December 2022"

    def test_overlapping_spans_prefer_longest(self):
        """Test a date range wins over the month names inside it."""
        entities = PatternEntityRecognizer().recognize("photos between June and August")
        assert len(entities) == 1
        assert entities[0].value == "between June and August"


class TestIntent:
    """Test intent classification."""

    def test_discovery(self, parser):
        intent = parser.extract_intent("Show me sunset photos from Hawaii")
        assert intent.type == IntentType.DISCOVERY
        assert intent.confidence == 1.0

    def test_filter(self, parser):
        intent = parser.extract_intent("photos taken with Canon")
        assert intent.type == IntentType.FILTER

    def test_bulk_operation(self, parser):
        intent = parser.extract_intent("Add all beach photos to Summer Vacation album")
        assert intent.type == IntentType.BULK_OPERATION
        assert intent.confidence == 1.0

    def test_no_match_falls_back_to_low_confidence_discovery(self, parser):
        intent = parser.extract_intent("hmm")
        assert intent.type == IntentType.DISCOVERY
        assert intent.confidence == pytest.approx(0.1)

    def test_classifier_is_swappable(self):
        """Test a custom classifier replaces the pattern strategy."""
        from photo_discovery.discovery.base import IntentClassifier
        from photo_discovery.discovery.models import Intent

        class AlwaysFilter(IntentClassifier):
            @property
            def name(self):
                return "always-filter"

            def classify(self, text):
                return Intent(IntentType.FILTER, 0.75)

        parser = QueryParser(classifier=AlwaysFilter())
        assert parser.extract_intent("Show me sunsets").type == IntentType.FILTER


class TestExtractParameters:
    """Test mapping entities to filter groups."""

    def test_semantic_and_spatial(self, parser):
        query = parser.extract_parameters("Show me sunset photos from Hawaii")
        assert query.semantic.objects == ["sunset"]
        assert query.spatial.location == "Hawaii"
        assert query.temporal is None

    def test_relative_period(self, parser):
        query = parser.extract_parameters("Show me beach photos from last summer")
        assert query.temporal.relative_period == "last_summer"
        assert query.semantic.scenes == ["beach"]

    def test_month_range(self, parser):
        query = parser.extract_parameters("photos between June and August")
        assert query.temporal.start_month == 6
        assert query.temporal.end_month == 8

    def test_explicit_date_range(self, parser):
        query = parser.extract_parameters("photos from 2023-06-01 to 2023-06-30")
        assert query.temporal.date_range == (date(2023, 6, 1), date(2023, 6, 30))

    def test_month_with_year(self, parser):
        query = parser.extract_parameters("photos from December 2022")
        assert query.temporal.start_month == 12
        assert query.temporal.year == 2022
        assert query.spatial is None

    def test_year(self, parser):
        query = parser.extract_parameters("mountain photos from 2021")
        assert query.temporal.year == 2021
        assert query.semantic.objects == ["mountain"]

    def test_named_people(self, parser):
        query = parser.extract_parameters("Find photos with Sarah and John at the beach")
        assert query.people.named_people == ["Sarah", "John"]
        assert query.semantic.scenes == ["beach"]

    def test_people_words(self, parser):
        query = parser.extract_parameters("family photos with kids")
        assert query.people.relationship == "family"
        assert query.people.age_group == "children"

    def test_camera(self, parser):
        query = parser.extract_parameters("photos taken with Canon")
        assert query.technical.camera == "canon"
        assert query.people is None

    def test_quoted_phrase_becomes_keyword(self, parser):
        query = parser.extract_parameters('Find "golden hour" photos')
        assert query.semantic.keywords == ["golden hour"]

    def test_quoted_known_location_becomes_spatial(self, parser):
        query = parser.extract_parameters('photos from "central park"')
        assert query.spatial.location == "central park"
        assert query.semantic is None

    def test_bulk_operation_target_is_not_a_filter(self, parser):
        """Test the album clause becomes the operation target."""
        query = parser.extract_parameters("Add all beach photos to Summer Vacation album")
        assert query.operation.action == "add_to_album"
        assert query.operation.target == "Summer Vacation"
        assert query.semantic.scenes == ["beach"]

    def test_bulk_delete(self, parser):
        query = parser.extract_parameters("Delete all blurry photos from 2019")
        assert query.operation.action == "delete_photos"
        assert query.operation.target is None
        assert query.temporal.year == 2019

    def test_explicit_intent_skips_classification(self, parser):
        query = parser.extract_parameters("Add all beach photos to Summer Vacation album", IntentType.DISCOVERY)
        assert query.operation is None

    def test_empty_text(self, parser):
        assert parser.extract_parameters("").is_empty()


class TestValidation:
    """Test query validation."""

    def test_valid_query(self, parser):
        result = parser.validate_query("Show me sunset photos from Hawaii")
        assert result.is_valid
        assert result.extractable_parameters == 2
        assert result.issues == []
        assert result.confidence == pytest.approx(0.9)

    def test_vague_query(self, parser):
        result = parser.validate_query("photos")
        assert not result.is_valid
        assert "too_vague" in result.issues
        assert "no_parameters" in result.issues
        assert "unclear_intent" in result.issues

    def test_malformed_date_is_named(self, parser):
        result = parser.validate_query("Show me photos from 2023-13-45")
        assert not result.is_valid
        assert result.errors == ["Invalid date format: '2023-13-45'"]

    def test_min_parameters_is_configurable(self):
        from photo_discovery.discovery.config import SearchConfig
        parser = QueryParser(config=SearchConfig(min_parameters=3))
        result = parser.validate_query("Show me sunset photos from Hawaii")
        assert "too_vague" in result.issues


class TestSuggestions:
    """Test refinement suggestions."""

    def test_vague_query_gets_suggestions(self, parser):
        types = [s.type for s in parser.suggest_refinements("photos")]
        assert "add_context" in types
        assert "temporal_refinement" in types
        assert "spatial_refinement" in types
        assert "semantic_refinement" in types

    def test_old_photos_suggests_time(self, parser):
        suggestions = parser.suggest_refinements("show me old photos")
        assert any(s.type == "temporal_refinement" for s in suggestions)
        assert all(s.examples for s in suggestions)

    def test_specific_query_gets_none(self, parser):
        assert parser.suggest_refinements("Show me sunset photos from Hawaii in 2023") == []


class TestTemporalHelpers:
    """Test date helpers."""

    @pytest.mark.parametrize(
        "phrase,expected",
        [
            ("last summer", "last_summer"),
            ("this autumn", "this_fall"),
            ("past 3 weeks", "past_3_weeks"),
            ("yesterday", "yesterday"),
            ("next tuesday", None),
        ],
    )
    def test_normalize_period(self, phrase, expected):
        assert normalize_period(phrase) == expected

    def test_resolve_last_summer(self):
        assert resolve_relative_period("last_summer", date(2024, 1, 10)) == (date(2023, 6, 1), date(2023, 8, 31))

    def test_resolve_last_month_wraps_year(self):
        assert resolve_relative_period("last_month", date(2024, 1, 10)) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_find_malformed_dates(self):
        assert find_malformed_dates("from 2023-02-30 to 2023-03-01") == ["2023-02-30"]


class TestFactory:
    """Test parser factory."""

    def test_create_pattern_parser(self):
        parser = create_parser("pattern")
        assert isinstance(parser.recognizer, PatternEntityRecognizer)
        assert isinstance(parser.classifier, PatternIntentClassifier)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unrecognized parser strategy"):
            create_parser("neural")
