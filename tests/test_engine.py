"""Tests for matching, ranking and pagination."""

import asyncio
from dataclasses import replace
from datetime import date
from types import MappingProxyType

import pytest

from photo_discovery.discovery.config import SearchConfig
from photo_discovery.discovery.engine import SemanticSearchEngine, levenshtein, similarity
from photo_discovery.discovery.errors import IndexCorruptedError, ValidationError
from photo_discovery.discovery.models import ParsedQuery

TODAY = date(2024, 1, 10)


def run_search(engine, query, pagination=None):
    if isinstance(query, dict):
        query = ParsedQuery.from_dict(query)
    return asyncio.run(engine.search(query, pagination))


def ids(result):
    return [ranked.photo.id for ranked in result.photos]


class StepClock:
    """Clock that advances a fixed step on every reading."""

    def __init__(self, step: float):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


class TestSimilarity:
    """Test edit-distance similarity."""

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_similarity_bounds(self):
        assert similarity("sunset", "sunset") == 1.0
        assert similarity("sunest", "sunset") == pytest.approx(1 - 2 / 6)
        assert 0.0 <= similarity("abc", "xyz") <= 1.0


class TestThreeRecordExample:
    """Test the reference three-record collection."""

    def test_exact_keyword(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["sunset"]}})
        assert ids(result) == ["p1"]
        assert result.total_count == 1
        assert result.photos[0].fuzzy_terms == []

    def test_location_alone(self, engine):
        result = run_search(engine, {"spatial": {"location": "Hawaii"}})
        assert ids(result) == ["p1"]
        assert result.total_count == 1

    def test_misspelled_keyword_scores_lower(self, engine):
        exact = run_search(engine, {"semantic": {"keywords": ["sunset"]}})
        fuzzy = run_search(engine, {"semantic": {"keywords": ["sunest"]}})

        assert ids(fuzzy) == ["p1"]
        assert fuzzy.photos[0].fuzzy_terms == ["sunset"]
        assert fuzzy.photos[0].relevance_score < exact.photos[0].relevance_score


class TestMatching:
    """Test per-group matching rules."""

    def test_exact_keyword_returns_exactly_matching_photos(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["beach"]}})
        assert ids(result) == ["p1"]

    def test_semantic_terms_span_objects_and_scenes(self, engine):
        result = run_search(engine, {"semantic": {"objects": ["mountain"], "scenes": ["park"]}})
        assert sorted(ids(result)) == ["p2", "p3"]

    def test_keyword_filter_ignores_objects_and_scenes(self):
        engine = SemanticSearchEngine()
        engine.index_photos([
            {"id": "a", "metadata": {"keywords": ["sunset"]}},
            {"id": "b", "metadata": {"keywords": ["beach"], "objects": ["sunset"], "scenes": ["sunset"]}},
        ])
        assert ids(run_search(engine, {"semantic": {"keywords": ["sunset"]}})) == ["a"]
        assert ids(run_search(engine, {"semantic": {"objects": ["sunset"]}})) == ["b"]
        assert ids(run_search(engine, {"semantic": {"scenes": ["sunset"]}})) == ["b"]

    def test_mood_searches_every_semantic_index(self):
        engine = SemanticSearchEngine()
        engine.index_photos([
            {"id": "a", "metadata": {"keywords": ["peaceful"]}},
            {"id": "b", "metadata": {"scenes": ["peaceful"]}},
            {"id": "c", "metadata": {"keywords": ["busy"]}},
        ])
        assert sorted(ids(run_search(engine, {"semantic": {"mood": ["peaceful"]}}))) == ["a", "b"]

    def test_groups_combine_by_intersection(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["sunset"]}, "spatial": {"location": "Swiss Alps"}})
        assert result.total_count == 0

    def test_fuzzy_threshold(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["xylophone"]}})
        assert result.total_count == 0

    def test_location_part(self, engine):
        result = run_search(engine, {"spatial": {"location": "new york"}})
        assert ids(result) == ["p2"]

    def test_camera_make(self, engine):
        assert ids(run_search(engine, {"technical": {"camera": "canon"}})) == ["p1"]
        assert ids(run_search(engine, {"technical": {"camera": "Sony"}})) == ["p3"]

    def test_named_people(self, engine):
        assert ids(run_search(engine, {"people": {"named_people": ["Sarah"]}})) == ["p2"]

    def test_named_people_fuzzy(self, engine):
        result = run_search(engine, {"people": {"named_people": ["Sara"]}})
        assert ids(result) == ["p2"]
        assert result.photos[0].fuzzy_terms == ["sarah"]

    def test_relationship_and_group_size(self, engine):
        assert ids(run_search(engine, {"people": {"relationship": "family"}})) == ["p2"]
        assert ids(run_search(engine, {"people": {"group_size": "group"}})) == ["p2"]
        assert run_search(engine, {"people": {"group_size": "couple"}}).total_count == 0

    def test_year(self, engine):
        assert ids(run_search(engine, {"temporal": {"year": 2023}})) == ["p1"]

    def test_month_range_wraps_year_end(self, engine):
        result = run_search(engine, {"temporal": {"start_month": 12, "end_month": 2}})
        assert sorted(ids(result)) == ["p2", "p3"]

    def test_relative_period_uses_injected_today(self, engine):
        result = run_search(engine, {"temporal": {"relative_period": "last_summer"}})
        assert ids(result) == ["p1"]

    def test_unknown_relative_period_warns(self, engine):
        result = run_search(engine, {"temporal": {"relative_period": "someday"}})
        assert result.total_count == 0
        assert any("someday" in warning for warning in result.warnings)

    def test_date_range(self, engine):
        result = run_search(engine, {"temporal": {"date_range": {"start": "2022-12-01", "end": "2022-12-31"}}})
        assert ids(result) == ["p2"]

    def test_empty_query_browses_everything(self, engine):
        result = run_search(engine, ParsedQuery())
        assert result.total_count == 3
        assert all(ranked.relevance_score == 0.0 for ranked in result.photos)


class TestScoring:
    """Test score bounds, monotonicity and ordering."""

    def test_scores_bounded(self, engine):
        query = {
            "semantic": {"keywords": ["sunset"]},
            "spatial": {"location": "Hawaii"},
            "temporal": {"year": 2023},
            "technical": {"camera": "canon"},
        }
        result = run_search(engine, query)
        assert 0.0 <= result.photos[0].relevance_score <= 1.0

    def test_adding_satisfied_criterion_never_decreases_score(self, engine):
        base = run_search(engine, {"semantic": {"keywords": ["sunset"]}})
        more = run_search(engine, {"semantic": {"keywords": ["sunset"]}, "spatial": {"location": "Hawaii"}})
        most = run_search(
            engine,
            {"semantic": {"keywords": ["sunset"]}, "spatial": {"location": "Hawaii"}, "temporal": {"year": 2023}},
        )
        assert base.photos[0].relevance_score <= more.photos[0].relevance_score <= most.photos[0].relevance_score

    def test_ties_break_on_confidence_then_id(self):
        engine = SemanticSearchEngine()
        engine.index_photos([
            {"id": "b", "metadata": {"keywords": ["cat"], "confidence": 0.5}},
            {"id": "a", "metadata": {"keywords": ["dog"], "confidence": 0.5}},
            {"id": "c", "metadata": {"keywords": ["cat"], "confidence": 0.5}},
        ])
        result = run_search(engine, {"semantic": {"keywords": ["cat", "dog"]}})
        assert ids(result) == ["a", "b", "c"]

    def test_higher_confidence_ranks_first(self):
        engine = SemanticSearchEngine()
        engine.index_photos([
            {"id": "low", "metadata": {"keywords": ["cat"], "confidence": 0.3}},
            {"id": "high", "metadata": {"keywords": ["cat"], "confidence": 0.9}},
        ])
        assert ids(run_search(engine, {"semantic": {"keywords": ["cat"]}})) == ["high", "low"]

    def test_exact_beats_fuzzy_at_zero_confidence(self):
        engine = SemanticSearchEngine()
        engine.index_photos([{"id": "dim", "metadata": {"keywords": ["sunset"], "confidence": 0}}])

        exact = run_search(engine, {"semantic": {"keywords": ["sunset"]}})
        fuzzy = run_search(engine, {"semantic": {"keywords": ["sunest"]}})

        assert ids(exact) == ids(fuzzy) == ["dim"]
        assert fuzzy.photos[0].relevance_score < exact.photos[0].relevance_score


class TestPagination:
    """Test limit/offset paging."""

    @pytest.fixture
    def big_engine(self):
        engine = SemanticSearchEngine()
        engine.index_photos([
            {"id": f"photo-{i:02d}", "metadata": {"keywords": ["sunset"], "confidence": (i % 7) / 7}}
            for i in range(23)
        ])
        return engine

    def test_pages_concatenate_to_full_result(self, big_engine):
        query = {"semantic": {"keywords": ["sunset"]}}
        full = ids(run_search(big_engine, query, {"limit": 100}))

        pages = []
        offset = 0
        while offset is not None:
            page = run_search(big_engine, query, {"limit": 5, "offset": offset})
            assert page.total_count == 23
            pages.extend(ids(page))
            offset = page.next_offset

        assert pages == full
        assert len(set(pages)) == 23

    def test_default_limit_is_max_results(self):
        engine = SemanticSearchEngine(config=SearchConfig(max_results=2))
        engine.index_photos([{"id": str(i), "metadata": {"keywords": ["x"]}} for i in range(5)])
        result = run_search(engine, {"semantic": {"keywords": ["x"]}})
        assert len(result.photos) == 2
        assert result.next_offset == 2

    @pytest.mark.parametrize("pagination", [{"limit": -1}, {"offset": -5}])
    def test_negative_values_rejected(self, engine, pagination):
        with pytest.raises(ValidationError):
            run_search(engine, {"semantic": {"keywords": ["sunset"]}}, pagination)

    def test_offset_past_end(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["sunset"]}}, {"offset": 10})
        assert result.photos == []
        assert result.total_count == 1
        assert result.next_offset is None


class TestDeadlineAndSnapshots:
    """Test soft deadlines, index corruption and snapshot isolation."""

    def test_deadline_returns_partial_results(self, sample_photos):
        engine = SemanticSearchEngine(config=SearchConfig(performance_threshold_ms=3000), clock=StepClock(5.0))
        engine.index_photos(sample_photos)

        result = run_search(engine, {"semantic": {"keywords": ["beach"]}, "spatial": {"location": "Swiss Alps"}})

        assert result.partial
        assert ids(result) == ["p1"]
        assert any(warning.startswith("execution_timeout") for warning in result.warnings)

    def test_deadline_interrupts_single_group_fuzzy_scan(self, sample_photos):
        engine = SemanticSearchEngine(config=SearchConfig(performance_threshold_ms=1), clock=StepClock(10.0))
        engine.index_photos(sample_photos)

        result = run_search(engine, {"semantic": {"keywords": ["sunest"]}})

        assert result.partial
        assert any(warning.startswith("execution_timeout") for warning in result.warnings)

    def test_slow_exact_single_group_is_complete(self, sample_photos):
        engine = SemanticSearchEngine(config=SearchConfig(performance_threshold_ms=1), clock=StepClock(10.0))
        engine.index_photos(sample_photos)

        result = run_search(engine, {"semantic": {"keywords": ["sunset"]}})

        assert not result.partial
        assert ids(result) == ["p1"]

    def test_fast_search_is_complete(self, engine):
        result = run_search(engine, {"semantic": {"keywords": ["beach"]}, "spatial": {"location": "Swiss Alps"}})
        assert not result.partial
        assert result.total_count == 0

    def test_missing_photo_raises_index_corrupted(self, engine):
        engine.use_index(replace(engine.index, photos=MappingProxyType({})))
        with pytest.raises(IndexCorruptedError):
            run_search(engine, {"semantic": {"keywords": ["sunset"]}})

    def test_in_flight_search_keeps_its_snapshot(self, engine):
        query = ParsedQuery.from_dict({"semantic": {"keywords": ["sunset"]}, "spatial": {"location": "Hawaii"}})

        async def scenario():
            task = asyncio.create_task(engine.search(query))
            await asyncio.sleep(0)
            engine.index_photos([])
            return await task

        result = asyncio.run(scenario())
        assert ids(result) == ["p1"]
        assert len(engine.index) == 0

    def test_index_photos_async_swaps_index(self, engine):
        asyncio.run(engine.index_photos_async([{"id": "new", "metadata": {"keywords": ["kite"]}}]))
        assert ids(run_search(engine, {"semantic": {"keywords": ["kite"]}})) == ["new"]
        assert run_search(engine, {"semantic": {"keywords": ["sunset"]}}).total_count == 0


class TestDebounce:
    """Test debounced search."""

    def test_only_last_call_runs(self, engine):
        async def scenario():
            return await asyncio.gather(
                engine.search_with_debounce(ParsedQuery.from_dict({"semantic": {"keywords": ["sunset"]}})),
                engine.search_with_debounce(ParsedQuery.from_dict({"semantic": {"keywords": ["snow"]}})),
                engine.search_with_debounce(ParsedQuery.from_dict({"semantic": {"keywords": ["family"]}})),
            )

        first, second, third = asyncio.run(scenario())
        assert first is None
        assert second is None
        assert ids(third) == ["p2"]

    def test_debounce_uses_configured_delay(self, sample_photos):
        delays = []

        async def record(delay):
            delays.append(delay)

        engine = SemanticSearchEngine(config=SearchConfig(debounce_ms=250), today=lambda: TODAY, sleep=record)
        engine.index_photos(sample_photos)
        result = asyncio.run(engine.search_with_debounce(ParsedQuery.from_dict({"semantic": {"keywords": ["snow"]}})))

        assert ids(result) == ["p3"]
        assert delays == [0.25]
