"""Tests for conversational context."""

from photo_discovery.discovery.config import SearchConfig
from photo_discovery.discovery.context import (
    NEW_TOPIC,
    REFINEMENT,
    ConversationContextManager,
    merge_queries,
)
from photo_discovery.discovery.models import ParsedQuery


class TestConversationContext:
    """Test refinement versus new-topic decisions."""

    def test_first_turn_starts_topic(self):
        contexts = ConversationContextManager()
        query = contexts.process_query("Show me sunset photos")

        assert query.semantic.objects == ["sunset"]
        context = contexts.get_context()
        assert context.turns == 1
        assert context.last_decision == NEW_TOPIC

    def test_refinement_cue_merges(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos")
        query = contexts.process_query("but only from 2023")

        assert query.semantic.objects == ["sunset"]
        assert query.temporal.year == 2023
        assert contexts.get_context().last_decision == REFINEMENT

    def test_unrelated_subject_replaces(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos")
        contexts.process_query("but only from 2023")
        query = contexts.process_query("find mountain pictures")

        assert query.semantic.objects == ["mountain"]
        assert query.temporal is None
        assert contexts.get_context().last_decision == NEW_TOPIC

    def test_turn_without_subject_refines(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos")
        query = contexts.process_query("from 2022")

        assert query.semantic.objects == ["sunset"]
        assert query.temporal.year == 2022
        assert contexts.get_context().last_decision == REFINEMENT

    def test_what_about_is_a_refinement(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos")
        query = contexts.process_query("what about mountain photos")

        assert query.semantic.objects == ["sunset", "mountain"]
        assert contexts.get_context().last_decision == REFINEMENT

    def test_overlap_threshold_is_configurable(self):
        contexts = ConversationContextManager(config=SearchConfig(topic_overlap_threshold=0.5))
        contexts.process_query("sunset photos")
        contexts.process_query("sunset and mountain photos")

        assert contexts.get_context().last_decision == NEW_TOPIC

    def test_conversations_are_isolated(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos", "a")
        contexts.process_query("find mountain pictures", "b")
        query = contexts.process_query("but only from 2023", "a")

        assert query.semantic.objects == ["sunset"]
        assert contexts.get_context("b").query.temporal is None
        assert contexts.conversation_count() == 2

    def test_reset(self):
        contexts = ConversationContextManager()
        contexts.process_query("Show me sunset photos", "a")

        assert contexts.reset("a") is True
        assert contexts.reset("a") is False
        assert contexts.get_context("a") is None


class TestMergeQueries:
    """Test group-wise merging."""

    def test_lists_union_case_insensitively(self):
        current = ParsedQuery.from_dict({"semantic": {"keywords": ["Sunset"]}})
        update = ParsedQuery.from_dict({"semantic": {"keywords": ["sunset", "beach"]}})

        merged = merge_queries(current, update)
        assert merged.semantic.keywords == ["Sunset", "beach"]

    def test_scalars_overwrite_and_absent_groups_survive(self):
        current = ParsedQuery.from_dict({"spatial": {"location": "Hawaii"}, "temporal": {"year": 2022}})
        update = ParsedQuery.from_dict({"temporal": {"year": 2023}})

        merged = merge_queries(current, update)
        assert merged.temporal.year == 2023
        assert merged.spatial.location == "Hawaii"

    def test_inputs_are_not_mutated(self):
        current = ParsedQuery.from_dict({"semantic": {"keywords": ["sunset"]}})
        update = ParsedQuery.from_dict({"semantic": {"keywords": ["beach"]}})

        merge_queries(current, update)
        assert current.semantic.keywords == ["sunset"]
