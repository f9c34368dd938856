"""Tests for candidate deduplication and reconciliation."""

import pytest

from lorekeeper.graph.schema import ElementKind
from lorekeeper.notes.config import NotesConfig
from lorekeeper.notes.models import ExistingReference
from lorekeeper.notes.resolution import CampaignReconciler, ExtractionDeduplicator


class TestExtractionDeduplicator:
    """Test deduplication of inference output."""

    @pytest.fixture
    def deduplicator(self):
        return ExtractionDeduplicator()

    def test_higher_confidence_wins(self, deduplicator, make_candidate):
        """Later, more confident duplicate replaces the earlier one."""
        low = make_candidate("Gandalf", confidence=0.6)
        high = make_candidate("Gandalf", confidence=0.9)

        result = deduplicator.deduplicate([low, high])

        assert result == [high]

    def test_earlier_higher_confidence_kept(self, deduplicator, make_candidate):
        high = make_candidate("Gandalf", confidence=0.9)
        low = make_candidate("gandalf!", confidence=0.6)

        assert deduplicator.deduplicate([high, low]) == [high]

    def test_tie_keeps_first_seen(self, deduplicator, make_candidate):
        first = make_candidate("The Sunken Temple", ElementKind.LOCATION, 0.7, entity_id="a")
        second = make_candidate("sunken temple", ElementKind.LOCATION, 0.7, entity_id="b")

        result = deduplicator.deduplicate([first, second])

        assert [c.id for c in result] == ["a"]

    def test_no_field_merge(self, deduplicator, make_candidate):
        """The winner's fields are kept as-is."""
        low = make_candidate("Gandalf", confidence=0.5, extra={"race": "maia"})
        high = make_candidate("Gandalf", confidence=0.8, extra={})

        result = deduplicator.deduplicate([low, high])

        assert result[0].extra == {}

    def test_kind_is_part_of_key(self, deduplicator, make_candidate):
        """Same text under different kinds is not a duplicate."""
        npc = make_candidate("Raven", ElementKind.NPC)
        location = make_candidate("Raven", ElementKind.LOCATION)

        assert len(deduplicator.deduplicate([npc, location])) == 2

    def test_replacement_happens_in_place(self, deduplicator, make_candidate):
        a = make_candidate("Alpha", confidence=0.5)
        b = make_candidate("Beta", confidence=0.5)
        a2 = make_candidate("alpha", confidence=0.9)

        result = deduplicator.deduplicate([a, b, a2])

        assert [c.id for c in result] == [a2.id, b.id]

    def test_confidence_not_below_inputs_minimum(self, deduplicator, make_candidate):
        """One survivor per key, at least as confident as the weaker input."""
        candidates = [
            make_candidate("Orc Chief", confidence=c) for c in (0.4, 0.8, 0.6, 0.8)
        ]

        result = deduplicator.deduplicate(candidates)

        assert len(result) == 1
        assert result[0].confidence == 0.8

    def test_empty(self, deduplicator):
        assert deduplicator.deduplicate([]) == []


class TestCampaignReconciler:
    """Test reconciliation against references and stored elements."""

    @pytest.mark.asyncio
    async def test_exact_element_name_filtered(self, element_repository, make_candidate):
        """A candidate equal to an existing element is not new."""
        reconciler = CampaignReconciler(element_repository)

        new, stats = await reconciler.reconcile(
            [make_candidate("gandalf", confidence=0.9)], references=[]
        )

        assert new == []
        assert stats.total_found == 1
        assert stats.filtered_out == 1

    @pytest.mark.asyncio
    async def test_element_pass_uses_equality_not_containment(
        self, element_repository, make_candidate
    ):
        """Without a reference, "Blackthorn Manor" survives next to NPC "Blackthorn"."""
        reconciler = CampaignReconciler(element_repository)
        manor = make_candidate("Blackthorn Manor", ElementKind.NPC)

        new, stats = await reconciler.reconcile([manor], references=[])

        assert new == [manor]
        assert stats.filtered_out == 0

    @pytest.mark.asyncio
    async def test_element_title_matches(self, element_repository, make_candidate):
        quest = make_candidate("Amulet of Dawn", ElementKind.QUEST)

        new, _ = await CampaignReconciler(element_repository).reconcile([quest], [])

        assert new == []

    @pytest.mark.asyncio
    async def test_element_pass_respects_kind(self, element_repository, make_candidate):
        """A location named like an NPC is still new."""
        location = make_candidate("Gandalf", ElementKind.LOCATION)

        new, _ = await CampaignReconciler(element_repository).reconcile([location], [])

        assert new == [location]

    def test_reference_containment_both_directions(self, make_candidate):
        reconciler = CampaignReconciler()
        references = [
            ExistingReference(
                element_id="npc-1",
                kind=ElementKind.NPC,
                display_title="Blackthorn",
                matched_strings=["Blackthorn"],
            )
        ]
        longer = make_candidate("Lord Blackthorn", ElementKind.NPC)
        shorter = make_candidate("Black", ElementKind.NPC)
        other_kind = make_candidate("Blackthorn Manor", ElementKind.LOCATION)
        unrelated = make_candidate("Mirt", ElementKind.NPC)

        kept = reconciler.filter_references(
            [longer, shorter, other_kind, unrelated], references
        )

        assert kept == [other_kind, unrelated]

    @pytest.mark.asyncio
    async def test_stats_are_consistent(self, element_repository, make_candidate):
        """filtered_out == total_found - len(new)."""
        references = [
            ExistingReference(
                element_id="loc-2",
                kind=ElementKind.LOCATION,
                display_title="Waterdeep",
                matched_strings=["Waterdeep"],
            )
        ]
        candidates = [
            make_candidate("Waterdeep Docks", ElementKind.LOCATION),
            make_candidate("Neverwinter", ElementKind.LOCATION),
            make_candidate("Mirt the Moneylender", ElementKind.NPC),
        ]

        new, stats = await CampaignReconciler(element_repository).reconcile(
            candidates, references
        )

        assert [c.text for c in new] == ["Mirt the Moneylender"]
        assert stats.total_found == 3
        assert stats.filtered_out == stats.total_found - len(new)

    @pytest.mark.asyncio
    async def test_repository_failure_keeps_reference_pass(
        self, element_repository, make_candidate
    ):
        """Element pass is skipped when the repository is down."""
        element_repository.fail = True
        references = [
            ExistingReference(
                element_id="npc-1",
                kind=ElementKind.NPC,
                display_title="Blackthorn",
                matched_strings=["Blackthorn"],
            )
        ]
        candidates = [
            make_candidate("Blackthorn", ElementKind.NPC),
            make_candidate("Gandalf", ElementKind.NPC),
        ]

        new, stats = await CampaignReconciler(element_repository).reconcile(
            candidates, references
        )

        assert [c.text for c in new] == ["Gandalf"]
        assert stats.filtered_out == 1

    @pytest.mark.asyncio
    async def test_filters_can_be_disabled(self, element_repository, make_candidate):
        config = NotesConfig(use_reference_filter=False, use_campaign_filter=False)
        references = [
            ExistingReference(
                element_id="npc-1",
                kind=ElementKind.NPC,
                display_title="Blackthorn",
                matched_strings=["Blackthorn"],
            )
        ]
        candidates = [make_candidate("Blackthorn", ElementKind.NPC)]

        new, stats = await CampaignReconciler(element_repository, config).reconcile(
            candidates, references
        )

        assert new == candidates
        assert stats.filtered_out == 0
