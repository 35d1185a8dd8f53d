"""
Tests for Relationship Strength Updater
"""

import pytest

from dealgraph.models.entities import Edge, EdgeType, InteractionType
from dealgraph.models.store import GraphError
from dealgraph.models.strength import RelationshipStrengthUpdater


class TestCalculateIncrease:
    """Tests for per-interaction increments."""

    @pytest.fixture
    def updater(self):
        return RelationshipStrengthUpdater()

    def test_meeting(self, updater):
        """Test meeting increment with completion multiplier."""
        assert updater.calculate_increase("meeting") == pytest.approx(0.048)

    def test_short_call(self, updater):
        """Test that a 30 minute call earns no bonus."""
        assert updater.calculate_increase("call", {"duration": 30}) == pytest.approx(0.024)

    def test_long_call_bonus(self, updater):
        """Test that calls over 30 minutes earn the bonus."""
        assert updater.calculate_increase("call", {"duration": 45}) == pytest.approx(0.06)

    def test_incomplete_skips_multiplier(self, updater):
        """Test that completed=False skips the multiplier."""
        assert updater.calculate_increase("email", {"completed": False}) == pytest.approx(0.01)

    def test_other_types_use_default(self, updater):
        """Test that note/task use the default increment."""
        assert updater.calculate_increase("note") == pytest.approx(0.006)
        assert updater.calculate_increase(InteractionType.TASK) == pytest.approx(0.006)

    def test_custom_increments(self):
        """Test configured increments override defaults."""
        updater = RelationshipStrengthUpdater(increments={"email": 0.05, "fax": 1.0})
        assert updater.calculate_increase("email", {"completed": False}) == pytest.approx(0.05)


class TestRecordInteraction:
    """Tests for tracking interactions against the store."""

    def test_meeting_raises_strength(self, acme_store):
        """Test a meeting on a 0.5 edge gives 0.548."""
        acme_store.upsert_edge(Edge(
            id="e_bob_alice", source="bob", target="alice", type=EdgeType.REPORTS_TO, strength=0.5,
        ))

        RelationshipStrengthUpdater().record_interaction(acme_store, "bob", "meeting")

        assert acme_store.find_edge("e_bob_alice").strength == pytest.approx(0.548)

    def test_structural_edges_unchanged(self, acme_store):
        """Test that works_at edges are not strengthened."""
        acme_store.find_edge("e_bob_acme").strength = 0.5

        RelationshipStrengthUpdater().record_interaction(acme_store, "bob", "call")

        assert acme_store.find_edge("e_bob_acme").strength == 0.5

    def test_strength_capped_and_monotonic(self, acme_store):
        """Test repeated interactions never decrease or exceed 1.0."""
        updater = RelationshipStrengthUpdater()
        previous = acme_store.find_edge("e_bob_alice").strength

        for _ in range(10):
            updater.record_interaction(acme_store, "alice", "call", {"duration": 60})
            current = acme_store.find_edge("e_bob_alice").strength
            assert previous <= current <= 1.0
            previous = current

        assert previous == 1.0

    def test_interaction_appended_and_rescored(self, acme_store):
        """Test interaction log, metadata and influence refresh."""
        interaction = RelationshipStrengthUpdater().record_interaction(
            acme_store, "alice", "call",
            {"duration": 20, "subject": "Intro", "deal_id": "deal_1", "channel": "zoom"},
        )

        assert interaction.type == InteractionType.CALL
        assert interaction.deal_id == "deal_1"
        assert interaction.metadata == {"channel": "zoom"}
        assert acme_store.interactions_for("alice") == [interaction]

        alice = acme_store.find_contact("alice")
        assert alice.interaction_count == 1
        # role 25 + strong tie 3 + recent 2 + centrality 1.5
        assert alice.influence_score == 32

        edge = acme_store.find_edge("e_bob_alice")
        assert edge.metadata["interaction_count"] == 1

    def test_unknown_type_rejected(self, acme_store):
        """Test that an invalid interaction type raises."""
        with pytest.raises(ValueError):
            RelationshipStrengthUpdater().record_interaction(acme_store, "alice", "carrier_pigeon")

    def test_numeric_string_duration(self, acme_store):
        """Test a duration given as text is coerced and earns the long-call bonus."""
        interaction = RelationshipStrengthUpdater().record_interaction(
            acme_store, "alice", "call", {"duration": "45"},
        )

        assert interaction.duration == 45
        # (0.02 + 0.03) * 1.2
        assert acme_store.find_edge("e_bob_alice").strength == pytest.approx(0.96)

    def test_invalid_metadata_writes_nothing(self, acme_store):
        """Test a non-numeric duration is rejected before anything is recorded."""
        with pytest.raises(ValueError):
            RelationshipStrengthUpdater().record_interaction(
                acme_store, "alice", "call", {"duration": "forty"},
            )

        assert acme_store.interactions == []
        assert acme_store.find_contact("alice").interaction_count == 0
        assert acme_store.find_edge("e_bob_alice").strength == 0.9

    def test_unknown_contact_rejected(self, acme_store):
        """Test tracking an unknown contact raises and logs nothing."""
        with pytest.raises(GraphError):
            RelationshipStrengthUpdater().record_interaction(acme_store, "nobody", "call")

        assert acme_store.interactions == []

    def test_incomplete_flag_from_metadata(self, acme_store):
        """Test completed=False skips the multiplier when tracked."""
        RelationshipStrengthUpdater().record_interaction(
            acme_store, "alice", "email", {"completed": False},
        )
        assert acme_store.find_edge("e_bob_alice").strength == pytest.approx(0.91)
