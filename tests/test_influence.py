"""
Tests for Influence Scorer
"""

import pytest
from datetime import timedelta

from dealgraph.models.entities import Contact, Deal, Edge, EdgeType, Interaction, InteractionType
from dealgraph.models.influence import InfluenceScorer, round_half_up, title_matches


class TestRoleScore:
    """Tests for title-based role points."""

    @pytest.fixture
    def scorer(self):
        return InfluenceScorer()

    @pytest.mark.parametrize("title,expected", [
        ("CEO", 30),
        ("Chief Executive Officer", 30),
        ("CTO", 25),
        ("Chief Financial Officer", 25),
        ("VP of Engineering", 20),
        ("Senior Vice President, Sales", 20),
        ("SVP Sales", 20),
        ("EVP, Operations", 20),
        ("Director of IT", 15),
        ("Procurement Manager", 10),
        ("Software Engineer", 5),
        ("", 5),
        (None, 5),
    ])
    def test_title_points(self, scorer, title, expected):
        """Test role points for common titles."""
        assert scorer.role_score(title) == expected

    def test_whole_word_matching(self, scorer):
        """Test that keywords embedded in other words do not match."""
        assert scorer.role_score("Director of Logistics") == 15
        assert scorer.role_score("Vpn Specialist") == 5
        assert scorer.role_score("Actor") == 5

    def test_first_rule_wins(self, scorer):
        """Test that the highest applicable rule is used."""
        assert scorer.role_score("CEO and Director") == 30

    def test_title_matches_is_case_insensitive(self):
        """Test title_matches helper."""
        assert title_matches("vp sales", "VP")
        assert not title_matches("mvp award", "vp")


class TestScore:
    """Tests for the composite influence score."""

    def test_scores_for_small_account(self, acme_store, now):
        """Test component sums with half-up rounding."""
        scorer = InfluenceScorer()

        alice = scorer.breakdown(acme_store, "alice", now)
        assert alice == {
            "role": 25,
            "deal_involvement": 0,
            "relationship_strength": 3.0,
            "interaction_recency": 0,
            "network_centrality": 1.5,
        }
        # 29.5 rounds up
        assert scorer.score(acme_store, "alice", now) == 30
        assert scorer.score(acme_store, "bob", now) == 15

    def test_non_contact_scores_zero(self, acme_store, now):
        """Test that accounts, deals and unknown ids score 0."""
        scorer = InfluenceScorer()
        assert scorer.score(acme_store, "acme", now) == 0
        assert scorer.score(acme_store, "deal_1", now) == 0
        assert scorer.score(acme_store, "missing", now) == 0
        assert scorer.breakdown(acme_store, "missing", now) == {}

    def test_deal_involvement_capped(self, acme_store, now):
        """Test that deal involvement stops at its cap."""
        for i in range(3):
            acme_store.upsert_node(Deal(id=f"d{i}", name=f"Deal {i}"))
            acme_store.upsert_edge(Edge(
                id=f"dm{i}", source="alice", target=f"d{i}", type=EdgeType.DECISION_MAKER_FOR, strength=0.95,
            ))

        breakdown = InfluenceScorer().breakdown(acme_store, "alice", now)
        assert breakdown["deal_involvement"] == 20

    def test_each_deal_role_counts(self, acme_store, now):
        """Test decision_maker_for and influencer_for both earn deal points."""
        acme_store.upsert_edge(Edge(
            id="dm", source="alice", target="deal_1", type=EdgeType.DECISION_MAKER_FOR, strength=0.95,
        ))
        acme_store.upsert_edge(Edge(
            id="inf", source="bob", target="deal_1", type=EdgeType.INFLUENCER_FOR, strength=0.7,
        ))

        scorer = InfluenceScorer()
        assert scorer.breakdown(acme_store, "alice", now)["deal_involvement"] == 10
        assert scorer.breakdown(acme_store, "bob", now)["deal_involvement"] == 10

    def test_recent_interactions_only(self, acme_store, sample_interactions, now):
        """Test that interactions older than the window do not count."""
        for interaction in sample_interactions:
            acme_store.append_interaction(interaction)

        breakdown = InfluenceScorer().breakdown(acme_store, "alice", now)
        assert breakdown["interaction_recency"] == 6

    def test_score_bounded(self, store, now):
        """Test that a heavily connected CEO never exceeds 100."""
        store.upsert_node(Contact(id="boss", name="Boss", title="CEO"))
        for i in range(30):
            store.upsert_node(Contact(id=f"p{i}", name=f"Person {i}"))
            store.upsert_edge(Edge(
                id=f"e{i}", source="boss", target=f"p{i}", type=EdgeType.MUTUAL_CONNECTION, strength=0.9,
            ))
            store.upsert_node(Deal(id=f"d{i}", name=f"Deal {i}"))
            store.upsert_edge(Edge(
                id=f"dm{i}", source="boss", target=f"d{i}", type=EdgeType.DECISION_MAKER_FOR,
            ))
            store.append_interaction(Interaction(
                contact_id="boss", type=InteractionType.CALL, date=now - timedelta(days=i),
            ))

        score = InfluenceScorer().score(store, "boss", now)
        assert 0 <= score <= 100
        assert score == 100

    def test_deterministic(self, sample_graph, now):
        """Test that scoring the same snapshot twice gives identical results."""
        scorer = sample_graph.scorer
        first = scorer.recompute_all(sample_graph.store, now)
        second = scorer.recompute_all(sample_graph.store, now)
        assert first == second

    def test_top_contacts_sorted(self, sample_graph):
        """Test that top contacts come back by descending score."""
        top = sample_graph.get_top_contacts(n=3)
        assert len(top) == 3
        scores = [c.influence_score for c in top]
        assert scores == sorted(scores, reverse=True)


class TestRoundHalfUp:
    """Tests for rounding helper."""

    def test_half_rounds_up(self):
        """Test .5 rounds away from zero."""
        assert round_half_up(29.5) == 30
        assert round_half_up(14.5) == 15
        assert round_half_up(14.49) == 14


class TestEdgeTypes:
    """Tests for edge type groupings used in scoring."""

    def test_deal_role_types(self):
        """Test only buying-role edges count as deal roles."""
        deal_roles = {t for t in EdgeType if t.is_deal_role}
        assert deal_roles == {EdgeType.DECISION_MAKER_FOR, EdgeType.INFLUENCER_FOR}

    def test_structural_types(self):
        """Test employment and ownership edges are structural."""
        structural = {t for t in EdgeType if t.is_structural}
        assert structural == {EdgeType.WORKS_AT, EdgeType.BELONGS_TO}
