"""
Tests for Graph Query Engine
"""

import pytest
from datetime import timedelta

from dealgraph.models.entities import Account, Contact, Edge, EdgeType, GraphFilter
from dealgraph.models.queries import GraphQueryEngine
from dealgraph.models.store import EntityStore


def _ids(nodes):
    return [n.id for n in nodes]


class TestSampleScores:
    """Influence after loading the sample data."""

    def test_scores(self, sample_graph):
        """Test imported scores for the Acme contacts."""
        scores = {c.id: c.influence_score for c in sample_graph.store.contacts()}
        assert scores == {
            "contact_1": 56,
            "contact_2": 46,
            "contact_3": 28,
            "contact_4": 15,
            "contact_5": 46,
        }


class TestSubgraph:
    """Tests for filtered graph extraction."""

    def test_unfiltered(self, sample_graph):
        """Test that no filter returns everything."""
        data = sample_graph.get_graph_data()
        assert len(data.nodes) == len(sample_graph.store)
        assert len(data.edges) == len(sample_graph.store.edges)

    def test_account_filter(self, sample_graph):
        """Test that other accounts' contacts and dangling edges are dropped."""
        data = sample_graph.get_graph_data(account_id="account_1")

        contact_ids = {n.id for n in data.nodes if isinstance(n, Contact)}
        assert contact_ids == {"contact_1", "contact_2", "contact_3", "contact_4"}
        assert "account_2" in data.node_ids
        assert all(e.id != "edge_15" for e in data.edges)

    def test_deal_filter(self, sample_graph):
        """Test that only contacts with a role on the deal are kept."""
        data = sample_graph.get_graph_data(deal_id="deal_1")

        contact_ids = {n.id for n in data.nodes if isinstance(n, Contact)}
        assert contact_ids == {"contact_1", "contact_2", "contact_3"}

    def test_min_influence_keeps_non_contacts(self, sample_graph):
        """Test that the influence threshold never removes accounts or deals."""
        data = sample_graph.get_graph_data(min_influence=40)

        contact_ids = {n.id for n in data.nodes if isinstance(n, Contact)}
        assert contact_ids == {"contact_1", "contact_2", "contact_5"}
        assert {"account_1", "account_2", "deal_1", "deal_2"} <= data.node_ids

    def test_edges_have_surviving_endpoints(self, sample_graph):
        """Test every returned edge has both endpoints in the node set."""
        data = sample_graph.queries.subgraph(GraphFilter(account_id="account_1", min_influence=20))
        for edge in data.edges:
            assert edge.source in data.node_ids
            assert edge.target in data.node_ids


class TestContactQueries:
    """Tests for account contacts and relationships."""

    def test_account_contacts(self, sample_graph):
        """Test works_at based membership."""
        assert _ids(sample_graph.get_account_contacts("account_2")) == ["contact_5"]
        assert sample_graph.get_account_contacts("missing") == []

    def test_contact_relationships(self, sample_graph):
        """Test direction and other end annotations."""
        relationships = sample_graph.get_contact_relationships("contact_1")
        by_edge = {r.edge.id: r for r in relationships}

        assert len(relationships) == 6
        assert by_edge["edge_1"].direction == "incoming"
        assert by_edge["edge_1"].other_node.id == "contact_2"
        assert by_edge["edge_4"].direction == "outgoing"
        assert by_edge["edge_4"].other_node.type == "deal"


class TestShortestPath:
    """Tests for introduction path search."""

    def test_same_node(self, sample_graph):
        """Test a path from a node to itself."""
        assert _ids(sample_graph.find_path("contact_3", "contact_3")) == ["contact_3"]

    def test_two_hops(self, sample_graph):
        """Test a path through a shared colleague."""
        path = sample_graph.find_path("contact_4", "contact_5")
        assert _ids(path) == ["contact_4", "contact_1", "contact_5"]

    def test_depth_limit(self, sample_graph):
        """Test that max_depth bounds the number of hops."""
        assert sample_graph.find_path("contact_4", "contact_5", max_depth=1) is None
        assert sample_graph.find_path("contact_4", "contact_5", max_depth=2) is not None

    def test_structural_edges_not_traversed(self, sample_graph):
        """Test that works_at does not make accounts reachable."""
        assert sample_graph.find_path("contact_1", "account_1") is None

    def test_unknown_ids(self, sample_graph):
        """Test that unknown endpoints give None."""
        assert sample_graph.find_path("contact_1", "nobody") is None
        assert sample_graph.find_path("nobody", "contact_1") is None

    def test_strongest_tie_wins(self):
        """Test that among equal-length paths the strongest first hop wins."""
        store = EntityStore()
        for node_id in ("a", "b", "c", "d"):
            store.upsert_node(Contact(id=node_id, name=node_id.upper()))
        store.upsert_edge(Edge(id="e1", source="a", target="b", type=EdgeType.ALUMNI, strength=0.5))
        store.upsert_edge(Edge(id="e2", source="a", target="c", type=EdgeType.ALUMNI, strength=0.9))
        store.upsert_edge(Edge(id="e3", source="b", target="d", type=EdgeType.ALUMNI, strength=0.9))
        store.upsert_edge(Edge(id="e4", source="c", target="d", type=EdgeType.ALUMNI, strength=0.1))

        path = GraphQueryEngine(store).shortest_path("a", "d")
        assert _ids(path) == ["a", "c", "d"]

    def test_equal_strength_uses_edge_id(self):
        """Test that equal strengths fall back to edge id order."""
        store = EntityStore()
        for node_id in ("a", "b", "c", "d"):
            store.upsert_node(Contact(id=node_id, name=node_id.upper()))
        store.upsert_edge(Edge(id="z_edge", source="a", target="b", type=EdgeType.ALUMNI, strength=0.5))
        store.upsert_edge(Edge(id="a_edge", source="a", target="c", type=EdgeType.ALUMNI, strength=0.5))
        store.upsert_edge(Edge(id="e3", source="b", target="d", type=EdgeType.ALUMNI))
        store.upsert_edge(Edge(id="e4", source="c", target="d", type=EdgeType.ALUMNI))

        path = GraphQueryEngine(store).shortest_path("a", "d")
        assert _ids(path) == ["a", "c", "d"]


class TestOrgChart:
    """Tests for reporting hierarchy."""

    def test_levels(self, sample_graph):
        """Test levels and manager links for Acme."""
        chart = sample_graph.get_org_chart("account_1")

        assert chart["contact_1"].level == 0
        assert chart["contact_1"].manages == ["contact_2", "contact_4"]
        assert chart["contact_2"].reports_to == "contact_1"
        assert chart["contact_2"].level == 1
        assert chart["contact_4"].level == 1
        assert chart["contact_3"].level == 0
        assert not any(entry.in_cycle for entry in chart.values())

    def test_cycle_flagged(self):
        """Test that a reporting cycle terminates and is flagged."""
        store = EntityStore()
        store.upsert_node(Account(id="acct", name="Loop Co"))
        for node_id in ("x", "y", "z", "w"):
            store.upsert_node(Contact(id=node_id, name=node_id))
            store.upsert_edge(Edge(id=f"{node_id}_works", source=node_id, target="acct", type=EdgeType.WORKS_AT))
        for source, target in (("x", "y"), ("y", "z"), ("z", "x"), ("w", "x")):
            store.upsert_edge(Edge(
                id=f"{source}_rt_{target}", source=source, target=target, type=EdgeType.REPORTS_TO,
            ))

        chart = GraphQueryEngine(store).org_chart("acct")

        assert {cid for cid, e in chart.items() if e.in_cycle} == {"x", "y", "z"}
        assert chart["x"].level == 0
        assert chart["w"].level == 1
        assert chart["w"].in_cycle is False

    def test_outside_manager_ignored(self, sample_graph):
        """Test that managers at other accounts do not appear."""
        chart = sample_graph.get_org_chart("account_2")
        assert list(chart) == ["contact_5"]
        assert chart["contact_5"].reports_to is None


class TestRecommendations:
    """Tests for deal coverage gaps."""

    def test_default_thresholds_quiet(self, sample_graph):
        """Test that nothing is flagged on the sample deal by default."""
        assert sample_graph.get_influence_recommendations("deal_1") == []

    def test_strengthen_and_engage(self, sample_graph):
        """Test both recommendation kinds with lowered thresholds."""
        engine = GraphQueryEngine(
            sample_graph.store,
            strengthen_min_influence=20,
            engage_min_influence=10,
        )

        recommendations = engine.influence_recommendations("deal_1")
        summary = [(r.type, r.contact.id, r.priority) for r in recommendations]

        assert summary == [
            ("strengthen_relationship", "contact_3", "high"),
            ("engage_contact", "contact_4", "medium"),
        ]


class TestInteractionQueries:
    """Tests for interaction history and stats."""

    def test_newest_first(self, sample_graph):
        """Test ordering of a contact's interactions."""
        interactions = sample_graph.get_contact_interactions("contact_1")
        assert [i.id for i in interactions] == ["int_1", "int_2", "int_5"]

    def test_filters(self, sample_graph, now):
        """Test type and date range filters."""
        calls = sample_graph.get_contact_interactions("contact_1", interaction_type="call")
        assert [i.id for i in calls] == ["int_1", "int_5"]

        recent = sample_graph.get_contact_interactions("contact_1", start=now - timedelta(days=5))
        assert [i.id for i in recent] == ["int_1", "int_2"]

        older = sample_graph.get_contact_interactions("contact_1", end=now - timedelta(days=5))
        assert [i.id for i in older] == ["int_5"]

    def test_stats(self, sample_graph, now):
        """Test counts, call minutes and cadence."""
        stats = sample_graph.get_interaction_stats("contact_1")

        assert stats["total"] == 3
        assert stats["by_type"] == {"call": 2, "email": 1}
        assert stats["total_call_duration"] == pytest.approx(50)
        assert stats["last_interaction"] == now - timedelta(days=1)
        assert stats["average_days_between"] == 5

    def test_stats_empty(self, sample_graph):
        """Test stats for a contact with no history."""
        stats = sample_graph.get_interaction_stats("contact_4")
        assert stats["total"] == 0
        assert stats["last_interaction"] is None
        assert stats["average_days_between"] is None
