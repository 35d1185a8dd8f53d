"""
Tests for Graph Normalization
"""

import pytest

from dealgraph.models.entities import Contact, ContactRole, EdgeType
from dealgraph.models.store import EntityStore
from dealgraph.pipeline.ingest import load_crm_export, parse_records
from dealgraph.pipeline.normalize import GraphImporter, infer_role


class TestInferRole:
    """Tests for title-based buying roles."""

    @pytest.mark.parametrize("title,expected", [
        ("Chief Executive Officer", ContactRole.DECISION_MAKER),
        ("CFO", ContactRole.DECISION_MAKER),
        ("VP, Operations", ContactRole.DECISION_MAKER),
        ("SVP Sales", ContactRole.DECISION_MAKER),
        ("EVP", ContactRole.DECISION_MAKER),
        ("Director of IT", ContactRole.INFLUENCER),
        ("Procurement Manager", ContactRole.INFLUENCER),
        ("Analyst", ContactRole.END_USER),
        (None, ContactRole.END_USER),
    ])
    def test_roles(self, title, expected):
        """Test role inference from titles."""
        assert infer_role(title) == expected


class TestImportBatch:
    """Tests for writing batches into a store."""

    def test_reporting_line(self, acme_batch, now):
        """Test Bob reports to Alice with one confirmed 0.9 edge."""
        store = EntityStore()
        GraphImporter().import_batch(store, acme_batch, now)

        reports = list(store.iter_edges(EdgeType.REPORTS_TO))
        assert len(reports) == 1
        edge = reports[0]
        assert (edge.source, edge.target) == ("bob", "alice")
        assert edge.id == "bob_reports_to_alice"
        assert edge.strength == 0.9
        assert edge.confirmed is True

        assert store.find_contact("bob").reports_to_ref == "alice"
        assert store.find_contact("alice").reports_to_ref is None

    def test_role_components(self, acme_batch, now):
        """Test role points for CTO and Manager after import."""
        store = EntityStore()
        importer = GraphImporter()
        importer.import_batch(store, acme_batch, now)

        assert importer.scorer.breakdown(store, "alice", now)["role"] == 25
        assert importer.scorer.breakdown(store, "bob", now)["role"] == 10
        assert store.find_contact("alice").role == ContactRole.DECISION_MAKER
        assert store.find_contact("bob").role == ContactRole.INFLUENCER

    def test_company_edges_and_name(self, acme_batch, now):
        """Test works_at edges and company name fill-in."""
        store = EntityStore()
        GraphImporter().import_batch(store, acme_batch, now)

        works_at = {(e.source, e.target) for e in store.iter_edges(EdgeType.WORKS_AT)}
        assert works_at == {("alice", "acme"), ("bob", "acme")}
        assert store.find_contact("alice").company == "Acme"
        assert store.find_contact("alice").company_ref == "acme"

    def test_reimport_is_idempotent(self, acme_batch, now):
        """Test importing the same batch twice changes nothing."""
        store = EntityStore()
        importer = GraphImporter()
        importer.import_batch(store, acme_batch, now)
        nodes, edges = len(store.nodes), len(store.edges)
        scores = {c.id: c.influence_score for c in store.contacts()}

        importer.import_batch(store, acme_batch, now)

        assert (len(store.nodes), len(store.edges)) == (nodes, edges)
        assert {c.id: c.influence_score for c in store.contacts()} == scores

    def test_export_directory(self, export_dir, now):
        """Test a CSV export end to end, with dropped references counted."""
        batch = load_crm_export(export_dir).batch
        store = EntityStore()

        summary = GraphImporter().import_batch(store, batch, now)

        assert (summary.contacts, summary.accounts, summary.deals) == (3, 1, 1)
        assert summary.nodes == 5
        assert summary.interactions == 2
        assert summary.dropped == 2
        assert len(summary.dropped_refs) == 2

        assert store.find_edge("c1_decision_maker_for_d1").strength == 0.95
        assert store.find_edge("c2_influencer_for_d1").strength == 0.7
        assert store.find_edge("d1_belongs_to_g1") is not None
        assert store.find_edge("c2_reports_to_c1") is not None
        assert store.find_contact("c3").reports_to_ref is None
        assert summary.edges == len(store.edges) == 7

    def test_manager_must_be_in_batch(self, now):
        """Test that manager pointers never resolve against earlier imports."""
        store = EntityStore()
        store.upsert_node(Contact(id="carol", name="Carol"))
        batch = parse_records(contacts=[{"id": "dan", "name": "Dan", "reportsTo": "carol"}])

        summary = GraphImporter().import_batch(store, batch, now)

        assert list(store.iter_edges(EdgeType.REPORTS_TO)) == []
        assert summary.dropped == 1

    def test_company_resolves_against_store(self, now):
        """Test company references may point at existing accounts."""
        store = EntityStore()
        importer = GraphImporter()
        importer.import_batch(store, parse_records(companies=[{"id": "acme", "name": "Acme"}]), now)

        summary = importer.import_batch(
            store, parse_records(contacts=[{"id": "eve", "name": "Eve", "companyId": "acme"}]), now,
        )

        assert summary.dropped == 0
        assert store.find_edge("eve_works_at_acme") is not None

    def test_external_ids_resolve(self, now):
        """Test HubSpot associations resolve through external ids."""
        batch = parse_records(
            provider="hubspot",
            contacts=[{"id": "101", "properties": {"firstname": "Ann", "jobtitle": "CEO"},
                       "associations": {"companies": {"results": [{"id": "201"}]}}}],
            companies=[{"id": "201", "properties": {"name": "Initech"}}],
            deals=[{"id": "301", "properties": {"dealname": "Renewal", "amount": "100"},
                    "associations": {"contacts": {"results": [{"id": "101"}, {"id": "999"}]},
                                     "companies": {"results": [{"id": "201"}]}}}],
            interactions=[{"id": "9", "type": "call", "createdAt": "2024-06-01T10:00:00",
                           "contactId": "101", "dealId": "301"}],
        )
        store = EntityStore()

        summary = GraphImporter().import_batch(store, batch, now)

        assert store.find_edge("hubspot_contact_101_works_at_hubspot_company_201") is not None
        assert store.find_edge("hubspot_contact_101_decision_maker_for_hubspot_deal_301") is not None
        assert store.interactions[0].contact_id == "hubspot_contact_101"
        assert store.interactions[0].deal_id == "hubspot_deal_301"
        assert summary.dropped == 1

    def test_explicit_relationship_default_id(self, acme_batch, now):
        """Test relationships without an id get a composed one."""
        acme_batch.relationships.extend(parse_records(relationships=[
            {"source": "alice", "target": "bob", "type": "alumni", "strength": 0.6},
            {"source": "alice", "target": "ghost", "type": "alumni"},
        ]).relationships)
        store = EntityStore()

        summary = GraphImporter().import_batch(store, acme_batch, now)

        assert store.find_edge("alice_alumni_bob").strength == 0.6
        assert summary.dropped == 1
