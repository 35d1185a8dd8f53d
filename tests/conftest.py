"""
Pytest Configuration and Shared Fixtures
"""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

from dealgraph.graph import RelationshipGraph
from dealgraph.models.entities import (
    Account,
    Contact,
    Deal,
    DealStage,
    Edge,
    EdgeType,
    Interaction,
    InteractionType,
)
from dealgraph.models.store import EntityStore
from dealgraph.pipeline.fixtures import sample_batch
from dealgraph.pipeline.ingest import parse_records


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for date-sensitive tests."""
    return datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def store() -> EntityStore:
    """Create an empty store."""
    return EntityStore()


@pytest.fixture
def acme_store() -> EntityStore:
    """Store with one account, two contacts and a deal."""
    store = EntityStore()
    store.upsert_node(Account(id="acme", name="Acme"))
    store.upsert_node(Contact(id="alice", name="Alice Ng", title="CTO", company_ref="acme"))
    store.upsert_node(Contact(id="bob", name="Bob Ray", title="Manager", company_ref="acme"))
    store.upsert_node(Deal(id="deal_1", name="Acme Platform", value=120000, stage=DealStage.PROPOSAL))

    store.upsert_edge(Edge(id="e_alice_acme", source="alice", target="acme", type=EdgeType.WORKS_AT, strength=1.0))
    store.upsert_edge(Edge(id="e_bob_acme", source="bob", target="acme", type=EdgeType.WORKS_AT, strength=1.0))
    store.upsert_edge(Edge(id="e_deal_acme", source="deal_1", target="acme", type=EdgeType.BELONGS_TO, strength=1.0))
    store.upsert_edge(Edge(id="e_bob_alice", source="bob", target="alice", type=EdgeType.REPORTS_TO, strength=0.9))
    return store


@pytest.fixture
def acme_batch():
    """Native batch: Alice (CTO, no manager) and Bob (Manager, reports to Alice)."""
    return parse_records(
        provider="native",
        companies=[{"id": "acme", "name": "Acme"}],
        contacts=[
            {"id": "alice", "name": "Alice Ng", "title": "CTO", "companyId": "acme"},
            {"id": "bob", "name": "Bob Ray", "title": "Manager", "companyId": "acme", "reportsTo": "alice"},
        ],
    )


@pytest.fixture
def sample_graph(now) -> RelationshipGraph:
    """Graph loaded with the built-in Acme/TechStart data."""
    graph = RelationshipGraph()
    graph.load(sample_batch(now), reference_date=now)
    return graph


@pytest.fixture
def sample_interactions(now) -> list[Interaction]:
    """Interactions for alice spread over the last four months."""
    return [
        Interaction(id="i1", contact_id="alice", type=InteractionType.CALL, date=now - timedelta(days=2), duration=45),
        Interaction(id="i2", contact_id="alice", type=InteractionType.EMAIL, date=now - timedelta(days=10)),
        Interaction(id="i3", contact_id="alice", type=InteractionType.MEETING, date=now - timedelta(days=30), duration=60),
        Interaction(id="i4", contact_id="alice", type=InteractionType.CALL, date=now - timedelta(days=120), duration=15),
    ]


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    """Directory holding a small native CRM export."""
    (tmp_path / "contacts.csv").write_text(
        "id,name,title,email,companyId,reportsTo\n"
        "c1,Dana Cole,Chief Executive Officer,dana@globex.com,g1,\n"
        "c2,Eli Park,Director of IT,eli@globex.com,g1,c1\n"
        "c3,Fay Wu,Analyst,fay@globex.com,g1,c99\n"
    )
    (tmp_path / "companies.csv").write_text(
        "id,name,industry,size\n"
        "g1,Globex,Manufacturing,1000+\n"
    )
    (tmp_path / "deals.csv").write_text(
        "id,name,value,stage,probability,companyId,contactIds\n"
        "d1,Globex Rollout,80000,proposal,60,g1,c1;c2\n"
    )
    (tmp_path / "interactions.csv").write_text(
        "id,contactId,type,date,duration,dealId\n"
        "x1,c1,call,2024-06-10,40,d1\n"
        "x2,c2,EMAIL,2024-06-12,,\n"
        "x3,c404,call,2024-06-12,10,\n"
    )
    return tmp_path
