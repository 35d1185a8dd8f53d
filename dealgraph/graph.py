"""
Relationship Graph

Query and mutation surface used by the dashboard. Every component is
injected, so each graph instance owns its own store.
"""

import logging
from datetime import datetime
from typing import Optional

from dealgraph.models.deal_health import AnalysisReport, DealHealthOrchestrator, TelemetryEvent
from dealgraph.models.entities import (
    Contact,
    Edge,
    GraphData,
    GraphFilter,
    Interaction,
    InteractionType,
    Node,
)
from dealgraph.models.influence import InfluenceScorer
from dealgraph.models.queries import (
    ContactRelationship,
    GraphQueryEngine,
    InfluenceRecommendation,
    OrgChartEntry,
)
from dealgraph.models.store import EntityStore
from dealgraph.models.strength import RelationshipStrengthUpdater
from dealgraph.pipeline.ingest import ImportBatch
from dealgraph.pipeline.normalize import GraphImporter, ImportSummary
from dealgraph.utils.config import Config

logger = logging.getLogger(__name__)


class RelationshipGraph:
    """One relationship graph: a store plus the components that work on it."""

    def __init__(
        self,
        store: Optional[EntityStore] = None,
        scorer: Optional[InfluenceScorer] = None,
        updater: Optional[RelationshipStrengthUpdater] = None,
        importer: Optional[GraphImporter] = None,
        queries: Optional[GraphQueryEngine] = None,
        orchestrator: Optional[DealHealthOrchestrator] = None,
    ):
        """Initialize graph.

        Args:
            store: Backing store (default: a new empty store)
            scorer: Influence scorer shared by importer and updater
            updater: Relationship strength updater
            importer: Batch importer
            queries: Query engine over the store
            orchestrator: Deal health orchestrator over the store
        """
        self.store = store or EntityStore()
        self.scorer = scorer or InfluenceScorer()
        self.updater = updater or RelationshipStrengthUpdater(scorer=self.scorer)
        self.importer = importer or GraphImporter(scorer=self.scorer)
        self.queries = queries or GraphQueryEngine(self.store)
        self.orchestrator = orchestrator or DealHealthOrchestrator(self.store)

    @classmethod
    def from_config(cls, config: Config, store: Optional[EntityStore] = None) -> "RelationshipGraph":
        """Build a graph with every component tuned from config."""
        store = store or EntityStore()
        influence = config.influence
        scorer = InfluenceScorer(
            role_scores=influence.role_rules(),
            default_role_score=influence.default_role_score,
            deal_points=influence.deal_points,
            deal_cap=influence.deal_cap,
            strong_edge_threshold=influence.strong_edge_threshold,
            strong_edge_points=influence.strong_edge_points,
            strong_edge_cap=influence.strong_edge_cap,
            recency_window_days=influence.recency_window_days,
            recency_points=influence.recency_points,
            recency_cap=influence.recency_cap,
            centrality_points=influence.centrality_points,
            centrality_cap=influence.centrality_cap,
        )

        return cls(
            store=store,
            scorer=scorer,
            updater=RelationshipStrengthUpdater(
                scorer=scorer,
                increments=config.strength.increments,
                default_increment=config.strength.default_increment,
                long_call_minutes=config.strength.long_call_minutes,
                long_call_bonus=config.strength.long_call_bonus,
                completion_multiplier=config.strength.completion_multiplier,
            ),
            importer=GraphImporter(
                scorer=scorer,
                reports_to_strength=config.importer.reports_to_strength,
                works_at_strength=config.importer.works_at_strength,
                belongs_to_strength=config.importer.belongs_to_strength,
                decision_maker_strength=config.importer.decision_maker_strength,
                influencer_strength=config.importer.influencer_strength,
            ),
            queries=GraphQueryEngine(
                store,
                default_max_depth=config.query.max_path_depth,
                strengthen_min_influence=config.query.strengthen_min_influence,
                strengthen_max_strength=config.query.strengthen_max_strength,
                engage_min_influence=config.query.engage_min_influence,
            ),
            orchestrator=DealHealthOrchestrator(
                store,
                **config.deal_health.model_dump(),
            ),
        )

    # Mutations

    def load(self, batch: ImportBatch, reference_date: Optional[datetime] = None) -> ImportSummary:
        """Import a batch and rescore every contact."""
        return self.importer.import_batch(self.store, batch, reference_date)

    def upsert_node(self, node: Node) -> Node:
        node = self.store.upsert_node(node)
        self.scorer.recompute_all(self.store)
        return node

    def upsert_edge(self, edge: Edge) -> Edge:
        """Insert or replace an edge and rescore.

        Raises:
            ReferentialError: If either endpoint is unknown
        """
        edge = self.store.upsert_edge(edge)
        logger.debug(f"Upserted {edge.type.value} edge {edge.id}")
        self.scorer.recompute_all(self.store)
        return edge

    def track_interaction(
        self,
        contact_id: str,
        interaction_type: InteractionType | str,
        metadata: Optional[dict] = None,
    ) -> Interaction:
        """Record an interaction and strengthen the contact's relationships."""
        return self.updater.record_interaction(self.store, contact_id, interaction_type, metadata)

    # Queries

    def get_graph_data(
        self,
        account_id: Optional[str] = None,
        deal_id: Optional[str] = None,
        min_influence: Optional[int] = None,
    ) -> GraphData:
        return self.queries.subgraph(GraphFilter(
            account_id=account_id,
            deal_id=deal_id,
            min_influence=min_influence,
        ))

    def get_account_contacts(self, account_id: str) -> list[Contact]:
        return self.queries.account_contacts(account_id)

    def get_contact_relationships(self, contact_id: str) -> list[ContactRelationship]:
        return self.queries.contact_relationships(contact_id)

    def find_path(
        self,
        source_id: str,
        target_id: str,
        max_depth: Optional[int] = None,
    ) -> Optional[list[Node]]:
        return self.queries.shortest_path(source_id, target_id, max_depth)

    def get_org_chart(self, account_id: str) -> dict[str, OrgChartEntry]:
        return self.queries.org_chart(account_id)

    def get_influence_recommendations(self, deal_id: str) -> list[InfluenceRecommendation]:
        return self.queries.influence_recommendations(deal_id)

    def get_contact_interactions(
        self,
        contact_id: str,
        interaction_type: Optional[InteractionType | str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Interaction]:
        return self.queries.contact_interactions(contact_id, interaction_type, start, end)

    def get_interaction_stats(self, contact_id: str) -> dict:
        return self.queries.interaction_stats(contact_id)

    def get_top_contacts(self, n: int = 10) -> list[Contact]:
        return self.scorer.top_contacts(self.store, n)

    def get_stats(self) -> dict:
        return self.store.stats()

    def analyze_deals(
        self,
        telemetry: Optional[list[TelemetryEvent]] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisReport:
        """Hot leads, risks and smart actions across open deals."""
        return self.orchestrator.analyze(telemetry=telemetry, now=now)
