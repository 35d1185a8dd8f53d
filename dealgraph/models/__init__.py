"""
Data Models and Analytical Components

Pydantic models for graph entities and the components that score and query them.
"""

from dealgraph.models.entities import (
    Account,
    Contact,
    ContactRole,
    Deal,
    DealStage,
    Edge,
    EdgeType,
    GraphData,
    GraphFilter,
    Interaction,
    InteractionType,
)
from dealgraph.models.store import EntityStore, GraphError, ReferentialError
from dealgraph.models.influence import InfluenceScorer
from dealgraph.models.strength import RelationshipStrengthUpdater
from dealgraph.models.queries import GraphQueryEngine, OrgChartEntry, InfluenceRecommendation
from dealgraph.models.deal_health import (
    AnalysisReport,
    DealHealthOrchestrator,
    TelemetryEvent,
    TelemetryEventType,
)

__all__ = [
    "Account",
    "Contact",
    "ContactRole",
    "Deal",
    "DealStage",
    "Edge",
    "EdgeType",
    "GraphData",
    "GraphFilter",
    "Interaction",
    "InteractionType",
    "EntityStore",
    "GraphError",
    "ReferentialError",
    "InfluenceScorer",
    "RelationshipStrengthUpdater",
    "GraphQueryEngine",
    "OrgChartEntry",
    "InfluenceRecommendation",
    "AnalysisReport",
    "DealHealthOrchestrator",
    "TelemetryEvent",
    "TelemetryEventType",
]
