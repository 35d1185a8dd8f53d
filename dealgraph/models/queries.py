"""
Graph Query Engine

Subgraph extraction, shortest introduction paths, org charts and
influence recommendations over an entity store.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from dealgraph.models.entities import (
    Contact,
    Edge,
    EdgeType,
    GraphData,
    GraphFilter,
    Interaction,
    InteractionType,
    Node,
)
from dealgraph.models.store import EntityStore

logger = logging.getLogger(__name__)


class ContactRelationship(BaseModel):
    """An edge seen from one contact's point of view."""
    edge: Edge
    other_node: Optional[Node] = None
    direction: Literal["outgoing", "incoming"]


class OrgChartEntry(BaseModel):
    """A contact's position in its account's reporting hierarchy."""
    contact: Contact
    reports_to: Optional[str] = None
    manages: list[str] = Field(default_factory=list)
    level: int = 0
    in_cycle: bool = False


class InfluenceRecommendation(BaseModel):
    """A suggested move to improve coverage on a deal."""
    type: Literal["strengthen_relationship", "engage_contact"]
    contact: Contact
    reason: str
    priority: Literal["high", "medium", "low"]


class GraphQueryEngine:
    """Read-side queries over an EntityStore."""

    def __init__(
        self,
        store: EntityStore,
        default_max_depth: int = 3,
        strengthen_min_influence: int = 70,
        strengthen_max_strength: float = 0.7,
        engage_min_influence: int = 60,
    ):
        """Initialize query engine.

        Args:
            store: Store to query
            default_max_depth: Hop limit for shortest_path
            strengthen_min_influence: Influence above which a weakly tied
                deal contact is flagged
            strengthen_max_strength: Deal edge strength below which the tie
                counts as weak
            engage_min_influence: Influence above which an account contact
                missing from the deal is flagged
        """
        self.store = store
        self.default_max_depth = default_max_depth
        self.strengthen_min_influence = strengthen_min_influence
        self.strengthen_max_strength = strengthen_max_strength
        self.engage_min_influence = engage_min_influence

    def account_contacts(self, account_id: str) -> list[Contact]:
        """Contacts with a works_at edge to the account."""
        contact_ids = {
            e.source for e in self.store.iter_edges(EdgeType.WORKS_AT)
            if e.target == account_id
        }
        return [c for c in self.store.contacts() if c.id in contact_ids]

    def deal_contact_ids(self, deal_id: str) -> set[str]:
        """Contacts holding a deal-role edge to the deal."""
        return {
            e.source for e in self.store.iter_edges()
            if e.target == deal_id and e.type.is_deal_role
        }

    def subgraph(self, graph_filter: Optional[GraphFilter] = None) -> GraphData:
        """Nodes and edges restricted by account, deal and minimum influence.

        Non-contact nodes are never removed by the influence threshold.
        Only edges whose endpoints both survive are returned.
        """
        graph_filter = graph_filter or GraphFilter()
        nodes = self.store.nodes

        if graph_filter.account_id:
            members = {c.id for c in self.account_contacts(graph_filter.account_id)}
            nodes = [
                n for n in nodes
                if not isinstance(n, Contact) or n.id in members
            ]

        if graph_filter.deal_id:
            members = self.deal_contact_ids(graph_filter.deal_id)
            nodes = [
                n for n in nodes
                if not isinstance(n, Contact) or n.id in members
            ]

        if graph_filter.min_influence is not None:
            nodes = [
                n for n in nodes
                if not isinstance(n, Contact)
                or n.influence_score >= graph_filter.min_influence
            ]

        node_ids = {n.id for n in nodes}
        edges = [
            e for e in self.store.edges
            if e.source in node_ids and e.target in node_ids
        ]

        return GraphData(nodes=nodes, edges=edges)

    def contact_relationships(self, contact_id: str) -> list[ContactRelationship]:
        """Every edge touching the contact, annotated with the other end."""
        relationships = []
        for edge in self.store.edges_touching(contact_id):
            relationships.append(ContactRelationship(
                edge=edge,
                other_node=self.store.find_node(edge.other_end(contact_id)),
                direction="outgoing" if edge.source == contact_id else "incoming",
            ))
        return relationships

    def _neighbours(self, node_id: str) -> list[str]:
        """Adjacent node ids over relationship edges, strongest tie first."""
        edges = sorted(
            self.store.relationship_edges(node_id),
            key=lambda e: (-e.strength, e.id),
        )
        return [e.other_end(node_id) for e in edges]

    def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_depth: Optional[int] = None,
    ) -> Optional[list[Node]]:
        """Breadth-first search over relationship edges.

        works_at and belongs_to edges are not traversed. Among equally short
        paths, the one through the strongest edges (then lowest edge id) at
        each step wins.

        Returns:
            Ordered nodes from source to target, or None when either id is
            unknown or no path exists within max_depth hops
        """
        max_depth = self.default_max_depth if max_depth is None else max_depth

        if source_id not in self.store or target_id not in self.store:
            return None

        visited = {source_id}
        queue = deque([[source_id]])

        while queue:
            path = queue.popleft()
            current = path[-1]

            if current == target_id:
                return [self.store.find_node(node_id) for node_id in path]

            if len(path) > max_depth:
                continue

            for neighbour in self._neighbours(current):
                if neighbour not in visited:
                    visited.add(neighbour)
                    queue.append(path + [neighbour])

        return None

    def org_chart(self, account_id: str) -> dict[str, OrgChartEntry]:
        """Reporting hierarchy of the account's contacts.

        Level 0 is the top. Pointers to people outside the account are
        ignored. Contacts that sit on a reporting cycle are placed at level
        0 and flagged with in_cycle; their reports count down from there.
        """
        contacts = self.account_contacts(account_id)
        hierarchy = {c.id: OrgChartEntry(contact=c) for c in contacts}

        for edge in self.store.edges:
            if edge.type == EdgeType.REPORTS_TO:
                report, manager = edge.source, edge.target
            elif edge.type == EdgeType.MANAGES:
                manager, report = edge.source, edge.target
            else:
                continue

            if report not in hierarchy or manager not in hierarchy or report == manager:
                continue

            hierarchy[report].reports_to = manager
            if report not in hierarchy[manager].manages:
                hierarchy[manager].manages.append(report)

        levels: dict[str, int] = {}

        for contact_id in hierarchy:
            chain = []
            position: dict[str, int] = {}
            current: Optional[str] = contact_id

            # Walk up until a top-level contact, an already-levelled contact or a repeat
            while current is not None and current not in levels and current not in position:
                position[current] = len(chain)
                chain.append(current)
                current = hierarchy[current].reports_to

            if current is None:
                base = -1
            elif current in levels:
                base = levels[current]
            else:
                cycle = chain[position[current]:]
                logger.warning(
                    f"Reporting cycle at account {account_id}: {' -> '.join(cycle)}"
                )
                for member in cycle:
                    levels[member] = 0
                    hierarchy[member].in_cycle = True
                chain = chain[:position[current]]
                base = 0

            for member in reversed(chain):
                base += 1
                levels[member] = base

        for contact_id, entry in hierarchy.items():
            entry.level = levels[contact_id]

        return hierarchy

    def influence_recommendations(self, deal_id: str) -> list[InfluenceRecommendation]:
        """Coverage gaps on a deal.

        Flags high-influence deal contacts with a weak tie to the deal, and
        high-influence contacts at the deal's account who are not on it.
        """
        recommendations = []
        deal_edges = [
            e for e in self.store.iter_edges()
            if e.target == deal_id and e.type.is_deal_role
        ]

        for edge in deal_edges:
            contact = self.store.find_contact(edge.source)
            if (
                contact is not None
                and contact.influence_score > self.strengthen_min_influence
                and edge.strength < self.strengthen_max_strength
            ):
                recommendations.append(InfluenceRecommendation(
                    type="strengthen_relationship",
                    contact=contact,
                    reason="High influence but low relationship strength",
                    priority="high",
                ))

        account_id = next(
            (
                e.target for e in self.store.iter_edges(EdgeType.BELONGS_TO)
                if e.source == deal_id
            ),
            None,
        )
        if account_id:
            engaged = {e.source for e in deal_edges}
            for contact in self.account_contacts(account_id):
                if contact.id not in engaged and contact.influence_score > self.engage_min_influence:
                    recommendations.append(InfluenceRecommendation(
                        type="engage_contact",
                        contact=contact,
                        reason="Key contact at account but not engaged in deal",
                        priority="medium",
                    ))

        return recommendations

    def contact_interactions(
        self,
        contact_id: str,
        interaction_type: Optional[InteractionType | str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Interaction]:
        """Interactions for a contact, newest first."""
        interactions = self.store.interactions_for(contact_id)

        if interaction_type:
            interaction_type = InteractionType(interaction_type)
            interactions = [i for i in interactions if i.type == interaction_type]
        if start:
            interactions = [i for i in interactions if i.date >= start]
        if end:
            interactions = [i for i in interactions if i.date <= end]

        return sorted(interactions, key=lambda i: i.date, reverse=True)

    def interaction_stats(self, contact_id: str) -> dict:
        """Counts, call time and cadence for a contact's interactions."""
        interactions = self.contact_interactions(contact_id)

        stats = {
            "total": len(interactions),
            "by_type": {},
            "total_call_duration": 0.0,
            "last_interaction": interactions[0].date if interactions else None,
            "average_days_between": None,
        }

        for interaction in interactions:
            type_name = interaction.type.value
            stats["by_type"][type_name] = stats["by_type"].get(type_name, 0) + 1
            if interaction.type == InteractionType.CALL and interaction.duration:
                stats["total_call_duration"] += interaction.duration

        if len(interactions) > 1:
            span = interactions[0].date - interactions[-1].date
            stats["average_days_between"] = round(
                span.total_seconds() / 86400 / (len(interactions) - 1)
            )

        return stats
