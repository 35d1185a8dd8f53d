"""
Entity Store

In-memory collections of nodes, edges and interactions for one graph instance.
"""

import logging
from typing import Iterator, Optional

from dealgraph.models.entities import (
    Account,
    Contact,
    Deal,
    Edge,
    EdgeType,
    Interaction,
    Node,
)

logger = logging.getLogger(__name__)


_HIERARCHY_INVERSE = {
    EdgeType.REPORTS_TO: EdgeType.MANAGES,
    EdgeType.MANAGES: EdgeType.REPORTS_TO,
}


class GraphError(Exception):
    """Base class for graph errors."""


class ReferentialError(GraphError):
    """Raised when an edge references a node that is not in the store."""

    def __init__(self, edge: Edge, missing: list[str]):
        self.edge = edge
        self.missing = missing
        super().__init__(
            f"Edge {edge.id} ({edge.source} -> {edge.target}) references "
            f"unknown node(s): {', '.join(missing)}"
        )


class EntityStore:
    """Process-local store of nodes, edges and interactions.

    Nodes and edges are keyed by id, so upserts are idempotent and
    iteration follows first-insertion order. Interactions are append-only.
    Influence scores on contacts are derived state: the store keeps them,
    but only the scorer writes them.
    """

    def __init__(self):
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        self._interactions: list[Interaction] = []
        self.revision = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    @property
    def interactions(self) -> list[Interaction]:
        return list(self._interactions)

    def _touch(self) -> None:
        self.revision += 1

    def upsert_node(self, node: Node) -> Node:
        """Insert a node or replace the existing node with the same id.

        A contact's influence score is never taken from the caller: a new
        contact starts at 0 and a replaced one keeps its current score
        until the next recompute.
        """
        existing = self._nodes.get(node.id)
        if isinstance(node, Contact):
            if isinstance(existing, Contact):
                node.influence_score = existing.influence_score
            else:
                node.influence_score = 0

        self._nodes[node.id] = node
        self._touch()
        return node

    def find_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def find_contact(self, contact_id: str) -> Optional[Contact]:
        node = self._nodes.get(contact_id)
        return node if isinstance(node, Contact) else None

    def find_edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def contacts(self) -> list[Contact]:
        return [n for n in self._nodes.values() if isinstance(n, Contact)]

    def accounts(self) -> list[Account]:
        return [n for n in self._nodes.values() if isinstance(n, Account)]

    def deals(self) -> list[Deal]:
        return [n for n in self._nodes.values() if isinstance(n, Deal)]

    def upsert_edge(self, edge: Edge) -> Edge:
        """Insert or replace an edge.

        Raises:
            ReferentialError: If either endpoint is not in the store. The
                store is left untouched.
        """
        missing = [
            node_id for node_id in (edge.source, edge.target)
            if node_id not in self._nodes
        ]
        if missing:
            raise ReferentialError(edge, missing)

        if edge.type in _HIERARCHY_INVERSE:
            self._reconcile_hierarchy(edge)

        self._edges[edge.id] = edge
        self._touch()
        return edge

    def _reconcile_hierarchy(self, edge: Edge) -> None:
        """Keep reports_to/manages pairs consistent with a newly asserted edge.

        reports_to(A->B) and manages(B->A) state the same fact: an existing
        twin takes the new strength and confirmation. reports_to(B->A) and
        manages(A->B) contradict it and are dropped.
        """
        inverse = _HIERARCHY_INVERSE[edge.type]

        for existing in list(self._edges.values()):
            if existing.id == edge.id:
                continue

            is_twin = (
                existing.type == inverse
                and existing.source == edge.target
                and existing.target == edge.source
            )
            contradicts = (
                (existing.type == edge.type
                 and existing.source == edge.target
                 and existing.target == edge.source)
                or (existing.type == inverse
                    and existing.source == edge.source
                    and existing.target == edge.target)
            )

            if is_twin:
                existing.strength = edge.strength
                existing.confirmed = edge.confirmed
            elif contradicts:
                logger.info(
                    f"Dropping {existing.type.value} edge {existing.id}: "
                    f"contradicted by {edge.type.value} edge {edge.id}"
                )
                del self._edges[existing.id]

    def edges_touching(self, node_id: str) -> list[Edge]:
        """All edges with node_id as source or target, in insertion order."""
        return [e for e in self._edges.values() if e.touches(node_id)]

    def relationship_edges(self, node_id: str) -> list[Edge]:
        """Edges touching node_id, excluding works_at/belongs_to."""
        return [
            e for e in self._edges.values()
            if e.touches(node_id) and not e.type.is_structural
        ]

    def edge_between(self, a: str, b: str) -> Optional[Edge]:
        """First edge joining a and b, regardless of direction."""
        for edge in self._edges.values():
            if edge.joins(a, b):
                return edge
        return None

    def iter_edges(self, edge_type: Optional[EdgeType] = None) -> Iterator[Edge]:
        for edge in self._edges.values():
            if edge_type is None or edge.type == edge_type:
                yield edge

    def append_interaction(self, interaction: Interaction) -> Interaction:
        """Append an interaction and refresh the contact's summary fields."""
        self._interactions.append(interaction)

        contact = self.find_contact(interaction.contact_id)
        if contact is not None:
            contact.interaction_count += 1
            if contact.last_interaction is None or interaction.date > contact.last_interaction:
                contact.last_interaction = interaction.date

        self._touch()
        return interaction

    def interactions_for(self, contact_id: str) -> list[Interaction]:
        return [i for i in self._interactions if i.contact_id == contact_id]

    def interactions_for_deal(self, deal_id: str) -> list[Interaction]:
        return [i for i in self._interactions if i.deal_id == deal_id]

    def stats(self) -> dict:
        """Counts by node and edge type."""
        node_counts: dict[str, int] = {}
        for node in self._nodes.values():
            node_counts[node.type] = node_counts.get(node.type, 0) + 1

        edge_counts: dict[str, int] = {}
        for edge in self._edges.values():
            edge_counts[edge.type.value] = edge_counts.get(edge.type.value, 0) + 1

        return {
            "nodes": node_counts,
            "edges": edge_counts,
            "interactions": len(self._interactions),
            "unconfirmed_edges": sum(1 for e in self._edges.values() if not e.confirmed),
        }
