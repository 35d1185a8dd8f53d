"""
Influence Scorer

Computes a 0-100 influence score per contact from five capped components.
"""

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Optional

from dealgraph.models.entities import Contact
from dealgraph.models.store import EntityStore

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores."""
    return int(math.floor(value + 0.5))


def title_matches(title: str, keyword: str) -> bool:
    """Whole-word, case-insensitive keyword match against a job title."""
    return re.search(rf"\b{re.escape(keyword)}\b", title, re.IGNORECASE) is not None


class InfluenceScorer:
    """Scores contacts against a snapshot of the entity store.

    Formula:
        score = role + deal_involvement + relationship_strength
                + interaction_recency + network_centrality
    Each component is capped; the sum is rounded and clamped to [0, 100].
    """

    DEFAULT_ROLE_SCORES: list[tuple[tuple[str, ...], int]] = [
        (("ceo", "chief executive"), 30),
        (("cto", "chief technology", "cfo", "chief financial"), 25),
        (("vp", "svp", "evp", "vice president"), 20),
        (("director",), 15),
        (("manager",), 10),
    ]

    def __init__(
        self,
        role_scores: Optional[list[tuple[tuple[str, ...], int]]] = None,
        default_role_score: int = 5,
        deal_points: float = 10.0,
        deal_cap: float = 20.0,
        strong_edge_threshold: float = 0.7,
        strong_edge_points: float = 3.0,
        strong_edge_cap: float = 20.0,
        recency_window_days: int = 90,
        recency_points: float = 2.0,
        recency_cap: float = 15.0,
        centrality_points: float = 1.5,
        centrality_cap: float = 15.0,
    ):
        """Initialize scorer with component weights.

        Args:
            role_scores: Ordered (keywords, points) rules; first match wins
            default_role_score: Points when no rule matches the title
            deal_points: Points per outgoing deal-role edge
            deal_cap: Cap on the deal involvement component
            strong_edge_threshold: Minimum strength for a "strong" relationship
            strong_edge_points: Points per strong relationship
            strong_edge_cap: Cap on the relationship strength component
            recency_window_days: Interactions younger than this count as recent
            recency_points: Points per recent interaction
            recency_cap: Cap on the recency component
            centrality_points: Points per relationship edge
            centrality_cap: Cap on the centrality component
        """
        self.role_scores = role_scores or self.DEFAULT_ROLE_SCORES
        self.default_role_score = default_role_score
        self.deal_points = deal_points
        self.deal_cap = deal_cap
        self.strong_edge_threshold = strong_edge_threshold
        self.strong_edge_points = strong_edge_points
        self.strong_edge_cap = strong_edge_cap
        self.recency_window_days = recency_window_days
        self.recency_points = recency_points
        self.recency_cap = recency_cap
        self.centrality_points = centrality_points
        self.centrality_cap = centrality_cap

    def role_score(self, title: Optional[str]) -> int:
        """Points for the first matching title keyword."""
        title = title or ""
        for keywords, points in self.role_scores:
            if any(title_matches(title, k) for k in keywords):
                return points
        return self.default_role_score

    def breakdown(
        self,
        store: EntityStore,
        contact_id: str,
        reference_date: Optional[datetime] = None,
    ) -> dict[str, float]:
        """Per-component contributions for one contact.

        Returns an empty dict for unknown ids and non-contact nodes.
        """
        contact = store.find_contact(contact_id)
        if contact is None:
            return {}

        reference_date = reference_date or datetime.now()
        cutoff = reference_date - timedelta(days=self.recency_window_days)

        deal_edges = [
            e for e in store.edges_touching(contact_id)
            if e.source == contact_id and e.type.is_deal_role
        ]
        relationship_edges = store.relationship_edges(contact_id)
        strong_edges = [
            e for e in relationship_edges
            if e.strength >= self.strong_edge_threshold
        ]
        recent = [
            i for i in store.interactions_for(contact_id)
            if i.date >= cutoff
        ]

        return {
            "role": self.role_score(contact.title),
            "deal_involvement": min(len(deal_edges) * self.deal_points, self.deal_cap),
            "relationship_strength": min(
                len(strong_edges) * self.strong_edge_points, self.strong_edge_cap
            ),
            "interaction_recency": min(len(recent) * self.recency_points, self.recency_cap),
            "network_centrality": min(
                len(relationship_edges) * self.centrality_points, self.centrality_cap
            ),
        }

    def score(
        self,
        store: EntityStore,
        contact_id: str,
        reference_date: Optional[datetime] = None,
    ) -> int:
        """Influence score in [0, 100]; 0 for anything that is not a contact."""
        components = self.breakdown(store, contact_id, reference_date)
        if not components:
            return 0
        total = round_half_up(sum(components.values()))
        return min(max(total, 0), 100)

    def recompute_all(
        self,
        store: EntityStore,
        reference_date: Optional[datetime] = None,
    ) -> dict[str, int]:
        """Rescore every contact in the store and write the results back."""
        reference_date = reference_date or datetime.now()
        scores = {}

        for contact in store.contacts():
            contact.influence_score = self.score(store, contact.id, reference_date)
            scores[contact.id] = contact.influence_score

        logger.debug(f"Recomputed influence for {len(scores)} contacts")
        return scores

    def top_contacts(self, store: EntityStore, n: int = 10) -> list[Contact]:
        """Contacts sorted by current influence score."""
        return sorted(
            store.contacts(),
            key=lambda c: c.influence_score,
            reverse=True,
        )[:n]
