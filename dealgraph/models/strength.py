"""
Relationship Strength Updater

Raises edge strengths in response to tracked interactions.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from dealgraph.models.entities import Edge, Interaction, InteractionType
from dealgraph.models.influence import InfluenceScorer
from dealgraph.models.store import EntityStore, GraphError

logger = logging.getLogger(__name__)


class RelationshipStrengthUpdater:
    """Applies interaction-driven increments to relationship edges.

    Formula:
        increase = base_increment(type) [+ long_call_bonus]
        increase *= completion_multiplier   unless completed is False
        strength = min(strength + increase, 1.0)
    """

    DEFAULT_INCREMENTS = {
        InteractionType.CALL: 0.02,
        InteractionType.MEETING: 0.04,
        InteractionType.EMAIL: 0.01,
    }

    def __init__(
        self,
        scorer: Optional[InfluenceScorer] = None,
        increments: Optional[dict[str, float]] = None,
        default_increment: float = 0.005,
        long_call_minutes: float = 30,
        long_call_bonus: float = 0.03,
        completion_multiplier: float = 1.2,
    ):
        """Initialize updater.

        Args:
            scorer: Scorer to re-run after each interaction
            increments: Custom increments per interaction type
            default_increment: Increment for types without an entry
            long_call_minutes: Calls longer than this earn the bonus
            long_call_bonus: Extra increment for long calls
            completion_multiplier: Multiplier unless completed is False
        """
        self.scorer = scorer or InfluenceScorer()
        self.default_increment = default_increment
        self.long_call_minutes = long_call_minutes
        self.long_call_bonus = long_call_bonus
        self.completion_multiplier = completion_multiplier

        self.increments = self.DEFAULT_INCREMENTS.copy()
        if increments:
            for key, value in increments.items():
                try:
                    self.increments[InteractionType(key)] = value
                except ValueError:
                    logger.warning(f"Unknown interaction type: {key}")

    def calculate_increase(
        self,
        interaction_type: InteractionType | str,
        metadata: Optional[dict] = None,
    ) -> float:
        """Strength increase for one interaction."""
        metadata = metadata or {}
        try:
            interaction_type = InteractionType(interaction_type)
        except ValueError:
            interaction_type = None

        increase = self.increments.get(interaction_type, self.default_increment)

        if interaction_type == InteractionType.CALL:
            duration = metadata.get("duration") or 0
            if duration > self.long_call_minutes:
                increase += self.long_call_bonus

        if metadata.get("completed") is not False:
            increase *= self.completion_multiplier

        return increase

    def apply(
        self,
        store: EntityStore,
        contact_id: str,
        interaction_type: InteractionType | str,
        metadata: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> list[Edge]:
        """Raise every relationship edge touching the contact.

        Returns:
            The edges that were updated
        """
        increase = self.calculate_increase(interaction_type, metadata)
        timestamp = timestamp or datetime.now()

        edges = store.relationship_edges(contact_id)
        for edge in edges:
            edge.strength = min(edge.strength + increase, 1.0)
            edge.metadata["last_interaction"] = timestamp.isoformat()
            edge.metadata["interaction_count"] = edge.metadata.get("interaction_count", 0) + 1

        return edges

    def record_interaction(
        self,
        store: EntityStore,
        contact_id: str,
        interaction_type: InteractionType | str,
        metadata: Optional[dict] = None,
    ) -> Interaction:
        """Append an interaction, update edge strengths and rescore.

        Args:
            store: Store holding the contact
            contact_id: Contact the interaction belongs to
            interaction_type: call, email, meeting, note or task
            metadata: duration, subject, notes, deal_id, completed and any
                extra keys (kept on the interaction)

        Returns:
            The appended Interaction

        Raises:
            GraphError: If contact_id is not a contact in the store
            ValueError: If the type or metadata values are invalid;
                nothing is written
        """
        if store.find_contact(contact_id) is None:
            raise GraphError(f"Unknown contact: {contact_id}")

        metadata = dict(metadata or {})
        now = datetime.now()

        known = {"duration", "subject", "notes", "deal_id", "dealId", "completed"}
        interaction = Interaction(
            id=f"int_{uuid.uuid4().hex[:12]}",
            contact_id=contact_id,
            type=InteractionType(interaction_type),
            date=now,
            duration=metadata.get("duration"),
            subject=metadata.get("subject") or "",
            notes=metadata.get("notes") or "",
            deal_id=metadata.get("deal_id") or metadata.get("dealId"),
            completed=metadata.get("completed") is not False,
            metadata={k: v for k, v in metadata.items() if k not in known},
        )
        store.append_interaction(interaction)

        # Increments use the validated values, not the raw metadata
        updated = self.apply(
            store,
            contact_id,
            interaction.type,
            {"duration": interaction.duration, "completed": interaction.completed},
            timestamp=now,
        )
        logger.info(
            f"Tracked {interaction.type.value} for {contact_id}, "
            f"strengthened {len(updated)} relationships"
        )

        self.scorer.recompute_all(store)

        return interaction
