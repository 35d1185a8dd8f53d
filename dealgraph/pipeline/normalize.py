"""
Graph Normalization

Resolves references inside an import batch and writes nodes, edges and
interactions into the entity store.
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from dealgraph.models.entities import (
    Account,
    Contact,
    ContactRole,
    Deal,
    Edge,
    EdgeType,
    Interaction,
)
from dealgraph.models.influence import InfluenceScorer, title_matches
from dealgraph.models.store import EntityStore, ReferentialError
from dealgraph.pipeline.ingest import ImportBatch

logger = logging.getLogger(__name__)


# Ordered; the first rule with a matching keyword wins
ROLE_RULES: list[tuple[tuple[str, ...], ContactRole]] = [
    (("ceo", "chief executive"), ContactRole.DECISION_MAKER),
    (("cto", "chief technology"), ContactRole.DECISION_MAKER),
    (("cfo", "chief financial"), ContactRole.DECISION_MAKER),
    (("vp", "svp", "evp", "vice president"), ContactRole.DECISION_MAKER),
    (("director",), ContactRole.INFLUENCER),
    (("manager",), ContactRole.INFLUENCER),
]


def infer_role(title: Optional[str]) -> ContactRole:
    """Buying role implied by a job title."""
    title = title or ""
    for keywords, role in ROLE_RULES:
        if any(title_matches(title, k) for k in keywords):
            return role
    return ContactRole.END_USER


class ImportSummary(BaseModel):
    """What one import wrote into the store."""
    contacts: int = 0
    accounts: int = 0
    deals: int = 0
    edges: int = 0
    interactions: int = 0
    dropped: int = Field(default=0, description="References that did not resolve")
    skipped_rows: int = 0
    dropped_refs: list[str] = Field(default_factory=list)

    @property
    def nodes(self) -> int:
        return self.contacts + self.accounts + self.deals


class _RefIndex:
    """Maps canonical and external ids of one kind to canonical ids."""

    def __init__(self):
        self._ids: dict[str, str] = {}

    def add(self, canonical_id: str, external_id: Optional[str] = None) -> None:
        self._ids[canonical_id] = canonical_id
        if external_id:
            self._ids.setdefault(external_id, canonical_id)

    def resolve(self, ref: Optional[str]) -> Optional[str]:
        if not ref:
            return None
        return self._ids.get(ref)


def _resolve_any(indexes: list[_RefIndex], ref: Optional[str]) -> Optional[str]:
    for index in indexes:
        resolved = index.resolve(ref)
        if resolved:
            return resolved
    return None


class GraphImporter:
    """Writes ImportBatches into an EntityStore.

    Edge weights:
        works_at            1.0   contact -> company
        belongs_to          1.0   deal -> company
        reports_to          0.9   contact -> manager (same batch only)
        decision_maker_for  0.95  contact -> deal, decision makers
        influencer_for      0.7   contact -> deal, everyone else
    """

    def __init__(
        self,
        scorer: Optional[InfluenceScorer] = None,
        reports_to_strength: float = 0.9,
        works_at_strength: float = 1.0,
        belongs_to_strength: float = 1.0,
        decision_maker_strength: float = 0.95,
        influencer_strength: float = 0.7,
    ):
        """Initialize importer.

        Args:
            scorer: Scorer run once the batch is written
            reports_to_strength: Strength of imported reporting lines
            works_at_strength: Strength of contact -> company edges
            belongs_to_strength: Strength of deal -> company edges
            decision_maker_strength: Strength of decision_maker_for edges
            influencer_strength: Strength of influencer_for edges
        """
        self.scorer = scorer or InfluenceScorer()
        self.reports_to_strength = reports_to_strength
        self.works_at_strength = works_at_strength
        self.belongs_to_strength = belongs_to_strength
        self.decision_maker_strength = decision_maker_strength
        self.influencer_strength = influencer_strength

    def _drop(self, summary: ImportSummary, message: str) -> None:
        logger.debug(f"Dropped reference: {message}")
        summary.dropped += 1
        summary.dropped_refs.append(message)

    def _add_edge(
        self,
        store: EntityStore,
        summary: ImportSummary,
        edge: Edge,
    ) -> None:
        try:
            store.upsert_edge(edge)
            summary.edges += 1
        except ReferentialError as e:
            self._drop(summary, str(e))

    def import_batch(
        self,
        store: EntityStore,
        batch: ImportBatch,
        reference_date: Optional[datetime] = None,
    ) -> ImportSummary:
        """Write a batch into the store and rescore every contact.

        Foreign keys are matched by canonical id or external id. Manager
        pointers must resolve within the batch; company, deal and contact
        references may also point at nodes already in the store. Anything
        unresolved is dropped and counted.

        Args:
            store: Store to populate
            batch: Parsed records
            reference_date: "Now" for the final influence recompute

        Returns:
            ImportSummary with counts of what was written and dropped
        """
        summary = ImportSummary(skipped_rows=len(batch.errors))

        companies = _RefIndex()
        contacts = _RefIndex()
        deals = _RefIndex()

        for node in store.nodes:
            index = {"contact": contacts, "account": companies, "deal": deals}[node.type]
            index.add(node.id, node.external_id)

        batch_contacts = _RefIndex()
        for record in batch.contacts:
            batch_contacts.add(record.id, record.external_id)
            contacts.add(record.id, record.external_id)
        for record in batch.companies:
            companies.add(record.id, record.external_id)
        for record in batch.deals:
            deals.add(record.id, record.external_id)

        # Companies
        for record in batch.companies:
            store.upsert_node(Account(
                id=record.id,
                name=record.name,
                industry=record.industry,
                size=record.size,
                location=record.location,
                website=record.website,
                external_id=record.external_id,
                metadata=record.metadata,
            ))
            summary.accounts += 1

        # Contacts, then their edges once every contact exists
        roles: dict[str, ContactRole] = {}
        for record in batch.contacts:
            company_id = companies.resolve(record.company_id)
            manager_id = batch_contacts.resolve(record.reports_to)
            account = store.find_node(company_id) if company_id else None

            role = infer_role(record.title)
            roles[record.id] = role

            store.upsert_node(Contact(
                id=record.id,
                name=record.name or record.email or record.id,
                title=record.title,
                company=record.company or (account.name if account else ""),
                company_ref=company_id,
                email=record.email,
                phone=record.phone,
                role=role,
                reports_to_ref=manager_id,
                last_interaction=record.last_contacted,
                external_id=record.external_id,
                metadata=record.metadata,
            ))
            summary.contacts += 1

        for record in batch.contacts:
            company_id = companies.resolve(record.company_id)
            if company_id:
                self._add_edge(store, summary, Edge(
                    id=f"{record.id}_works_at_{company_id}",
                    source=record.id,
                    target=company_id,
                    type=EdgeType.WORKS_AT,
                    strength=self.works_at_strength,
                ))
            elif record.company_id:
                self._drop(summary, f"{record.id}: company {record.company_id}")

            manager_id = batch_contacts.resolve(record.reports_to)
            if manager_id and manager_id != record.id:
                self._add_edge(store, summary, Edge(
                    id=f"{record.id}_reports_to_{manager_id}",
                    source=record.id,
                    target=manager_id,
                    type=EdgeType.REPORTS_TO,
                    strength=self.reports_to_strength,
                ))
            elif record.reports_to:
                self._drop(summary, f"{record.id}: manager {record.reports_to}")

        # Deals
        for record in batch.deals:
            store.upsert_node(Deal(
                id=record.id,
                name=record.name,
                value=record.value,
                stage=record.stage,
                probability=record.probability,
                close_date=record.close_date,
                last_activity=record.last_activity,
                stage_entered_at=record.stage_entered_at,
                external_id=record.external_id,
                metadata=record.metadata,
            ))
            summary.deals += 1

            company_id = companies.resolve(record.company_id)
            if company_id:
                self._add_edge(store, summary, Edge(
                    id=f"{record.id}_belongs_to_{company_id}",
                    source=record.id,
                    target=company_id,
                    type=EdgeType.BELONGS_TO,
                    strength=self.belongs_to_strength,
                ))
            elif record.company_id:
                self._drop(summary, f"{record.id}: company {record.company_id}")

            for ref in record.contact_ids:
                contact_id = contacts.resolve(ref)
                if contact_id is None:
                    self._drop(summary, f"{record.id}: contact {ref}")
                    continue

                role = roles.get(contact_id)
                if role is None:
                    existing = store.find_contact(contact_id)
                    role = existing.role if existing else ContactRole.END_USER

                if role == ContactRole.DECISION_MAKER:
                    edge_type, strength = EdgeType.DECISION_MAKER_FOR, self.decision_maker_strength
                else:
                    edge_type, strength = EdgeType.INFLUENCER_FOR, self.influencer_strength

                self._add_edge(store, summary, Edge(
                    id=f"{contact_id}_{edge_type.value}_{record.id}",
                    source=contact_id,
                    target=record.id,
                    type=edge_type,
                    strength=strength,
                ))

        # Explicit relationships
        all_refs = [contacts, companies, deals]
        for record in batch.relationships:
            source = _resolve_any(all_refs, record.source)
            target = _resolve_any(all_refs, record.target)
            if source is None or target is None:
                self._drop(summary, f"relationship {record.source} -> {record.target}")
                continue

            self._add_edge(store, summary, Edge(
                id=record.id or f"{source}_{record.type.value}_{target}",
                source=source,
                target=target,
                type=record.type,
                strength=record.strength,
                confirmed=record.confirmed,
                metadata=record.metadata,
            ))

        # Interactions
        for record in batch.interactions:
            contact_id = contacts.resolve(record.contact_id)
            if contact_id is None:
                self._drop(summary, f"interaction {record.id}: contact {record.contact_id}")
                continue

            deal_id = deals.resolve(record.deal_id)
            if record.deal_id and deal_id is None:
                logger.debug(f"Interaction {record.id} references unknown deal {record.deal_id}")

            store.append_interaction(Interaction(
                id=record.id or "",
                contact_id=contact_id,
                type=record.type,
                date=record.date,
                duration=record.duration,
                subject=record.subject,
                notes=record.notes,
                deal_id=deal_id,
                metadata=record.metadata,
            ))
            summary.interactions += 1

        self.scorer.recompute_all(store, reference_date)

        logger.info(
            f"Imported {batch.provider} batch: {summary.nodes} nodes, "
            f"{summary.edges} edges, {summary.interactions} interactions, "
            f"{summary.dropped} dropped references"
        )

        return summary
