"""
Profile Enrichment Pipeline

Fills contact gaps from a profile provider and adds suggested relationships
as unconfirmed edges.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, ValidationError

from dealgraph.models.entities import Contact, Edge, LinkedInProfile
from dealgraph.models.influence import InfluenceScorer
from dealgraph.models.store import EntityStore, ReferentialError
from dealgraph.pipeline.normalize import infer_role
from dealgraph.providers.base import (
    ProfileData,
    ProfileProvider,
    RelationshipSuggestion,
    get_provider,
)
from dealgraph.utils.cache import EnrichmentCache

logger = logging.getLogger(__name__)


class EnrichmentResult(BaseModel):
    """Outcome of enriching one contact."""
    contact_id: str
    enriched: bool = False
    suggestions_added: int = 0
    error: Optional[str] = None


def merge_profile(contact: Contact, profile: ProfileData, now: Optional[datetime] = None) -> Contact:
    """Copy of contact with empty fields filled from the profile.

    Existing title, location, industry, experience, education and skills
    are never overwritten. The profile block is always replaced. When the
    headline fills a missing title, the buying role is inferred again.
    """
    title = contact.title or profile.headline or ""
    role = contact.role if title == contact.title else infer_role(title)

    return contact.model_copy(update={
        "title": title,
        "role": role,
        "location": contact.location or profile.location or "",
        "industry": contact.industry or profile.industry or "",
        "experience": contact.experience or profile.experience,
        "education": contact.education or profile.education,
        "skills": contact.skills or profile.skills,
        "linkedin": LinkedInProfile(
            profile_url=profile.profile_url,
            headline=profile.headline,
            summary=profile.summary,
            location=profile.location,
            industry=profile.industry,
            connections=profile.connections,
            verified=True,
            last_enriched=now or datetime.now(),
        ),
    })


class EnrichmentPipeline:
    """Orchestrates provider-based enrichment of contacts in a store.

    Provider calls for a batch run concurrently; every write to the store
    happens under one lock per pipeline, so the duplicate-edge check and
    the insert it guards are never interleaved.
    """

    def __init__(
        self,
        provider: Optional[ProfileProvider] = None,
        provider_name: str = "linkedin",
        cache: Optional[EnrichmentCache] = None,
        scorer: Optional[InfluenceScorer] = None,
        batch_size: int = 5,
        **provider_kwargs,
    ):
        """Initialize enrichment pipeline.

        Args:
            provider: Pre-configured profile provider
            provider_name: Provider name if provider not given
            cache: Profile lookup cache
            scorer: Scorer re-run after contacts are enriched
            batch_size: Number of concurrent provider lookups
            **provider_kwargs: Passed to get_provider when provider not given
        """
        self.provider = provider or get_provider(provider_name, **provider_kwargs)
        self.cache = cache or EnrichmentCache(enabled=False)
        self.scorer = scorer or InfluenceScorer()
        self.batch_size = batch_size
        self._lock = asyncio.Lock()

    async def _cached_lookup(self, lookup: str, query: dict, fetch) -> Optional[ProfileData]:
        cached = self.cache.get(self.provider.provider_name, lookup, query)
        if cached is not None:
            return ProfileData.model_validate(cached)

        profile = await fetch()
        if profile is not None:
            self.cache.set(self.provider.provider_name, lookup, query, profile.model_dump())
        return profile

    async def lookup_profile(self, contact: Contact) -> Optional[ProfileData]:
        """Email lookup first, then name + company search."""
        profile = None
        if contact.email:
            profile = await self._cached_lookup(
                "email",
                {"email": contact.email},
                lambda: self.provider.get_profile_by_email(contact.email),
            )

        if profile is None and contact.name:
            profile = await self._cached_lookup(
                "search",
                {"name": contact.name, "company": contact.company},
                lambda: self.provider.search_profile(contact.name, contact.company),
            )

        return profile

    def _add_suggestions(
        self,
        store: EntityStore,
        suggestions: list[RelationshipSuggestion],
    ) -> int:
        added = 0
        for suggestion in suggestions:
            if suggestion.source == suggestion.target:
                continue
            if store.edge_between(suggestion.source, suggestion.target) is not None:
                continue

            edge = Edge(
                id=f"{suggestion.source}_{suggestion.type.value}_{suggestion.target}",
                source=suggestion.source,
                target=suggestion.target,
                type=suggestion.type,
                strength=suggestion.strength,
                confirmed=False,
                metadata=suggestion.metadata,
            )
            try:
                store.upsert_edge(edge)
                added += 1
            except ReferentialError as e:
                logger.debug(f"Ignoring suggestion: {e}")

        return added

    async def _enrich_one(
        self,
        store: EntityStore,
        contact_id: str,
        now: Optional[datetime] = None,
    ) -> EnrichmentResult:
        result = EnrichmentResult(contact_id=contact_id)

        contact = store.find_contact(contact_id)
        if contact is None:
            result.error = "unknown contact"
            return result

        try:
            profile = await self.lookup_profile(contact)
            if profile is None:
                logger.debug(f"No profile found for {contact.name}")
                return result

        except (ConnectionError, ValidationError) as e:
            logger.warning(f"Enrichment failed for {contact.name}: {e}")
            result.error = str(e)
            return result

        # A failed suggestion lookup still keeps the profile
        others = [c.id for c in store.contacts() if c.id != contact_id]
        try:
            suggestions = await self.provider.relationship_suggestions(contact_id, others)
        except (ConnectionError, ValidationError) as e:
            logger.warning(f"Relationship suggestions failed for {contact.name}: {e}")
            suggestions = []

        async with self._lock:
            # Re-read: the contact may have been replaced while we awaited
            current = store.find_contact(contact_id) or contact
            store.upsert_node(merge_profile(current, profile, now))
            result.enriched = True
            result.suggestions_added = self._add_suggestions(store, suggestions)

        return result

    async def enrich_contact(
        self,
        store: EntityStore,
        contact_id: str,
        now: Optional[datetime] = None,
    ) -> EnrichmentResult:
        """Enrich a single contact and rescore the store."""
        result = await self._enrich_one(store, contact_id, now)
        if result.enriched:
            self.scorer.recompute_all(store)
        return result

    async def enrich_contacts(
        self,
        store: EntityStore,
        contact_ids: Optional[list[str]] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        now: Optional[datetime] = None,
    ) -> list[EnrichmentResult]:
        """Enrich many contacts in concurrent batches.

        Args:
            store: Store holding the contacts
            contact_ids: Contacts to enrich (default: every contact)
            progress_callback: Called with (done, total) after each batch
            now: Timestamp recorded as last_enriched

        Returns:
            One EnrichmentResult per requested contact
        """
        contact_ids = contact_ids if contact_ids is not None else [c.id for c in store.contacts()]
        if not contact_ids:
            logger.info("No contacts to enrich")
            return []

        logger.info(f"Enriching {len(contact_ids)} contacts via {self.provider.provider_name}")

        results: list[EnrichmentResult] = []
        for i in range(0, len(contact_ids), self.batch_size):
            batch = contact_ids[i:i + self.batch_size]
            tasks = [self._enrich_one(store, contact_id, now) for contact_id in batch]
            results.extend(await asyncio.gather(*tasks))

            if progress_callback:
                progress_callback(min(i + self.batch_size, len(contact_ids)), len(contact_ids))

        added = sum(r.suggestions_added for r in results)
        enriched = sum(r.enriched for r in results)
        if enriched:
            self.scorer.recompute_all(store)

        logger.info(
            f"Enrichment complete: {enriched} enriched, "
            f"{added} suggested relationships, "
            f"{sum(1 for r in results if r.error)} failed"
        )

        return results
