"""
Profile Provider Abstraction Layer

This module provides a unified interface for professional-profile sources
used to enrich contacts and suggest relationships between them.

Usage:
    from dealgraph.providers import get_provider

    provider = get_provider("linkedin", base_url="http://localhost:3000/api/linkedin")
    profile = await provider.get_profile_by_email("sarah.johnson@acme.com")
"""

import importlib
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from dealgraph.models.entities import EdgeType


class ProfileData(BaseModel):
    """Standardized profile returned by any provider."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    profile_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("profile_url", "profileUrl", "url"),
    )
    headline: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    connections: Optional[int] = None
    experience: list[dict] = Field(default_factory=list)
    education: list[dict] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)


# Provider relationship kinds to graph edge types
SUGGESTION_TYPES = {
    "colleague": EdgeType.FORMER_COLLEAGUE,
    "former_colleague": EdgeType.FORMER_COLLEAGUE,
    "school": EdgeType.ALUMNI,
    "alumni": EdgeType.ALUMNI,
    "mutual": EdgeType.MUTUAL_CONNECTION,
    "mutual_connection": EdgeType.MUTUAL_CONNECTION,
    "connection": EdgeType.MUTUAL_CONNECTION,
}


class RelationshipSuggestion(BaseModel):
    """A relationship a provider believes exists between two contacts."""
    source: str
    target: str
    type: EdgeType = EdgeType.MUTUAL_CONNECTION
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict[str, Any], provider: str) -> "RelationshipSuggestion":
        """Build a suggestion from a provider's loosely shaped record."""
        kind = str(raw.get("type") or raw.get("relationshipType") or "").lower()
        strength = float(raw.get("confidence") or raw.get("strength") or 0.5)
        return cls(
            source=str(raw.get("sourceId") or raw.get("source")),
            target=str(raw.get("targetId") or raw.get("target")),
            type=SUGGESTION_TYPES.get(kind, EdgeType.MUTUAL_CONNECTION),
            strength=min(max(strength, 0.0), 1.0),
            metadata={
                "source": provider,
                "mutual_connections": raw.get("mutualConnections") or 0,
                "shared_companies": raw.get("sharedCompanies") or [],
                "shared_schools": raw.get("sharedSchools") or [],
                "note": raw.get("note") or "",
            },
        )


class ProfileProvider(ABC):
    """Abstract base class for profile providers.

    Implementations return None for profiles that do not exist and raise
    ConnectionError when the backend cannot be reached or answers with an
    error. Callers decide whether a failure is fatal.
    """

    def __init__(self, **kwargs):
        self.config = kwargs

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'linkedin')."""
        pass

    @abstractmethod
    async def get_profile_by_email(self, email: str) -> Optional[ProfileData]:
        """Look up a profile by email address.

        Returns:
            ProfileData or None if no profile matches
        """
        pass

    @abstractmethod
    async def search_profile(self, name: str, company: str = "") -> Optional[ProfileData]:
        """Search for a profile by full name and company.

        Returns:
            Best matching ProfileData or None
        """
        pass

    @abstractmethod
    async def relationship_suggestions(
        self,
        contact_id: str,
        other_contact_ids: list[str],
    ) -> list[RelationshipSuggestion]:
        """Suggest relationships between a contact and other known contacts.

        Args:
            contact_id: Contact to find relationships for
            other_contact_ids: Candidates on the other end

        Returns:
            List of suggestions, possibly empty
        """
        pass

    async def close(self) -> None:
        """Release any open connections."""
        return None


def get_provider(provider_name: str, **kwargs) -> ProfileProvider:
    """Factory function to get the appropriate profile provider.

    Args:
        provider_name: One of 'linkedin'
        **kwargs: Provider-specific configuration

    Returns:
        Configured ProfileProvider instance

    Raises:
        ValueError: If provider_name is not recognized
    """
    providers = {
        'linkedin': 'dealgraph.providers.linkedin.LinkedInProvider',
    }

    if provider_name not in providers:
        raise ValueError(
            f"Unknown provider: {provider_name}. "
            f"Available: {list(providers.keys())}"
        )

    # Dynamic import to avoid loading unused providers
    module_path, class_name = providers[provider_name].rsplit('.', 1)
    module = importlib.import_module(module_path)
    provider_class = getattr(module, class_name)

    return provider_class(**kwargs)
