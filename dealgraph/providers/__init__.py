"""
Profile and CRM Provider Layer

Provides a unified interface for external data sources:
- LinkedIn (profile enrichment and relationship suggestions)
- HubSpot (CRM contacts, companies, deals and activity)
"""

from dealgraph.providers.base import (
    ProfileData,
    ProfileProvider,
    RelationshipSuggestion,
    get_provider,
)
from dealgraph.providers.hubspot import HubSpotSource

__all__ = [
    "ProfileData",
    "ProfileProvider",
    "RelationshipSuggestion",
    "get_provider",
    "HubSpotSource",
]
