"""
LinkedIn Profile Provider

Talks to the LinkedIn enrichment backend over HTTP.
"""

import logging
from typing import Any, Optional

import httpx

from dealgraph.providers.base import ProfileData, ProfileProvider, RelationshipSuggestion

logger = logging.getLogger(__name__)


class LinkedInProvider(ProfileProvider):
    """LinkedIn enrichment backend.

    Endpoints:
        GET  /profile/{email}   profile by email, 404 when unknown
        POST /search            {name, company} -> profile or results
        POST /relationships     {contactId, otherContactIds} -> suggestions
    """

    DEFAULT_BASE_URL = "http://localhost:3000/api/linkedin"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs
    ):
        """Initialize LinkedIn provider.

        Args:
            base_url: Backend URL (default: http://localhost:3000/api/linkedin)
            api_key: Bearer token sent with every request
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
            **kwargs: Additional configuration
        """
        super().__init__(**kwargs)
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return "linkedin"

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        """Send a request; None on 404, ConnectionError on anything else failing."""
        try:
            response = await self._client.request(method, path, **kwargs)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

        except httpx.HTTPError as e:
            logger.error(f"LinkedIn HTTP error: {e}")
            raise ConnectionError(f"LinkedIn request {method} {path} failed: {e}") from e
        except ValueError as e:
            raise ConnectionError(f"Invalid JSON from LinkedIn {path}: {e}") from e

    @staticmethod
    def _profile(data: Any) -> Optional[ProfileData]:
        if not data:
            return None
        if isinstance(data, dict):
            if data.get("profile"):
                return ProfileData.model_validate(data["profile"])
            if "results" in data:
                results = data["results"] or []
                return ProfileData.model_validate(results[0]) if results else None
            return ProfileData.model_validate(data)
        return None

    async def get_profile_by_email(self, email: str) -> Optional[ProfileData]:
        """Look up a profile by email address."""
        data = await self._request("GET", f"/profile/{email}")
        return self._profile(data)

    async def search_profile(self, name: str, company: str = "") -> Optional[ProfileData]:
        """Search by name and company; the first result wins."""
        data = await self._request("POST", "/search", json={"name": name, "company": company})
        return self._profile(data)

    async def relationship_suggestions(
        self,
        contact_id: str,
        other_contact_ids: list[str],
    ) -> list[RelationshipSuggestion]:
        """Suggested relationships between contact_id and the other contacts."""
        data = await self._request(
            "POST",
            "/relationships",
            json={"contactId": contact_id, "otherContactIds": other_contact_ids},
        )
        if not data:
            return []

        raw = data.get("results", []) if isinstance(data, dict) else data
        suggestions = []
        for item in raw:
            try:
                suggestions.append(RelationshipSuggestion.from_raw(item, self.provider_name))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed relationship suggestion: {e}")
        return suggestions

    async def close(self) -> None:
        await self._client.aclose()
