"""
HubSpot CRM Source

Pulls contacts, companies, deals and contact activity from the HubSpot
backend and maps them through the hubspot field map.
"""

import logging
from typing import Any, Optional

import httpx

from dealgraph.pipeline.ingest import ImportResult, RecordImportError, parse_records

logger = logging.getLogger(__name__)


class HubSpotSource:
    """Reads a full CRM snapshot from the HubSpot backend.

    Endpoints:
        GET /contacts, /companies, /deals        paged by ?after=<cursor>
        GET /contacts/{id}/interactions          activity for one contact
    """

    DEFAULT_BASE_URL = "http://localhost:3000/api/hubspot"
    PROPERTIES = {
        "contacts": [
            "firstname", "lastname", "email", "phone", "jobtitle", "company",
            "reports_to", "manager_id", "notes_last_contacted",
        ],
        "companies": [
            "name", "industry", "numberofemployees", "city", "state", "country", "domain",
        ],
        "deals": [
            "dealname", "amount", "dealstage", "hs_deal_stage_probability",
            "closedate", "notes_last_updated", "hs_date_entered_current_stage",
        ],
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 100,
        include_interactions: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize HubSpot source.

        Args:
            base_url: Backend URL (default: http://localhost:3000/api/hubspot)
            api_key: Bearer token sent with every request
            timeout: Request timeout in seconds
            page_size: Records requested per page
            include_interactions: Also fetch activity for every contact
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.page_size = page_size
        self.include_interactions = include_interactions

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise RecordImportError(f"HubSpot request GET {path} failed: {e}") from e
        except ValueError as e:
            raise RecordImportError(f"Invalid JSON from HubSpot {path}: {e}") from e

    async def _get_all(self, collection: str) -> list[dict]:
        """Follow paging cursors until the collection is exhausted."""
        records: list[dict] = []
        params: dict[str, Any] = {
            "limit": self.page_size,
            "properties": ",".join(self.PROPERTIES.get(collection, [])),
        }

        while True:
            data = await self._get(f"/{collection}", params=params)
            if isinstance(data, list):
                records.extend(data)
                break

            records.extend(data.get("results", []))
            cursor = (data.get("paging") or {}).get("next", {}).get("after")
            if not cursor:
                break
            params["after"] = cursor

        logger.debug(f"Fetched {len(records)} HubSpot {collection}")
        return records

    async def _interactions(self, contacts: list[dict]) -> list[dict]:
        interactions = []
        for contact in contacts:
            contact_id = contact.get("id")
            if not contact_id:
                continue
            data = await self._get(f"/contacts/{contact_id}/interactions")
            rows = data.get("results", []) if isinstance(data, dict) else data
            for row in rows:
                row.setdefault("contactId", contact_id)
                interactions.append(row)
        return interactions

    async def fetch(self) -> ImportResult:
        """Fetch every collection and parse it into an ImportBatch.

        Returns:
            ImportResult with the batch, or the first transport error
        """
        try:
            contacts = await self._get_all("contacts")
            companies = await self._get_all("companies")
            deals = await self._get_all("deals")
            interactions = await self._interactions(contacts) if self.include_interactions else []

            batch = parse_records(
                provider="hubspot",
                contacts=contacts,
                companies=companies,
                deals=deals,
                interactions=interactions,
                source=self.base_url,
            )

        except RecordImportError as e:
            logger.error(f"HubSpot import failed: {e}")
            return ImportResult.failure(e)

        return ImportResult.success(batch)

    async def close(self) -> None:
        await self._client.aclose()
