"""
Tests for HubSpot CRM Source
"""

import asyncio

import httpx

from dealgraph.graph import RelationshipGraph
from dealgraph.providers.hubspot import HubSpotSource


BASE_URL = "http://hubspot.test/api/hubspot"

CONTACT_PAGES = {
    None: {
        "results": [{
            "id": "101",
            "properties": {"firstname": "Ann", "lastname": "Lee", "jobtitle": "CEO"},
            "associations": {"companies": {"results": [{"id": "201"}]}},
        }],
        "paging": {"next": {"after": "p2"}},
    },
    "p2": {
        "results": [{
            "id": "102",
            "properties": {"firstname": "Ben", "lastname": "Ortiz", "jobtitle": "IT Manager",
                           "reports_to": "101"},
            "associations": {"companies": {"results": [{"id": "201"}]}},
        }],
    },
}


def make_handler(calls, fail_on=None):
    """Fake HubSpot backend with two contact pages."""
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append((path, request.url.params.get("after")))

        if fail_on and path.endswith(fail_on):
            return httpx.Response(503)

        if path == "/api/hubspot/contacts":
            return httpx.Response(200, json=CONTACT_PAGES[request.url.params.get("after")])
        if path == "/api/hubspot/companies":
            return httpx.Response(200, json={"results": [
                {"id": "201", "properties": {"name": "Initech", "city": "Austin"}},
            ]})
        if path == "/api/hubspot/deals":
            return httpx.Response(200, json=[{
                "id": "301",
                "properties": {"dealname": "Initech Renewal", "amount": "90000",
                               "dealstage": "presentationscheduled",
                               "hs_deal_stage_probability": "0.5"},
                "associations": {
                    "contacts": {"results": [{"id": "101"}, {"id": "102"}]},
                    "companies": {"results": [{"id": "201"}]},
                },
            }])
        if path == "/api/hubspot/contacts/101/interactions":
            return httpx.Response(200, json={"results": [
                {"id": "9001", "type": "CALL", "createdAt": "2024-06-10T15:00:00"},
            ]})
        if path == "/api/hubspot/contacts/102/interactions":
            return httpx.Response(200, json=[])
        return httpx.Response(404)

    return handler


class TestHubSpotSource:
    """Tests for fetching a CRM snapshot."""

    def test_fetch_follows_paging(self):
        """Test every page is fetched and activity is attributed to its contact."""
        calls = []
        source = HubSpotSource(base_url=BASE_URL, transport=httpx.MockTransport(make_handler(calls)))

        result = asyncio.run(source.fetch())

        assert result.ok
        batch = result.batch
        assert [c.id for c in batch.contacts] == ["hubspot_contact_101", "hubspot_contact_102"]
        assert ("/api/hubspot/contacts", "p2") in calls
        assert batch.deals[0].probability == 50
        assert batch.interactions[0].id == "hubspot_int_9001"
        assert batch.interactions[0].contact_id == "101"

    def test_fetch_without_interactions(self):
        """Test activity calls can be switched off."""
        calls = []
        source = HubSpotSource(
            base_url=BASE_URL,
            include_interactions=False,
            transport=httpx.MockTransport(make_handler(calls)),
        )

        result = asyncio.run(source.fetch())

        assert result.ok
        assert result.batch.interactions == []
        assert not any("interactions" in path for path, _ in calls)

    def test_transport_error_is_failure(self):
        """Test a failing endpoint yields a failed result, not sample data."""
        source = HubSpotSource(
            base_url=BASE_URL,
            transport=httpx.MockTransport(make_handler([], fail_on="/deals")),
        )

        result = asyncio.run(source.fetch())

        assert not result.ok
        assert result.batch is None
        assert "/deals" in result.error

    def test_import_into_graph(self, now):
        """Test a fetched snapshot imports with resolved associations."""
        source = HubSpotSource(base_url=BASE_URL, transport=httpx.MockTransport(make_handler([])))
        batch = asyncio.run(source.fetch()).batch

        graph = RelationshipGraph()
        summary = graph.load(batch, reference_date=now)

        assert summary.dropped == 0
        chart = graph.get_org_chart("hubspot_company_201")
        assert chart["hubspot_contact_102"].reports_to == "hubspot_contact_101"
        assert graph.store.find_edge(
            "hubspot_contact_101_decision_maker_for_hubspot_deal_301"
        ) is not None
        assert graph.store.find_edge(
            "hubspot_contact_102_influencer_for_hubspot_deal_301"
        ) is not None
