"""
Sample Data

Built-in Acme/TechStart batch for demos and tests. Dates are relative to
the reference time so recency and stalling behave the same on any day.
"""

from datetime import datetime, timedelta
from typing import Optional

from dealgraph.pipeline.ingest import ImportBatch, parse_records


def _days_ago(now: datetime, days: int) -> str:
    return (now - timedelta(days=days)).isoformat()


def sample_batch(now: Optional[datetime] = None) -> ImportBatch:
    """Two accounts, five contacts, two deals and a handful of interactions."""
    now = now or datetime.now()

    companies = [
        {"id": "account_1", "name": "Acme Corporation", "industry": "Technology",
         "size": "500-1000 employees", "location": "San Francisco, CA"},
        {"id": "account_2", "name": "TechStart Inc", "industry": "Technology",
         "size": "100-500 employees", "location": "Austin, TX"},
    ]

    contacts = [
        {"id": "contact_1", "name": "Sarah Johnson", "title": "VP of Engineering",
         "email": "sarah.johnson@acme.com", "companyId": "account_1"},
        {"id": "contact_2", "name": "Michael Chen", "title": "CTO",
         "email": "michael.chen@acme.com", "companyId": "account_1"},
        {"id": "contact_3", "name": "Emily Rodriguez", "title": "Procurement Manager",
         "email": "emily.rodriguez@acme.com", "companyId": "account_1"},
        {"id": "contact_4", "name": "David Lee", "title": "Engineering Manager",
         "email": "david.lee@acme.com", "companyId": "account_1"},
        {"id": "contact_5", "name": "John Smith", "title": "CEO",
         "email": "john.smith@techstart.com", "companyId": "account_2"},
    ]

    deals = [
        {"id": "deal_1", "name": "Q4 Enterprise License", "value": 250000,
         "stage": "negotiation", "probability": 70, "companyId": "account_1",
         "lastActivity": _days_ago(now, 3), "stageEntryDate": _days_ago(now, 9)},
        {"id": "deal_2", "name": "Q1 Starter Package", "value": 50000,
         "stage": "qualified", "probability": 40, "companyId": "account_2",
         "lastActivity": _days_ago(now, 12)},
    ]

    relationships = [
        {"id": "edge_1", "source": "contact_2", "target": "contact_1",
         "type": "reports_to", "strength": 0.9, "metadata": {"source": "hubspot"}},
        {"id": "edge_2", "source": "contact_1", "target": "contact_4",
         "type": "manages", "strength": 0.85},
        {"id": "edge_3", "source": "contact_1", "target": "contact_3",
         "type": "mutual_connection", "strength": 0.7},
        {"id": "edge_4", "source": "contact_1", "target": "deal_1",
         "type": "decision_maker_for", "strength": 0.95},
        {"id": "edge_5", "source": "contact_2", "target": "deal_1",
         "type": "influencer_for", "strength": 0.8},
        {"id": "edge_6", "source": "contact_3", "target": "deal_1",
         "type": "influencer_for", "strength": 0.6},
        {"id": "edge_7", "source": "contact_5", "target": "deal_2",
         "type": "decision_maker_for", "strength": 0.9},
        {"id": "edge_15", "source": "contact_1", "target": "contact_5",
         "type": "former_colleague", "strength": 0.5, "confirmed": False,
         "metadata": {"source": "linkedin_suggestion",
                      "note": "Worked together at previous company"}},
    ]

    interactions = [
        {"id": "int_1", "contactId": "contact_1", "type": "call",
         "date": _days_ago(now, 1), "duration": 30, "dealId": "deal_1"},
        {"id": "int_2", "contactId": "contact_1", "type": "email",
         "date": _days_ago(now, 2)},
        {"id": "int_3", "contactId": "contact_2", "type": "call",
         "date": _days_ago(now, 6), "duration": 45},
        {"id": "int_4", "contactId": "contact_3", "type": "meeting",
         "date": _days_ago(now, 8), "duration": 60, "dealId": "deal_1"},
        {"id": "int_5", "contactId": "contact_1", "type": "call",
         "date": _days_ago(now, 11), "duration": 20},
    ]

    return parse_records(
        provider="native",
        contacts=contacts,
        companies=companies,
        deals=deals,
        interactions=interactions,
        relationships=relationships,
        source="sample",
    )
