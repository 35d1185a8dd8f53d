"""
CRM Record Ingestion

Maps provider-native contact, company, deal and interaction records onto
canonical import records, and loads them from CRM export files.
"""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, NamedTuple, Optional

import pandas as pd
from pydantic import BaseModel, Field, ValidationError, field_validator

from dealgraph.models.entities import DealStage, EdgeType, InteractionType

logger = logging.getLogger(__name__)


class RecordImportError(Exception):
    """Raised when a batch of records cannot be loaded at all."""


class ContactRecord(BaseModel):
    """Canonical contact record."""
    kind: Literal["contact"] = "contact"
    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    title: str = ""
    company: str = ""
    company_id: Optional[str] = None
    reports_to: Optional[str] = None
    external_id: Optional[str] = None
    last_contacted: Optional[datetime] = None
    metadata: dict = Field(default_factory=dict)


class CompanyRecord(BaseModel):
    """Canonical company record."""
    kind: Literal["company"] = "company"
    id: str
    name: str = "Unnamed Company"
    industry: str = ""
    size: str = ""
    location: str = ""
    website: str = ""
    external_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class DealRecord(BaseModel):
    """Canonical deal record."""
    kind: Literal["deal"] = "deal"
    id: str
    name: str = "Unnamed Deal"
    value: float = Field(default=0.0, ge=0.0)
    stage: DealStage = DealStage.NEW
    probability: float = Field(default=0.0, ge=0.0, le=100.0)
    company_id: Optional[str] = None
    contact_ids: list[str] = Field(default_factory=list)
    close_date: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    stage_entered_at: Optional[datetime] = None
    external_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)

    @field_validator("contact_ids", mode="before")
    @classmethod
    def _split_contact_ids(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [v.strip() for v in value.replace(",", ";").split(";") if v.strip()]
        return [str(v) for v in value]


class InteractionRecord(BaseModel):
    """Canonical interaction record."""
    kind: Literal["interaction"] = "interaction"
    id: Optional[str] = None
    contact_id: str
    type: InteractionType
    date: datetime
    duration: Optional[float] = None
    subject: str = ""
    notes: str = ""
    deal_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class RelationshipRecord(BaseModel):
    """An explicitly asserted relationship between two records."""
    kind: Literal["relationship"] = "relationship"
    id: Optional[str] = None
    source: str
    target: str
    type: EdgeType
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    confirmed: bool = True
    metadata: dict = Field(default_factory=dict)


class ImportBatch(BaseModel):
    """Container for one ingestion of canonical records."""
    provider: str = "native"
    contacts: list[ContactRecord] = Field(default_factory=list)
    companies: list[CompanyRecord] = Field(default_factory=list)
    deals: list[DealRecord] = Field(default_factory=list)
    interactions: list[InteractionRecord] = Field(default_factory=list)
    relationships: list[RelationshipRecord] = Field(default_factory=list)

    # Metadata
    source: Optional[str] = None
    loaded_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return (
            len(self.contacts) + len(self.companies) + len(self.deals)
            + len(self.interactions) + len(self.relationships)
        )


class ImportResult(BaseModel):
    """Either a loaded batch or the reason it could not be loaded."""
    batch: Optional[ImportBatch] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.batch is not None and self.error is None

    @classmethod
    def success(cls, batch: ImportBatch) -> "ImportResult":
        return cls(batch=batch)

    @classmethod
    def failure(cls, error: str | Exception) -> "ImportResult":
        return cls(error=str(error))


class FieldRule(NamedTuple):
    """Where a canonical field lives in a provider record.

    paths are dotted lookups tried in order; the first non-empty value wins.
    With join set, every non-empty value is joined with that separator.
    A "*" segment collects a value from every list element.
    """
    paths: tuple[str, ...]
    join: Optional[str] = None


def _rule(*paths: str, join: Optional[str] = None) -> FieldRule:
    return FieldRule(paths=paths, join=join)


FIELD_MAPS: dict[str, dict[str, dict[str, FieldRule]]] = {
    "native": {
        "contact": {
            "id": _rule("id"),
            "name": _rule("name", "full_name", "fullName"),
            "first_name": _rule("firstName", "first_name"),
            "last_name": _rule("lastName", "last_name"),
            "email": _rule("email", "email_address"),
            "phone": _rule("phone"),
            "title": _rule("title", "jobtitle", "job_title", "position"),
            "company": _rule("company", "company_name"),
            "company_id": _rule("companyId", "company_id", "companyRef", "account_id"),
            "reports_to": _rule("reportsTo", "reports_to", "managerId", "manager_id"),
            "external_id": _rule("externalId", "external_id", "hubspotId"),
            "last_contacted": _rule("lastInteraction", "last_contacted"),
        },
        "company": {
            "id": _rule("id"),
            "name": _rule("name", "company_name"),
            "industry": _rule("industry"),
            "size": _rule("size", "companySize", "company_size"),
            "location": _rule("location"),
            "website": _rule("website"),
            "external_id": _rule("externalId", "external_id", "hubspotId"),
        },
        "deal": {
            "id": _rule("id"),
            "name": _rule("name", "dealname", "deal_name"),
            "value": _rule("value", "amount"),
            "stage": _rule("stage", "dealstage"),
            "probability": _rule("probability"),
            "company_id": _rule("companyId", "company_id", "account_id"),
            "contact_ids": _rule("contactIds", "contact_ids"),
            "close_date": _rule("closeDate", "close_date"),
            "last_activity": _rule("lastActivity", "last_activity"),
            "stage_entered_at": _rule("stageEntryDate", "stage_entered_at"),
            "external_id": _rule("externalId", "external_id", "hubspotId"),
        },
        "interaction": {
            "id": _rule("id"),
            "contact_id": _rule("contactId", "contact_id"),
            "type": _rule("type"),
            "date": _rule("date", "timestamp"),
            "duration": _rule("duration"),
            "subject": _rule("subject"),
            "notes": _rule("notes"),
            "deal_id": _rule("dealId", "deal_id"),
        },
    },
    "hubspot": {
        "contact": {
            "external_id": _rule("id"),
            "first_name": _rule("properties.firstname"),
            "last_name": _rule("properties.lastname"),
            "email": _rule("properties.email"),
            "phone": _rule("properties.phone"),
            "title": _rule("properties.jobtitle"),
            "company": _rule("properties.company"),
            "company_id": _rule("associations.companies.results.0.id"),
            "reports_to": _rule("properties.reports_to", "properties.manager_id"),
            "last_contacted": _rule("properties.last_contacted_date", "properties.notes_last_contacted"),
        },
        "company": {
            "external_id": _rule("id"),
            "name": _rule("properties.name"),
            "industry": _rule("properties.industry"),
            "size": _rule("properties.numberofemployees"),
            "location": _rule("properties.city", "properties.state", "properties.country", join=", "),
            "website": _rule("properties.website", "properties.domain"),
        },
        "deal": {
            "external_id": _rule("id"),
            "name": _rule("properties.dealname"),
            "value": _rule("properties.amount"),
            "stage": _rule("properties.dealstage"),
            "probability": _rule("properties.hs_deal_stage_probability"),
            "company_id": _rule("associations.companies.results.0.id"),
            "contact_ids": _rule("associations.contacts.results.*.id"),
            "close_date": _rule("properties.closedate"),
            "last_activity": _rule("properties.notes_last_updated", "properties.hs_lastmodifieddate"),
            "stage_entered_at": _rule("properties.hs_date_entered_current_stage"),
        },
        "interaction": {
            "external_id": _rule("id"),
            "contact_id": _rule("contactId", "associations.contacts.results.0.id"),
            "type": _rule("type", "properties.hs_activity_type"),
            "date": _rule("createdAt", "properties.hs_timestamp"),
            "duration": _rule("properties.duration"),
            "subject": _rule("properties.hs_activity_subject"),
            "notes": _rule("properties.hs_note_body"),
            "deal_id": _rule("dealId", "associations.deals.results.0.id"),
        },
    },
}

# Provider ids are namespaced so records from different sources never collide
ID_PREFIXES = {
    "hubspot": {
        "contact": "hubspot_contact_",
        "company": "hubspot_company_",
        "deal": "hubspot_deal_",
        "interaction": "hubspot_int_",
    },
}

# HubSpot reports probability as a 0-1 fraction
PROBABILITY_SCALE = {"native": 1.0, "hubspot": 100.0}

STAGE_MAPS: dict[str, dict[str, DealStage]] = {
    "hubspot": {
        "appointmentscheduled": DealStage.CONTACTED,
        "qualifiedtobuy": DealStage.QUALIFIED,
        "presentationscheduled": DealStage.PROPOSAL,
        "decisionmakerboughtin": DealStage.NEGOTIATION,
        "contractsent": DealStage.NEGOTIATION,
        "closedwon": DealStage.CLOSED,
        "closedlost": DealStage.CLOSED,
    },
}

INTERACTION_TYPE_MAP = {
    "call": InteractionType.CALL,
    "email": InteractionType.EMAIL,
    "incoming_email": InteractionType.EMAIL,
    "meeting": InteractionType.MEETING,
    "note": InteractionType.NOTE,
    "task": InteractionType.TASK,
}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _lookup(record: Any, path: str) -> Any:
    """Resolve a dotted path inside nested dicts and lists."""
    current = record
    segments = path.split(".")

    for i, segment in enumerate(segments):
        if current is None:
            return None
        if segment == "*":
            if not isinstance(current, list):
                return None
            rest = ".".join(segments[i + 1:])
            values = [_lookup(item, rest) if rest else item for item in current]
            return [v for v in values if not _is_missing(v)]
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None

    return current


def extract_fields(record: dict, rules: dict[str, FieldRule]) -> dict[str, Any]:
    """Apply a field-mapping table to one provider record."""
    fields = {}
    for canonical, rule in rules.items():
        values = [_lookup(record, path) for path in rule.paths]
        values = [v for v in values if not _is_missing(v)]
        if not values:
            continue
        if rule.join is not None:
            fields[canonical] = rule.join.join(str(v) for v in values)
        else:
            fields[canonical] = values[0]
    return fields


def _parse_date(value: Any, formats: list[str] = None) -> Optional[datetime]:
    """Parse dates, ISO timestamps and epoch milliseconds into naive local time."""
    if _is_missing(value):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000)
    else:
        text = str(value).strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000)

        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            formats = formats or [
                "%Y-%m-%d",
                "%m/%d/%Y",
                "%d %b %Y",
                "%B %d, %Y",
                "%Y-%m-%d %H:%M:%S",
            ]
            for fmt in formats:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue

        if parsed is None:
            logger.warning(f"Could not parse date: {text}")
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _clean(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def _clean_id(value: Any) -> Optional[str]:
    """Stringify an id; CSV loaders hand back floats like 12.0."""
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _generate_id(kind: str, *parts: str) -> str:
    """Deterministic id for records that arrive without one."""
    key = ":".join(p.lower().strip() for p in parts)
    return f"{kind}_{hashlib.sha256(key.encode()).hexdigest()[:16]}"


def map_stage(provider: str, raw_stage: Any) -> DealStage:
    """Provider deal stage to canonical stage; unknown stages map to new."""
    stage = _clean(raw_stage).lower()
    if not stage:
        return DealStage.NEW

    mapped = STAGE_MAPS.get(provider, {}).get(stage)
    if mapped is not None:
        return mapped
    try:
        return DealStage(stage)
    except ValueError:
        if stage.startswith("closed"):
            return DealStage.CLOSED
        logger.warning(f"Unknown deal stage '{raw_stage}' from {provider}, using 'new'")
        return DealStage.NEW


def map_interaction_type(raw_type: Any) -> InteractionType:
    """Provider activity type to canonical type; unknown types become notes."""
    key = _clean(raw_type).lower()
    mapped = INTERACTION_TYPE_MAP.get(key)
    if mapped is None:
        logger.debug(f"Unknown interaction type '{raw_type}', recording as note")
        return InteractionType.NOTE
    return mapped


def _canonical_id(provider: str, kind: str, fields: dict, *fallback: str) -> str:
    prefix = ID_PREFIXES.get(provider, {}).get(kind)
    external_id = _clean_id(fields.get("external_id"))
    if prefix and external_id:
        return f"{prefix}{external_id}"
    record_id = _clean_id(fields.get("id"))
    if record_id:
        return record_id
    return _generate_id(kind, *fallback)


def _to_contact(provider: str, raw: dict) -> ContactRecord:
    fields = extract_fields(raw, FIELD_MAPS[provider]["contact"])
    name = _clean(fields.get("name")) or " ".join(
        p for p in (_clean(fields.get("first_name")), _clean(fields.get("last_name"))) if p
    )
    return ContactRecord(
        id=_canonical_id(provider, "contact", fields, name, _clean(fields.get("email"))),
        name=name,
        email=_clean(fields.get("email")),
        phone=_clean(fields.get("phone")),
        title=_clean(fields.get("title")),
        company=_clean(fields.get("company")),
        company_id=_clean_id(fields.get("company_id")),
        reports_to=_clean_id(fields.get("reports_to")),
        external_id=_clean_id(fields.get("external_id")),
        last_contacted=_parse_date(fields.get("last_contacted")),
        metadata={"source": provider},
    )


def _to_company(provider: str, raw: dict) -> CompanyRecord:
    fields = extract_fields(raw, FIELD_MAPS[provider]["company"])
    name = _clean(fields.get("name")) or "Unnamed Company"
    return CompanyRecord(
        id=_canonical_id(provider, "company", fields, name),
        name=name,
        industry=_clean(fields.get("industry")),
        size=_clean(fields.get("size")),
        location=_clean(fields.get("location")),
        website=_clean(fields.get("website")),
        external_id=_clean_id(fields.get("external_id")),
        metadata={"source": provider},
    )


def _to_deal(provider: str, raw: dict) -> DealRecord:
    fields = extract_fields(raw, FIELD_MAPS[provider]["deal"])
    name = _clean(fields.get("name")) or "Unnamed Deal"
    probability = float(fields.get("probability") or 0) * PROBABILITY_SCALE.get(provider, 1.0)
    return DealRecord(
        id=_canonical_id(provider, "deal", fields, name),
        name=name,
        value=float(fields.get("value") or 0),
        stage=map_stage(provider, fields.get("stage")),
        probability=min(max(probability, 0.0), 100.0),
        company_id=_clean_id(fields.get("company_id")),
        contact_ids=fields.get("contact_ids") or [],
        close_date=_parse_date(fields.get("close_date")),
        last_activity=_parse_date(fields.get("last_activity")),
        stage_entered_at=_parse_date(fields.get("stage_entered_at")),
        external_id=_clean_id(fields.get("external_id")),
        metadata={"source": provider},
    )


def _to_interaction(provider: str, raw: dict) -> InteractionRecord:
    fields = extract_fields(raw, FIELD_MAPS[provider]["interaction"])
    date = _parse_date(fields.get("date"))
    if date is None:
        raise ValueError("interaction has no usable date")

    prefix = ID_PREFIXES.get(provider, {}).get("interaction")
    external_id = _clean_id(fields.get("external_id"))
    record_id = f"{prefix}{external_id}" if prefix and external_id else _clean_id(fields.get("id"))

    duration = fields.get("duration")
    return InteractionRecord(
        id=record_id,
        contact_id=_clean_id(fields.get("contact_id")) or "",
        type=map_interaction_type(fields.get("type")),
        date=date,
        duration=float(duration) if not _is_missing(duration) else None,
        subject=_clean(fields.get("subject")),
        notes=_clean(fields.get("notes")),
        deal_id=_clean_id(fields.get("deal_id")),
        metadata={"source": provider},
    )


def _to_relationship(provider: str, raw: dict) -> RelationshipRecord:
    data = {k: v for k, v in raw.items() if not _is_missing(v)}
    return RelationshipRecord(**data)


_CONVERTERS = {
    "contacts": _to_contact,
    "companies": _to_company,
    "deals": _to_deal,
    "interactions": _to_interaction,
    "relationships": _to_relationship,
}


def parse_records(
    provider: str = "native",
    contacts: Optional[list[dict]] = None,
    companies: Optional[list[dict]] = None,
    deals: Optional[list[dict]] = None,
    interactions: Optional[list[dict]] = None,
    relationships: Optional[list[dict]] = None,
    source: Optional[str] = None,
) -> ImportBatch:
    """Convert provider-native dicts into an ImportBatch.

    Malformed rows are skipped and noted in batch.errors.

    Raises:
        RecordImportError: If the provider has no field map
    """
    if provider not in FIELD_MAPS:
        raise RecordImportError(
            f"Unknown provider: {provider}. Available: {list(FIELD_MAPS.keys())}"
        )

    batch = ImportBatch(provider=provider, source=source)
    raw_sets = {
        "contacts": contacts or [],
        "companies": companies or [],
        "deals": deals or [],
        "interactions": interactions or [],
        "relationships": relationships or [],
    }

    for collection, rows in raw_sets.items():
        convert = _CONVERTERS[collection]
        parsed = getattr(batch, collection)
        for index, raw in enumerate(rows):
            try:
                parsed.append(convert(provider, raw))
            except (ValidationError, ValueError, TypeError) as e:
                message = f"Skipping malformed {collection} row {index}: {e}"
                logger.warning(message)
                batch.errors.append(message)

    logger.info(
        f"Parsed {provider} records: {len(batch.contacts)} contacts, "
        f"{len(batch.companies)} companies, {len(batch.deals)} deals, "
        f"{len(batch.interactions)} interactions, {len(batch.errors)} skipped"
    )

    return batch


def _find_file(directory: Path, stem: str) -> Optional[Path]:
    """Find <stem>.csv or <stem>.json (case-insensitive)."""
    candidates = [f"{stem}.json", f"{stem}.csv"]
    for name in candidates:
        exact_path = directory / name
        if exact_path.exists():
            return exact_path

    for f in directory.iterdir():
        if f.name.lower() in candidates:
            return f

    return None


def _read_rows(filepath: Path) -> list[dict]:
    """Read a CSV or JSON file into a list of dicts."""
    if filepath.suffix.lower() == ".json":
        data = json.loads(filepath.read_text())
        if isinstance(data, dict):
            data = data.get("results", [])
        return list(data)

    df = pd.read_csv(filepath, dtype=str, keep_default_na=False)
    df.columns = [col.strip() for col in df.columns]
    return df.to_dict("records")


def load_crm_export(
    directory: str | Path,
    provider: str = "native",
) -> ImportResult:
    """Load a CRM export directory.

    Expects contacts.csv|json and optionally companies, deals, interactions
    and relationships files in the same format.

    Returns:
        ImportResult holding the batch, or the reason loading failed
    """
    directory = Path(directory)

    try:
        if not directory.is_dir():
            raise RecordImportError(f"Directory not found: {directory}")

        contacts_file = _find_file(directory, "contacts")
        if contacts_file is None:
            raise RecordImportError(f"contacts.csv or contacts.json not found in {directory}")

        rows: dict[str, list[dict]] = {}
        loaded_files = []
        for collection in _CONVERTERS:
            filepath = contacts_file if collection == "contacts" else _find_file(directory, collection)
            if filepath is None:
                continue
            try:
                rows[collection] = _read_rows(filepath)
            except (OSError, ValueError, pd.errors.ParserError) as e:
                raise RecordImportError(f"Error reading {filepath.name}: {e}") from e
            loaded_files.append(filepath.name)

        batch = parse_records(provider=provider, source=str(directory), **rows)
        batch.loaded_files = loaded_files

    except RecordImportError as e:
        logger.error(f"CRM export load failed: {e}")
        return ImportResult.failure(e)

    if not batch.contacts:
        return ImportResult.failure(f"No contacts loaded from {contacts_file.name}")

    logger.info(f"CRM export loaded from {directory}: {', '.join(loaded_files)}")
    return ImportResult.success(batch)
