"""
Data Processing Pipeline

Components for ingesting CRM records, building the graph, enriching contacts,
and writing reports.
"""

from dealgraph.pipeline.ingest import (
    ImportBatch,
    ImportResult,
    RecordImportError,
    load_crm_export,
    parse_records,
)
from dealgraph.pipeline.normalize import GraphImporter, ImportSummary, infer_role
from dealgraph.pipeline.fixtures import sample_batch
from dealgraph.pipeline.enrich import EnrichmentPipeline, EnrichmentResult
from dealgraph.pipeline.outputs import generate_outputs, OutputGenerator

__all__ = [
    "ImportBatch",
    "ImportResult",
    "RecordImportError",
    "load_crm_export",
    "parse_records",
    "GraphImporter",
    "ImportSummary",
    "infer_role",
    "sample_batch",
    "EnrichmentPipeline",
    "EnrichmentResult",
    "generate_outputs",
    "OutputGenerator",
]
