"""Report schema, assembly, history and timeline for RelationScope."""

from relationscope.core.assembler import ReportAssembler
from relationscope.core.errors import (
    AnalysisError,
    AnalysisInProgressError,
    ContentError,
    HistoryWriteError,
    InvalidDateError,
    RelationScopeError,
    SchemaValidationError,
    TransportError,
)
from relationscope.core.history import HistoryStore
from relationscope.core.models import AnalysisMode, AnalysisReport, ReportBody
from relationscope.core.schema import build_response_schema, parse_report_body
from relationscope.core.timeline import TimelineItem, TimelineItemKind, TimelineReconstructor

__all__ = [
    "AnalysisError",
    "AnalysisInProgressError",
    "AnalysisMode",
    "AnalysisReport",
    "ContentError",
    "HistoryWriteError",
    "HistoryStore",
    "InvalidDateError",
    "RelationScopeError",
    "ReportAssembler",
    "ReportBody",
    "SchemaValidationError",
    "TimelineItem",
    "TimelineItemKind",
    "TimelineReconstructor",
    "TransportError",
    "build_response_schema",
    "parse_report_body",
]
