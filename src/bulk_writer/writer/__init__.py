"""Batch buffering and bulk operation writing."""

from bulk_writer.writer.buffer import BatchBuffer
from bulk_writer.writer.bulk_writer import BulkWriter
from bulk_writer.writer.models import (
    RDATA_FIELD,
    SYNTHETIC_ID,
    Operation,
    OperationType,
    WriterConfig,
    WriterMetrics,
    WriterState,
    WriterStatus,
)
from bulk_writer.writer.operations import build_delete_operation, build_index_operation
from bulk_writer.writer.records import Unwrappable, parse_rdata, project_rdata, to_mapping

__all__ = [
    "RDATA_FIELD",
    "SYNTHETIC_ID",
    "BatchBuffer",
    "BulkWriter",
    "Operation",
    "OperationType",
    "Unwrappable",
    "WriterConfig",
    "WriterMetrics",
    "WriterState",
    "WriterStatus",
    "build_delete_operation",
    "build_index_operation",
    "parse_rdata",
    "project_rdata",
    "to_mapping",
]
