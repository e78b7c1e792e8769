"""DynamoDB import - restore a DynamoDB table export from S3 into a live table."""

from .config import ImportSettings, load_settings
from .errors import (
    BatchWriteError,
    ConfigurationError,
    DynamoDbImportError,
    ErrorCollector,
    ImportCancelledError,
    ItemDecodeError,
    ManifestError,
    MultipleErrors,
    RetriesExhaustedError,
    ShardImportError,
    TableNotReadyError,
)
from .grouping import BATCH_CAP, BatchGrouper
from .importer import DynamoDbImporter, ImportResult, ShardResult
from .manifest import ShardManifest, Summary, load_shard_manifests, load_summary
from .reader import ExportDataReader
from .retry import RetryOptions, jittered_delay, fixed_delay
from .table import probe_table
from .type_conversion import convert_export_item, convert_export_value, stringify
from .work_queue import WriteGroupQueue
from .writer import GroupWriter, WritePool

__all__ = [
    "BATCH_CAP",
    "BatchGrouper",
    "BatchWriteError",
    "ConfigurationError",
    "DynamoDbImportError",
    "DynamoDbImporter",
    "ErrorCollector",
    "ExportDataReader",
    "GroupWriter",
    "ImportCancelledError",
    "ImportResult",
    "ImportSettings",
    "ItemDecodeError",
    "ManifestError",
    "MultipleErrors",
    "RetriesExhaustedError",
    "RetryOptions",
    "ShardImportError",
    "ShardManifest",
    "ShardResult",
    "Summary",
    "TableNotReadyError",
    "WriteGroupQueue",
    "WritePool",
    "convert_export_item",
    "convert_export_value",
    "fixed_delay",
    "jittered_delay",
    "load_settings",
    "load_shard_manifests",
    "load_summary",
    "probe_table",
    "stringify",
]
