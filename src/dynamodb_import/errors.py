"""
Exceptions raised while importing a DynamoDB export.

Errors are aggregated rather than short-circuited: workers of one shard
append to a shared ErrorCollector, and the run collects one error per
failed shard.
"""

import threading

THROTTLING_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
})


class DynamoDbImportError(Exception):
    """Base error for the importer."""

    pass


class ConfigurationError(DynamoDbImportError):
    """Invalid or incomplete run configuration, reported before any I/O."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("invalid configuration: " + "; ".join(self.problems))


class TableNotReadyError(DynamoDbImportError):
    """The target table is missing, never became ACTIVE, or has no hash key."""

    pass


class ManifestError(DynamoDbImportError):
    """The export summary or manifest list cannot be used."""

    pass


class ItemDecodeError(DynamoDbImportError):
    """A line of a data object could not be turned into a put request."""

    pass


class BatchWriteError(DynamoDbImportError):
    """BatchWriteItem failed with an error that is not retried."""

    pass


class RetriesExhaustedError(DynamoDbImportError):
    """A write group was still incomplete when the retry budget ran out."""

    pass


class ImportCancelledError(DynamoDbImportError):
    """The shard scope was cancelled before the work completed."""

    pass


class ShardImportError(DynamoDbImportError):
    """Importing one shard failed."""

    def __init__(self, manifest, cause):
        self.manifest = manifest
        self.cause = cause
        super().__init__(f"failed to import {manifest.data_object_key}: {cause}")


class MultipleErrors(DynamoDbImportError):
    """Aggregate of independent failures; the message lists every one."""

    def __init__(self, errors, prefix=None):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} error(s) occurred"]
        if prefix:
            lines[0] = f"{prefix}: {lines[0]}"
        lines.extend(f"  * {error}" for error in self.errors)
        super().__init__("\n".join(lines))


def is_throttling_error(error):
    """Check whether a botocore error signals exceeded throughput."""
    from botocore.exceptions import ClientError

    if not isinstance(error, ClientError):
        return False
    return error.response.get("Error", {}).get("Code") in THROTTLING_ERROR_CODES


class ErrorCollector:
    """Append-only error list shared between worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._errors = []

    def append(self, error):
        with self._lock:
            self._errors.append(error)

    @property
    def errors(self):
        with self._lock:
            return list(self._errors)

    def __len__(self):
        with self._lock:
            return len(self._errors)

    def raise_if_any(self, prefix=None):
        """Raise MultipleErrors if anything was collected."""
        errors = self.errors
        if errors:
            raise MultipleErrors(errors, prefix=prefix)
