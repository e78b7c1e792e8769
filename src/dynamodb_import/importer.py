"""Import orchestration: table readiness, manifests, and per-shard pipelines."""

import random
import threading
import time
from dataclasses import dataclass

from loguru import logger

from .errors import (
    DynamoDbImportError,
    ErrorCollector,
    ImportCancelledError,
    MultipleErrors,
    ShardImportError,
)
from .grouping import BatchGrouper
from .manifest import load_shard_manifests, load_summary
from .reader import ExportDataReader
from .retry import DEFAULT_READINESS_OPTIONS
from .table import probe_table
from .work_queue import WriteGroupQueue
from .writer import GroupWriter, WritePool


@dataclass
class ShardResult:
    """Counts for one successfully imported shard."""

    manifest: object
    items: int
    groups: int


@dataclass
class ImportResult:
    """Totals of a run that finished without errors."""

    shards: int = 0
    items: int = 0
    groups: int = 0


class DynamoDbImporter:
    """
    Restores a DynamoDB table export from S3 into a live table.

    Shards are imported one after another. Within a shard, the calling
    thread decodes and groups items into a bounded queue while
    `concurrency` worker threads write the groups. A failed shard does not
    stop the following ones; all shard failures are raised together at
    the end of run().
    """

    def __init__(
        self,
        settings,
        dynamodb_client=None,
        s3_client=None,
        readiness_options=DEFAULT_READINESS_OPTIONS,
        rng=None,
        jitter_rng=None,
        sleep=time.sleep,
    ):
        """
        Args:
            settings: Validated ImportSettings
            dynamodb_client: Optional boto3 DynamoDB client
            s3_client: Optional boto3 S3 client
            readiness_options: RetryOptions for table status polling
            rng: random.Random for the grouper's early flush
            jitter_rng: random.Random for write back-off jitter
            sleep: Sleep function used while polling table status
        """
        self.settings = settings
        self.bucket = settings.manifest_bucket
        self.manifest_key = settings.manifest_key
        self.table_name = settings.table_name
        self.concurrency = settings.concurrency
        self.retry_options = settings.retry_options()
        self.readiness_options = readiness_options
        self.rng = rng or random.Random()
        self.jitter_rng = jitter_rng or random.Random()
        self.sleep = sleep

        self._dynamodb = dynamodb_client
        self._s3 = s3_client
        self._cancelled = threading.Event()
        self._current_queue = None

    def _clients(self):
        if self._dynamodb is None or self._s3 is None:
            from .clients import create_clients

            dynamodb, s3 = create_clients(self.settings)
            self._dynamodb = self._dynamodb or dynamodb
            self._s3 = self._s3 or s3
        return self._dynamodb, self._s3

    def cancel(self):
        """Cancel the shard in progress and skip the remaining ones."""
        self._cancelled.set()
        queue = self._current_queue
        if queue is not None:
            queue.cancel()

    def import_shard(self, manifest, hash_key):
        """
        Import one data object.

        Args:
            manifest: ShardManifest of the data object
            hash_key: Partition key attribute name of the target table

        Returns:
            ShardResult

        Raises:
            ShardImportError: decoding failed, or any group failed to write
        """
        dynamodb, s3 = self._clients()
        logger.info(f"importing data via s3://{self.bucket}/{manifest.data_object_key}")

        queue = WriteGroupQueue(self.concurrency)
        errors = ErrorCollector()
        writer = GroupWriter(dynamodb, self.table_name, self.retry_options, rng=self.jitter_rng)
        pool = WritePool(writer, queue, self.concurrency, errors)
        reader = ExportDataReader(s3, self.bucket, manifest.data_object_key)
        grouper = BatchGrouper(hash_key, rng=self.rng)

        self._current_queue = queue
        if self._cancelled.is_set():
            queue.cancel()

        pool.start()
        try:
            for group in grouper.groups(reader):
                queue.put(group)
            queue.close()
            pool.join()
        except DynamoDbImportError as error:
            queue.cancel()
            pool.join()
            write_errors = []
            for worker_error in errors.errors:
                if isinstance(worker_error, ImportCancelledError):
                    logger.debug(f"worker error after shard cancellation: {worker_error}")
                else:
                    write_errors.append(worker_error)
            cause = MultipleErrors([error, *write_errors]) if write_errors else error
            raise ShardImportError(manifest, cause) from error
        except BaseException:
            queue.cancel()
            pool.join()
            raise
        finally:
            self._current_queue = None

        if errors:
            raise ShardImportError(manifest, MultipleErrors(errors.errors, prefix="error in the batch process"))

        if manifest.item_count is not None and manifest.item_count != reader.items_read:
            logger.warning(
                f"s3://{self.bucket}/{manifest.data_object_key} lists {manifest.item_count} items, "
                f"but {reader.items_read} were read"
            )
        logger.info(
            f"imported {pool.items_written} items in {pool.groups_written} groups "
            f"from s3://{self.bucket}/{manifest.data_object_key}"
        )
        return ShardResult(manifest=manifest, items=pool.items_written, groups=pool.groups_written)

    def run(self):
        """
        Run the whole import.

        Returns:
            ImportResult

        Raises:
            TableNotReadyError, ManifestError: before any write is attempted
            MultipleErrors: one entry per failed shard
        """
        dynamodb, s3 = self._clients()

        hash_key = probe_table(dynamodb, self.table_name, self.readiness_options, sleep=self.sleep)
        summary = load_summary(s3, self.bucket, self.manifest_key)
        manifests = load_shard_manifests(s3, self.bucket, summary.manifest_list_key)
        logger.info(f"found {len(manifests)} data file(s) to import into {self.table_name}")

        result = ImportResult()
        errors = ErrorCollector()
        for manifest in manifests:
            if self._cancelled.is_set():
                errors.append(ImportCancelledError("import cancelled before all data files were read"))
                break
            try:
                shard = self.import_shard(manifest, hash_key)
            except ShardImportError as error:
                logger.error(str(error))
                errors.append(error)
                continue
            except KeyboardInterrupt:
                self._cancelled.set()
                errors.append(ImportCancelledError(f"interrupted while importing {manifest.data_object_key}"))
                break
            result.shards += 1
            result.items += shard.items
            result.groups += shard.groups

        errors.raise_if_any(prefix="import failed")
        logger.info(f"imported {result.items} items from {result.shards} data file(s) into {self.table_name}")
        return result
