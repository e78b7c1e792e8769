"""DynamoDB writer implementations using boto3."""

import threading
import time

from loguru import logger

from .errors import (
    BatchWriteError,
    DynamoDbImportError,
    ImportCancelledError,
    RetriesExhaustedError,
    is_throttling_error,
)
from .retry import DEFAULT_RETRY_OPTIONS, attempts_exhausted, jittered_delay

MAX_CONCURRENCY = 25


class GroupWriter:
    """Applies one write group with BatchWriteItem, retrying what is left over."""

    def __init__(self, client, table_name, options=DEFAULT_RETRY_OPTIONS, rng=None, clock=time.monotonic):
        """
        Args:
            client: boto3 DynamoDB client
            table_name: Target table
            options: RetryOptions shared by every worker
            rng: random.Random for back-off jitter
            clock: Monotonic clock in seconds, used for the timeout budget
        """
        self.client = client
        self.table_name = table_name
        self.options = options
        self.rng = rng
        self.clock = clock

    def write(self, group, sleep, worker_id=0):
        """
        Write a group until nothing is left unprocessed.

        Throttling and unprocessed items are retried with jittered
        exponential back-off; only the unprocessed requests are resent.
        Any other error fails the group immediately.

        Args:
            group: List of put requests
            sleep: Callable taking seconds; a truthy result means cancelled
            worker_id: Used in log messages only

        Returns:
            Number of BatchWriteItem calls made
        """
        from botocore.exceptions import BotoCoreError, ClientError

        logger.debug(f"processing a request (worker: {worker_id}, length: {len(group)})")
        retries = 0
        calls = 0
        started = self.clock()

        while True:
            calls += 1
            try:
                response = self.client.batch_write_item(RequestItems={self.table_name: group})
            except (ClientError, BotoCoreError) as error:
                if not is_throttling_error(error):
                    raise BatchWriteError(
                        f"the API call of dynamodb:BatchWriteItem returned an error: {error}"
                    ) from error
                reason = "throughput exceeded"
            else:
                group = (response.get("UnprocessedItems") or {}).get(self.table_name) or []
                if not group:
                    logger.debug(f"BatchWriteItem succeeded (worker: {worker_id}, calls: {calls})")
                    return calls
                reason = f"{len(group)} unprocessed items"

            if attempts_exhausted(retries, self.options.max_attempts):
                raise RetriesExhaustedError(
                    f"retry attempts reached the maximum value: {self.options.max_attempts} ({reason})"
                )

            duration = jittered_delay(retries + 1, self.options.back_off_base, self.rng)
            if self.options.timeout_ms:
                elapsed_ms = (self.clock() - started) * 1000
                if elapsed_ms + duration * 1000 > self.options.timeout_ms:
                    raise RetriesExhaustedError(
                        f"retry timeout of {self.options.timeout_ms} ms would be exceeded ({reason})"
                    )

            logger.debug(f"retry: attempt {retries + 2} after {duration:.3f}s (worker: {worker_id}, {reason})")
            if sleep(duration):
                raise ImportCancelledError(f"cancelled while backing off (worker: {worker_id})")
            retries += 1


class WritePool:
    """
    Fixed set of worker threads draining a WriteGroupQueue.

    Workers share nothing but the queue, the read-only GroupWriter and the
    error collector. A failed group is recorded and the worker moves on to
    the next one.
    """

    def __init__(self, writer, queue, concurrency, errors):
        """
        Args:
            writer: GroupWriter used by every worker
            queue: WriteGroupQueue to drain
            concurrency: Number of worker threads (1 to 25)
            errors: ErrorCollector receiving worker failures
        """
        if not 1 <= concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency (c) needs to fill: 0 < c <= {MAX_CONCURRENCY}, but was {concurrency}")
        self.writer = writer
        self.queue = queue
        self.concurrency = concurrency
        self.errors = errors
        self.groups_written = 0
        self.items_written = 0
        self._lock = threading.Lock()
        self._threads = []

    def start(self):
        for worker_id in range(self.concurrency):
            thread = threading.Thread(
                target=self._work,
                args=(worker_id,),
                name=f"batch-writer-{worker_id}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        return self

    def join(self):
        for thread in self._threads:
            thread.join()
        self._threads = []

    def _work(self, worker_id):
        logger.debug(f"starting the batch worker (worker: {worker_id})")
        while True:
            try:
                group = self.queue.get()
            except ImportCancelledError as error:
                self.errors.append(ImportCancelledError(f"worker {worker_id}: {error}"))
                return
            if group is None:
                logger.debug(f"closed queue detected (worker: {worker_id})")
                return
            if not group:
                continue

            size = len(group)
            try:
                self.writer.write(group, self.queue.sleep, worker_id)
            except DynamoDbImportError as error:
                logger.error(f"BatchWriteItem failed (worker: {worker_id}): {error}")
                self.errors.append(error)
            except Exception as error:
                logger.exception(f"unexpected error in worker {worker_id}")
                self.errors.append(error)
            else:
                with self._lock:
                    self.groups_written += 1
                    self.items_written += size
