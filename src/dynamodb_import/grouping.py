"""Partition-key aware batching of exported items into BatchWriteItem groups."""

import random

from .errors import ItemDecodeError
from .type_conversion import convert_export_item, stringify

# Hard limit of put requests in one BatchWriteItem call.
BATCH_CAP = 25


def put_request(item):
    """Wrap a converted item as a BatchWriteItem put request."""
    return {"PutRequest": {"Item": item}}


class BatchGrouper:
    """
    Groups a stream of exported items into write groups.

    BatchWriteItem rejects a request that touches the same key twice, so
    items are buffered per partition key value and a buffer never holds
    two items of different keys. A buffer is emitted when it reaches
    BATCH_CAP, or earlier when a uniform draw from [0, BATCH_CAP) equals its
    length; the random early flush keeps rarely repeated keys from waiting
    for end of input. Whatever is left at end of input is packed into
    groups of up to BATCH_CAP requests.
    """

    def __init__(self, hash_key, rng=None):
        """
        Args:
            hash_key: Attribute name of the table's partition key
            rng: random.Random used for the early flush draw
        """
        self.hash_key = hash_key
        self.rng = rng or random.Random()
        self.items_grouped = 0

    def partition_value(self, item):
        """Return the stringified partition key value of an exported item."""
        if self.hash_key not in item:
            raise ItemDecodeError(f"item has no partition key attribute '{self.hash_key}'")
        try:
            return stringify(item[self.hash_key])
        except ItemDecodeError as error:
            raise ItemDecodeError(
                f"failed to convert the partition key '{self.hash_key}' into a string value: {error}"
            ) from error

    def should_close(self, pending):
        if len(pending) >= BATCH_CAP:
            return True
        return len(pending) == self.rng.randrange(BATCH_CAP)

    def groups(self, items):
        """
        Consume items and yield write groups.

        Args:
            items: Iterable of exported items (tagged attribute maps)

        Yields:
            Lists of put requests; the last one may be empty
        """
        pending = {}

        for item in items:
            key = self.partition_value(item)
            buffer = pending.setdefault(key, [])
            buffer.append(put_request(convert_export_item(item)))
            self.items_grouped += 1

            if self.should_close(buffer):
                del pending[key]
                yield buffer

        yield from self.drain(pending)

    @staticmethod
    def drain(pending):
        """Pack the remaining per-key buffers into groups of at most BATCH_CAP."""
        group = []
        for buffer in pending.values():
            if len(group) + len(buffer) > BATCH_CAP:
                yield group
                group = []
            group.extend(buffer)
        yield group
