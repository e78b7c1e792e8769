"""Bounded queue of write groups between the grouper and the write workers."""

import threading
from collections import deque

from .errors import ImportCancelledError


class QueueClosed(Exception):
    """Raised when putting into a queue that was already closed."""

    pass


class WriteGroupQueue:
    """
    Bounded FIFO with explicit close and cancel.

    The capacity is the shard's concurrency: once that many groups are
    waiting, the producer blocks, which limits how far decoding can run
    ahead of the writers. close() lets consumers drain what is left and
    then stop; cancel() wakes every blocked producer, consumer and
    back-off sleep at once.
    """

    def __init__(self, capacity):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._items = deque()
        self._closed = False
        self._cancelled = threading.Event()
        self._cond = threading.Condition()

    @property
    def capacity(self):
        return self._capacity

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def __len__(self):
        with self._cond:
            return len(self._items)

    def put(self, group):
        """Enqueue a group, blocking while the queue is full."""
        with self._cond:
            while len(self._items) >= self._capacity and not self.cancelled:
                self._cond.wait()
            if self.cancelled:
                raise ImportCancelledError("queue cancelled while waiting to enqueue a write group")
            if self._closed:
                raise QueueClosed("put on a closed queue")
            self._items.append(group)
            self._cond.notify_all()

    def get(self):
        """
        Dequeue the next group.

        Returns:
            The next group, or None once the queue is closed and empty
        """
        with self._cond:
            while not self._items and not self._closed and not self.cancelled:
                self._cond.wait()
            if self.cancelled:
                raise ImportCancelledError("queue cancelled while waiting for a write group")
            if not self._items:
                return None
            group = self._items.popleft()
            self._cond.notify_all()
            return group

    def close(self):
        """Signal that no more groups will be enqueued."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def cancel(self):
        """Abort the queue; waiting and future calls raise ImportCancelledError."""
        with self._cond:
            self._cancelled.set()
            self._cond.notify_all()

    def sleep(self, seconds):
        """
        Sleep for up to `seconds`, returning early on cancellation.

        Returns:
            True if the queue was cancelled
        """
        return self._cancelled.wait(seconds)
