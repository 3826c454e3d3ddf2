"""
Bounded resource channel between metric enrichment and report assembly.

Many producers may ``send``; one consumer iterates. ``send`` blocks while
the channel is full and fails once the consumer has dropped its end.
"""
import logging
import queue
import threading
from typing import Iterator

from .constants import DEFAULT_CHANNEL_CAPACITY
from .models import Resource
from .utils import LinterError

logger = logging.getLogger(__name__)

_CLOSED = object()

# How often a blocked sender re-checks whether the receiver is gone
_SEND_POLL_SECONDS = 0.1


class ResourceChannel:
    """Multi-producer, single-consumer queue of enriched resources."""

    def __init__(self, capacity: int = DEFAULT_CHANNEL_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._queue: "queue.Queue" = queue.Queue(maxsize=capacity)
        self._receiver_dropped = threading.Event()

    @property
    def receiver_dropped(self) -> bool:
        return self._receiver_dropped.is_set()

    def send(self, resource: Resource) -> None:
        """Put a resource on the channel, waiting while it is full."""
        while True:
            if self._receiver_dropped.is_set():
                raise LinterError(
                    f"Failed to send {resource.resource_type} resource {resource.id}: receiver dropped"
                )
            try:
                self._queue.put(resource, timeout=_SEND_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def close(self) -> None:
        """Mark the end of the stream. Called once, after every producer is done."""
        if self._receiver_dropped.is_set():
            return
        while True:
            try:
                self._queue.put(_CLOSED, timeout=_SEND_POLL_SECONDS)
                return
            except queue.Full:
                if self._receiver_dropped.is_set():
                    return

    def drop_receiver(self) -> None:
        """Stop receiving; pending and future sends fail."""
        self._receiver_dropped.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def __iter__(self) -> Iterator[Resource]:
        """Yield resources in arrival order until the channel is closed."""
        if self._receiver_dropped.is_set():
            return
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item
