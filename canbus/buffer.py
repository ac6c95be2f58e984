"""Thread-safe bounded FIFO of received frames."""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterable

from canbus.types import MAX_QUEUE_BUFFER_SIZE, Msg


class MsgBuffer:
    """Bounded frame queue; when full, the oldest frames are discarded.

    A size of zero means the queue is unbounded.
    """

    def __init__(self, size: int = MAX_QUEUE_BUFFER_SIZE) -> None:
        if size < 0:
            raise ValueError("buffer size must not be negative")
        self._lock = threading.Lock()
        self._queue: deque[Msg] = deque(maxlen=size or None)

    def push(self, msgs: Iterable[Msg]) -> None:
        """Append copies of the given frames."""
        with self._lock:
            self._queue.extend(msg.copy() for msg in msgs)

    def pop(self, size: int) -> list[Msg]:
        """Remove and return up to ``size`` frames, oldest first."""
        with self._lock:
            count = min(max(size, 0), len(self._queue))
            return [self._queue.popleft() for _ in range(count)]

    def clear(self) -> None:
        """Discard every queued frame."""
        with self._lock:
            self._queue.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)