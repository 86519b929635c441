"""Frame replacement policies for the buffer pool."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict


class Replacer(ABC):
    """Tracks which frames may be evicted from the buffer pool."""

    @abstractmethod
    def victim(self) -> int | None:
        """Remove and return the frame chosen for eviction, or None if there is none."""

    @abstractmethod
    def pin(self, frame_id: int) -> None:
        """Mark a frame as in use so it cannot be evicted."""

    @abstractmethod
    def unpin(self, frame_id: int) -> None:
        """Mark a frame as evictable."""

    @abstractmethod
    def size(self) -> int:
        """Number of frames that can currently be evicted."""

    def __len__(self) -> int:
        return self.size()


class LRUReplacer(Replacer):
    """Evicts the frame that was unpinned longest ago."""

    def __init__(self, num_pages: int) -> None:
        self.max_size = num_pages
        self._lock = threading.Lock()
        # Oldest entry first, most recently unpinned last.
        self._frames: OrderedDict[int, None] = OrderedDict()

    def victim(self) -> int | None:
        with self._lock:
            if not self._frames:
                return None
            frame_id, _ = self._frames.popitem(last=False)
            return frame_id

    def pin(self, frame_id: int) -> None:
        with self._lock:
            self._frames.pop(frame_id, None)

    def unpin(self, frame_id: int) -> None:
        with self._lock:
            if frame_id not in self._frames:
                self._frames[frame_id] = None

    def size(self) -> int:
        with self._lock:
            return len(self._frames)