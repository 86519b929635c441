"""A fixed-size pool of page frames cached in memory."""

from __future__ import annotations

import logging
import threading
from collections import deque

from rmstore.disk_manager import DiskManager
from rmstore.page import INVALID_PAGE_ID, PAGE_SIZE, Page, PageId
from rmstore.replacer import LRUReplacer, Replacer

logger = logging.getLogger(__name__)


class BufferPoolManager:
    """Caches disk pages in a fixed number of frames, evicting by the replacer's policy."""

    def __init__(
        self,
        pool_size: int,
        disk_manager: DiskManager,
        replacer: Replacer | None = None,
    ) -> None:
        self.pool_size = pool_size
        self.disk_manager = disk_manager
        self.pages = [Page() for _ in range(pool_size)]
        self._page_table: dict[PageId, int] = {}
        self._free_list: deque[int] = deque(range(pool_size))
        self._replacer = replacer if replacer is not None else LRUReplacer(pool_size)
        self._lock = threading.RLock()

    @staticmethod
    def mark_dirty(page: Page) -> None:
        """Mark a page as modified."""
        page.is_dirty = True

    def __contains__(self, page_id: PageId) -> bool:
        with self._lock:
            return page_id in self._page_table

    def _find_victim(self) -> int | None:
        if self._free_list:
            return self._free_list.popleft()
        return self._replacer.victim()

    def _write_back(self, page: Page) -> None:
        self.disk_manager.write_page(page.id.fd, page.id.page_no, bytes(page.data))

    def _evict(self, page: Page) -> None:
        if page.is_dirty:
            self._write_back(page)
        self._page_table.pop(page.id, None)

    def fetch_page(self, page_id: PageId) -> Page | None:
        """Return the page pinned, reading it from disk if needed; None if no frame is free."""
        with self._lock:
            frame_id = self._page_table.get(page_id)
            if frame_id is not None:
                self._replacer.pin(frame_id)
                page = self.pages[frame_id]
                page.pin_count += 1
                return page

            frame_id = self._find_victim()
            if frame_id is None:
                return None
            page = self.pages[frame_id]
            self._evict(page)
            try:
                data = self.disk_manager.read_page(page_id.fd, page_id.page_no, PAGE_SIZE)
            except Exception:
                page.id = PageId(page.id.fd, INVALID_PAGE_ID)
                page.is_dirty = False
                page.pin_count = 0
                self._free_list.append(frame_id)
                raise
            page.data[:] = data
            self._replacer.pin(frame_id)
            page.id = page_id
            page.is_dirty = False
            page.pin_count = 1
            self._page_table[page_id] = frame_id
            return page

    def unpin_page(self, page_id: PageId, is_dirty: bool) -> bool:
        """Drop one pin from a cached page; False if it is not cached or not pinned."""
        with self._lock:
            frame_id = self._page_table.get(page_id)
            if frame_id is None:
                return False
            page = self.pages[frame_id]
            if page.pin_count <= 0:
                logger.debug("pin_count_:%d", page.pin_count)
                return False
            page.pin_count -= 1
            if page.pin_count == 0:
                self._replacer.unpin(frame_id)
            if is_dirty:
                page.is_dirty = True
            return True

    def flush_page(self, page_id: PageId) -> bool:
        """Write a cached page to disk whether dirty or not; False if it is not cached."""
        with self._lock:
            frame_id = self._page_table.get(page_id)
            if frame_id is None:
                return False
            page = self.pages[frame_id]
            self.disk_manager.write_page(page_id.fd, page_id.page_no, bytes(page.data))
            page.is_dirty = False
            return True

    def new_page(self, fd: int, page_no: int = -1) -> Page | None:
        """Place a zeroed, pinned page of file fd in a frame; None if no frame is free.

        With page_no -1 a new page number is allocated from the disk manager.
        """
        with self._lock:
            frame_id = self._find_victim()
            if frame_id is None:
                return None
            page = self.pages[frame_id]
            if page_no == -1:
                page_no = self.disk_manager.allocate_page(fd)
            page_id = PageId(fd, page_no)
            self._evict(page)
            self._replacer.pin(frame_id)
            page.id = page_id
            page.is_dirty = False
            page.pin_count = 1
            page.reset_memory()
            self._page_table[page_id] = frame_id
            return page

    def delete_page(self, page_id: PageId) -> bool:
        """Drop a page from the pool; False only if it is cached and still pinned."""
        with self._lock:
            frame_id = self._page_table.get(page_id)
            if frame_id is None:
                return True
            page = self.pages[frame_id]
            if page.pin_count > 0:
                return False
            if page.is_dirty:
                self.disk_manager.write_page(page_id.fd, page_id.page_no, bytes(page.data))
            del self._page_table[page_id]
            self._replacer.pin(frame_id)
            page.id = PageId(page.id.fd, INVALID_PAGE_ID)
            page.is_dirty = False
            page.pin_count = 0
            page.reset_memory()
            self._free_list.append(frame_id)
            return True

    def flush_all_pages(self, fd: int | None = None) -> None:
        """Write dirty pages of file fd to disk; with no fd, write every cached page."""
        with self._lock:
            for page_id, frame_id in self._page_table.items():
                page = self.pages[frame_id]
                if fd is None:
                    self._write_back(page)
                    page.is_dirty = False
                elif page_id.fd == fd and page.is_dirty:
                    self.disk_manager.write_page(fd, page.id.page_no, bytes(page.data))
                    page.is_dirty = False

    def delete_all_pages(self, fd: int) -> list[PageId]:
        """Drop every cached page of file fd; return the ids of pinned pages left behind."""
        with self._lock:
            failed = []
            for page_id in [pid for pid in self._page_table if pid.fd == fd]:
                if not self.delete_page(page_id):
                    logger.warning("page [%d] pin_count != 0,delete failed", page_id.page_no)
                    failed.append(page_id)
            return failed