"""The write-ahead log buffer and the manager that fills and flushes it."""

from __future__ import annotations

import threading

from rmstore.buffer_pool_manager import BufferPoolManager
from rmstore.disk_manager import DiskManager, StorageError
from rmstore.log_records import HEADER_RECORD_SIZE, INVALID_LSN, HeaderRecord, LogRecord
from rmstore.page import PAGE_SIZE

LOG_BUFFER_SIZE = 1024 * PAGE_SIZE


class LogBuffer:
    """A single in-memory buffer that log records are appended to before flushing."""

    def __init__(self, capacity: int = LOG_BUFFER_SIZE) -> None:
        self.capacity = capacity
        self._data = bytearray()

    @property
    def offset(self) -> int:
        """Number of bytes currently held."""
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def is_full(self, append_size: int) -> bool:
        """Whether appending append_size bytes would exceed the capacity."""
        return len(self._data) + append_size > self.capacity

    def append(self, data: bytes) -> None:
        """Append serialized log data; raise ValueError if it does not fit."""
        if self.is_full(len(data)):
            raise ValueError(
                f"log buffer overflow: {len(data)} bytes do not fit in "
                f"{self.capacity - len(self._data)} free bytes"
            )
        self._data += data

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def clear(self) -> None:
        """Drop all buffered data."""
        self._data.clear()


class LogManager:
    """Assigns log sequence numbers, buffers records and writes them to the log file."""

    def __init__(
        self,
        disk_manager: DiskManager,
        buffer_pool_manager: BufferPoolManager | None = None,
        buffer_size: int = LOG_BUFFER_SIZE,
    ) -> None:
        self.disk_manager = disk_manager
        self.buffer_pool_manager = buffer_pool_manager
        self._buffer = LogBuffer(buffer_size)
        self._lock = threading.RLock()
        self._global_lsn = 0
        self._prev_lsn = 0
        self._flushed_to_disk_lsn = INVALID_LSN

    @property
    def buffer(self) -> LogBuffer:
        return self._buffer

    @property
    def global_lsn(self) -> int:
        """The lsn the next record will receive: its offset in the log file."""
        with self._lock:
            return self._global_lsn

    @property
    def flushed_to_disk_lsn(self) -> int:
        """The global lsn at the time of the last flush."""
        with self._lock:
            return self._flushed_to_disk_lsn

    def _read_file_header(self) -> HeaderRecord:
        raw = self.disk_manager.read_log_header(HEADER_RECORD_SIZE)
        try:
            return HeaderRecord.deserialize(raw)
        except ValueError as exc:
            raise StorageError("log type is not log header") from exc

    def recovery_log_info(self) -> None:
        """Restore the global lsn from the header at the start of the log file."""
        header = self._read_file_header()
        with self._lock:
            self._global_lsn = header.global_lsn

    def add_log_to_buffer(self, log_record: LogRecord) -> int:
        """Give the record an lsn, buffer it, persist the new global lsn and return the lsn."""
        with self._lock:
            lsn = self._global_lsn
            log_record.lsn = lsn
            data = log_record.serialize()
            if self._buffer.is_full(len(data)):
                self.flush_log_to_disk()
            self._buffer.append(data)

            log_record.prev_lsn = self._prev_lsn
            self._global_lsn += len(data)
            self._prev_lsn = lsn

            header = self._read_file_header()
            header.global_lsn = self._global_lsn
            self.disk_manager.write_log_header(header.serialize())
            return lsn

    def flush_log_to_disk(self) -> None:
        """Append the buffered records to the log file and empty the buffer."""
        with self._lock:
            if self._buffer.offset > 0:
                self.disk_manager.write_log(self._buffer.getvalue())
                self._flushed_to_disk_lsn = self._global_lsn
                self._buffer.clear()