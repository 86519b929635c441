"""Crash recovery: scan the log, then plan the redo and undo of unfinished work."""

from __future__ import annotations

import logging
import struct
from collections import defaultdict
from collections.abc import Iterator
from typing import NamedTuple

from rmstore.buffer_pool_manager import BufferPoolManager
from rmstore.disk_manager import DiskManager, StorageError
from rmstore.log_records import (
    LOG_HEADER_SIZE,
    OFFSET_LOG_TOT_LEN,
    OFFSET_LOG_TYPE,
    DeleteLogRecord,
    InsertLogRecord,
    LogRecord,
    LogType,
    Rid,
    UpdateLogRecord,
    parse_log_record,
)
from rmstore.page import PageId

logger = logging.getLogger(__name__)

_LSN = struct.Struct("<i")
_LEN = struct.Struct("<I")


class _Step(NamedTuple):
    """One change to apply to a record file: op is INSERT, UPDATE or DELETE."""

    fd: int
    op: LogType
    rid: Rid
    data: bytes


class RecoveryManager:
    """Finds the changes of unfinished transactions in the log and plans their repair."""

    def __init__(
        self,
        disk_manager: DiskManager,
        buffer_pool_manager: BufferPoolManager | None = None,
    ) -> None:
        self.disk_manager = disk_manager
        self.buffer_pool_manager = buffer_pool_manager
        self._redo: defaultdict[PageId, list[tuple[int, int]]] = defaultdict(list)
        self._undo: defaultdict[PageId, list[tuple[int, int]]] = defaultdict(list)
        self._att: set[int] = set()
        self._tb_set: set[int] = set()

    @property
    def active_txns(self) -> frozenset[int]:
        """Transactions that began but neither committed nor aborted."""
        return frozenset(self._att)

    @property
    def tb_set(self) -> set[int]:
        """Descriptors of the table files touched by logged changes."""
        return set(self._tb_set)

    def _scan_start(self) -> int:
        raw = self.disk_manager.read_start_file(_LSN.size, 0)
        c_lsn = _LSN.unpack(raw)[0] if raw is not None and len(raw) == _LSN.size else -1
        if c_lsn == -1:
            return 0
        head = self.disk_manager.read_log(LOG_HEADER_SIZE, c_lsn)
        if head is None or len(head) < LOG_HEADER_SIZE:
            raise StorageError("read log error")
        (log_type,) = _LSN.unpack_from(head, OFFSET_LOG_TYPE)
        if log_type != LogType.CHECKPOINT:
            raise StorageError("checkpoint record type error")
        return c_lsn + LOG_HEADER_SIZE

    def _read_at(self, lsn: int) -> LogRecord | None:
        length_raw = self.disk_manager.read_log(_LEN.size, lsn + OFFSET_LOG_TOT_LEN)
        if length_raw is None or len(length_raw) < _LEN.size:
            return None
        (tot_len,) = _LEN.unpack(length_raw)
        if tot_len < LOG_HEADER_SIZE:
            return None
        raw = self.disk_manager.read_log(tot_len, lsn)
        if raw is None or len(raw) < tot_len:
            return None
        try:
            return parse_log_record(raw)
        except ValueError as exc:
            raise StorageError(f"error log_record type at lsn {lsn}") from exc

    def _records(self, start: int) -> Iterator[tuple[int, LogRecord]]:
        lsn = start
        while (record := self._read_at(lsn)) is not None:
            yield lsn, record
            lsn += record.log_tot_len

    def _read_record(self, lsn: int) -> LogRecord:
        record = self._read_at(lsn)
        if record is None:
            raise StorageError(f"read log error at lsn {lsn}")
        return record

    def analyze(self) -> None:
        """Scan the log from the last checkpoint and collect the pages to redo and undo."""
        for lsn, record in self._records(self._scan_start()):
            tid = record.log_tid
            match record.log_type:
                case LogType.BEGIN:
                    self._att.add(tid)
                case LogType.COMMIT | LogType.ABORT:
                    self._att.discard(tid)
                    if record.log_type == LogType.COMMIT:
                        for logs in self._undo.values():
                            logs[:] = [entry for entry in logs if entry[1] != tid]
                case LogType.UPDATE | LogType.INSERT | LogType.DELETE:
                    if tid in self._att:
                        fd = self.disk_manager.get_file_fd(record.table_name)
                        page_id = PageId(fd, record.rid.page_no)
                        self._redo[page_id].append((lsn, tid))
                        self._undo[page_id].append((lsn, tid))
                        self._tb_set.add(fd)
                case LogType.HEADER:
                    pass
                case _:
                    raise StorageError("error log_record type")

    def redo_plan(self) -> Iterator[_Step]:
        """Changes to reapply, page by page in log order."""
        for page_id in sorted(self._redo):
            for lsn, _ in self._redo[page_id]:
                record = self._read_record(lsn)
                if isinstance(record, InsertLogRecord):
                    step = _Step(page_id.fd, LogType.INSERT, record.rid, record.value.data)
                elif isinstance(record, UpdateLogRecord):
                    step = _Step(page_id.fd, LogType.UPDATE, record.rid, record.new_value.data)
                elif isinstance(record, DeleteLogRecord):
                    step = _Step(page_id.fd, LogType.DELETE, record.rid, record.value.data)
                else:
                    continue
                logger.info(
                    "redo %s [%d,%d],%r",
                    step.op.name.lower(),
                    step.rid.page_no,
                    step.rid.slot_no,
                    step.data,
                )
                yield step

    def undo_plan(self) -> Iterator[_Step]:
        """Changes that roll back unfinished work, page by page in reverse log order."""
        for page_id in sorted(self._undo):
            for lsn, _ in reversed(self._undo[page_id]):
                record = self._read_record(lsn)
                if isinstance(record, InsertLogRecord):
                    step = _Step(page_id.fd, LogType.DELETE, record.rid, record.value.data)
                elif isinstance(record, UpdateLogRecord):
                    step = _Step(page_id.fd, LogType.UPDATE, record.rid, record.old_value.data)
                elif isinstance(record, DeleteLogRecord):
                    step = _Step(page_id.fd, LogType.INSERT, record.rid, record.value.data)
                else:
                    continue
                logger.info(
                    "undo %s rollback [%d,%d],%r",
                    record.log_type.name.lower(),
                    step.rid.page_no,
                    step.rid.slot_no,
                    step.data,
                )
                yield step