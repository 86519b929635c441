"""Write-ahead log records and their binary layout."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple

INVALID_LSN = -1
INVALID_TXN_ID = -1

_HEADER = struct.Struct("<iiIii")
_INT = struct.Struct("<i")
_RID = struct.Struct("<ii")
_SIZE = struct.Struct("<Q")
_FILE_HEADER = struct.Struct("<iiQ")

OFFSET_LOG_TYPE = 0
OFFSET_LSN = 4
OFFSET_LOG_TOT_LEN = 8
OFFSET_LOG_TID = 12
OFFSET_PREV_LSN = 16
OFFSET_LOG_DATA = 20
LOG_HEADER_SIZE = _HEADER.size

HEADER_RECORD_SIZE = LOG_HEADER_SIZE + _FILE_HEADER.size


class LogType(IntEnum):
    UPDATE = 0
    INSERT = 1
    DELETE = 2
    BEGIN = 3
    COMMIT = 4
    ABORT = 5
    CHECKPOINT = 6
    HEADER = 7


def _unpack(fmt: struct.Struct, data: bytes, offset: int) -> tuple:
    try:
        return fmt.unpack_from(data, offset)
    except struct.error as exc:
        raise ValueError(f"log record truncated at offset {offset}") from exc


@dataclass(frozen=True)
class Rid:
    """Location of a tuple: page number and slot number."""

    page_no: int = -1
    slot_no: int = -1


@dataclass(frozen=True)
class RecordValue:
    """The raw bytes of a tuple, stored with a length prefix."""

    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def nbytes(self) -> int:
        """Bytes taken by the serialized form."""
        return _INT.size + len(self.data)

    def serialize(self) -> bytes:
        return _INT.pack(len(self.data)) + bytes(self.data)

    @classmethod
    def deserialize(cls, data: bytes, offset: int = 0) -> tuple[RecordValue, int]:
        """Read a value at offset; return it and the number of bytes consumed."""
        (size,) = _unpack(_INT, data, offset)
        start = offset + _INT.size
        if size < 0 or start + size > len(data):
            raise ValueError("record value truncated")
        return cls(bytes(data[start : start + size])), _INT.size + size


class _Header(NamedTuple):
    log_type: int
    lsn: int
    log_tot_len: int
    log_tid: int
    prev_lsn: int


def _read_header(data: bytes, expected: LogType | None = None) -> _Header:
    header = _Header(*_unpack(_HEADER, data, 0))
    if expected is not None and header.log_type != expected:
        raise ValueError(f"expected {expected.name} record, found type {header.log_type}")
    if len(data) < header.log_tot_len:
        raise ValueError("log record shorter than its stated length")
    return header


def _pack_tail(rid: Rid, table_name: str) -> bytes:
    name = table_name.encode()
    return _RID.pack(rid.page_no, rid.slot_no) + _SIZE.pack(len(name)) + name


def _tail_size(table_name: str) -> int:
    return _RID.size + _SIZE.size + len(table_name.encode())


def _unpack_tail(data: bytes, offset: int) -> tuple[Rid, str]:
    rid = Rid(*_unpack(_RID, data, offset))
    offset += _RID.size
    (name_len,) = _unpack(_SIZE, data, offset)
    offset += _SIZE.size
    if offset + name_len > len(data):
        raise ValueError("table name truncated")
    return rid, bytes(data[offset : offset + name_len]).decode()


@dataclass
class LogRecord:
    """The fixed header that starts every log record."""

    log_type: LogType = LogType.BEGIN
    lsn: int = INVALID_LSN
    log_tot_len: int = LOG_HEADER_SIZE
    log_tid: int = INVALID_TXN_ID
    prev_lsn: int = INVALID_LSN

    def _pack_header(self) -> bytes:
        return _HEADER.pack(
            int(self.log_type), self.lsn, self.log_tot_len, self.log_tid, self.prev_lsn
        )

    def serialize(self) -> bytes:
        return self._pack_header()

    @classmethod
    def deserialize(cls, data: bytes) -> LogRecord:
        """Read a record that carries nothing beyond the header."""
        if cls is LogRecord:
            header = _Header(*_unpack(_HEADER, data, 0))
            return cls(
                LogType(header.log_type),
                header.lsn,
                header.log_tot_len,
                header.log_tid,
                header.prev_lsn,
            )
        record = cls(lsn=INVALID_LSN)
        header = _read_header(data, record.log_type)
        record.lsn = header.lsn
        record.log_tid = header.log_tid
        record.prev_lsn = header.prev_lsn
        return record

    def describe(self) -> str:
        """A human-readable dump of the record."""
        return (
            "Print Log Record:\n"
            f"log_type_: {self.log_type.name}\n"
            f"lsn: {self.lsn}\n"
            f"log_tot_len: {self.log_tot_len}\n"
            f"log_tid: {self.log_tid}\n"
            f"prev_lsn: {self.prev_lsn}\n"
        )


@dataclass
class HeaderRecord(LogRecord):
    """The record at the start of the log file holding recovery bookkeeping."""

    log_type: LogType = field(default=LogType.HEADER, init=False)
    log_tot_len: int = field(default=HEADER_RECORD_SIZE, init=False)
    global_lsn: int = 0
    checkpoint_lsn: int = INVALID_LSN
    checkpoint_cnt: int = 0

    def serialize(self) -> bytes:
        return self._pack_header() + _FILE_HEADER.pack(
            self.global_lsn, self.checkpoint_lsn, self.checkpoint_cnt
        )

    @classmethod
    def deserialize(cls, data: bytes) -> HeaderRecord:
        header = _read_header(data, LogType.HEADER)
        global_lsn, checkpoint_lsn, checkpoint_cnt = _unpack(_FILE_HEADER, data, LOG_HEADER_SIZE)
        return cls(
            lsn=header.lsn,
            log_tid=header.log_tid,
            prev_lsn=header.prev_lsn,
            global_lsn=global_lsn,
            checkpoint_lsn=checkpoint_lsn,
            checkpoint_cnt=checkpoint_cnt,
        )


@dataclass
class CheckPointRecord(LogRecord):
    log_type: LogType = field(default=LogType.CHECKPOINT, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)


@dataclass
class BeginLogRecord(LogRecord):
    log_type: LogType = field(default=LogType.BEGIN, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)


@dataclass
class CommitLogRecord(LogRecord):
    log_type: LogType = field(default=LogType.COMMIT, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)


@dataclass
class AbortLogRecord(LogRecord):
    log_type: LogType = field(default=LogType.ABORT, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)


@dataclass
class InsertLogRecord(LogRecord):
    """An inserted tuple, its location and its table."""

    log_type: LogType = field(default=LogType.INSERT, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)
    value: RecordValue = field(default_factory=RecordValue)
    rid: Rid = field(default_factory=Rid)
    table_name: str = ""

    def __post_init__(self) -> None:
        self.log_tot_len = LOG_HEADER_SIZE + self.value.nbytes + _tail_size(self.table_name)

    def serialize(self) -> bytes:
        return self._pack_header() + self.value.serialize() + _pack_tail(self.rid, self.table_name)

    @classmethod
    def deserialize(cls, data: bytes) -> InsertLogRecord:
        header = _read_header(data, LogType.INSERT)
        value, used = RecordValue.deserialize(data, OFFSET_LOG_DATA)
        rid, name = _unpack_tail(data, OFFSET_LOG_DATA + used)
        return cls(
            lsn=header.lsn,
            log_tid=header.log_tid,
            prev_lsn=header.prev_lsn,
            value=value,
            rid=rid,
            table_name=name,
        )

    def describe(self) -> str:
        return (
            "insert record\n"
            + super().describe()
            + f"insert_value: {self.value.data!r}\n"
            + f"insert rid: {self.rid.page_no}, {self.rid.slot_no}\n"
            + f"table name: {self.table_name}\n"
        )


@dataclass
class DeleteLogRecord(LogRecord):
    """A deleted tuple, its location and its table."""

    log_type: LogType = field(default=LogType.DELETE, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)
    value: RecordValue = field(default_factory=RecordValue)
    rid: Rid = field(default_factory=Rid)
    table_name: str = ""

    def __post_init__(self) -> None:
        self.log_tot_len = LOG_HEADER_SIZE + self.value.nbytes + _tail_size(self.table_name)

    def serialize(self) -> bytes:
        return self._pack_header() + self.value.serialize() + _pack_tail(self.rid, self.table_name)

    @classmethod
    def deserialize(cls, data: bytes) -> DeleteLogRecord:
        header = _read_header(data, LogType.DELETE)
        value, used = RecordValue.deserialize(data, OFFSET_LOG_DATA)
        rid, name = _unpack_tail(data, OFFSET_LOG_DATA + used)
        return cls(
            lsn=header.lsn,
            log_tid=header.log_tid,
            prev_lsn=header.prev_lsn,
            value=value,
            rid=rid,
            table_name=name,
        )

    def describe(self) -> str:
        return (
            "delete record\n"
            + super().describe()
            + f"delete_value: {self.value.data!r}\n"
            + f"delete rid: {self.rid.page_no}, {self.rid.slot_no}\n"
            + f"table name: {self.table_name}\n"
        )


@dataclass
class UpdateLogRecord(LogRecord):
    """A tuple's value before and after an update, its location and its table."""

    log_type: LogType = field(default=LogType.UPDATE, init=False)
    log_tot_len: int = field(default=LOG_HEADER_SIZE, init=False)
    old_value: RecordValue = field(default_factory=RecordValue)
    new_value: RecordValue = field(default_factory=RecordValue)
    rid: Rid = field(default_factory=Rid)
    table_name: str = ""

    def __post_init__(self) -> None:
        self.log_tot_len = (
            LOG_HEADER_SIZE
            + self.old_value.nbytes
            + self.new_value.nbytes
            + _tail_size(self.table_name)
        )

    def serialize(self) -> bytes:
        return (
            self._pack_header()
            + self.old_value.serialize()
            + self.new_value.serialize()
            + _pack_tail(self.rid, self.table_name)
        )

    @classmethod
    def deserialize(cls, data: bytes) -> UpdateLogRecord:
        header = _read_header(data, LogType.UPDATE)
        offset = OFFSET_LOG_DATA
        old_value, used = RecordValue.deserialize(data, offset)
        offset += used
        new_value, used = RecordValue.deserialize(data, offset)
        offset += used
        rid, name = _unpack_tail(data, offset)
        return cls(
            lsn=header.lsn,
            log_tid=header.log_tid,
            prev_lsn=header.prev_lsn,
            old_value=old_value,
            new_value=new_value,
            rid=rid,
            table_name=name,
        )

    def describe(self) -> str:
        return (
            "update record\n"
            + super().describe()
            + f"old_value: {self.old_value.data!r}\n"
            + f"new_value: {self.new_value.data!r}\n"
            + f"update rid: {self.rid.page_no}, {self.rid.slot_no}\n"
            + f"table name: {self.table_name}\n"
        )


_RECORD_CLASSES: dict[LogType, type[LogRecord]] = {
    LogType.UPDATE: UpdateLogRecord,
    LogType.INSERT: InsertLogRecord,
    LogType.DELETE: DeleteLogRecord,
    LogType.BEGIN: BeginLogRecord,
    LogType.COMMIT: CommitLogRecord,
    LogType.ABORT: AbortLogRecord,
    LogType.CHECKPOINT: CheckPointRecord,
    LogType.HEADER: HeaderRecord,
}


def parse_log_record(data: bytes) -> LogRecord:
    """Read a record of whatever type its header names."""
    (raw_type,) = _unpack(_INT, data, OFFSET_LOG_TYPE)
    try:
        log_type = LogType(raw_type)
    except ValueError:
        raise ValueError(f"error log_record type: {raw_type}") from None
    return _RECORD_CLASSES[log_type].deserialize(data)