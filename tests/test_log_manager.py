import struct

import pytest

from rmstore.disk_manager import DiskManager, StorageError
from rmstore.log_manager import LogBuffer, LogManager
from rmstore.log_records import (
    HEADER_RECORD_SIZE,
    LOG_HEADER_SIZE,
    BeginLogRecord,
    CommitLogRecord,
    HeaderRecord,
    InsertLogRecord,
    RecordValue,
    Rid,
    parse_log_record,
)


@pytest.fixture
def disk(tmp_path):
    log_path = str(tmp_path / "db.log")
    start_path = str(tmp_path / "db.start")
    dm = DiskManager(log_file_name=log_path, start_file_name=start_path)
    dm.create_file(log_path)
    dm.write_log_header(HeaderRecord(global_lsn=HEADER_RECORD_SIZE).serialize())
    dm.create_file(start_path)
    dm.write_start_file(struct.pack("<i", -1))
    return dm


def _log_bytes(dm):
    with open(dm.log_file_name, "rb") as fh:
        return fh.read()


def test_buffer_is_full_and_clear():
    buf = LogBuffer(capacity=8)
    assert not buf.is_full(8)
    assert buf.is_full(9)
    buf.append(b"abcde")
    assert buf.offset == 5
    assert buf.is_full(4)
    buf.clear()
    assert len(buf) == 0
    assert buf.getvalue() == b""


def test_buffer_append_overflow_raises():
    buf = LogBuffer(capacity=4)
    with pytest.raises(ValueError):
        buf.append(b"abcde")


def test_recovery_log_info_restores_global_lsn(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    assert lm.global_lsn == HEADER_RECORD_SIZE


def test_recovery_log_info_rejects_bad_header(disk):
    disk.write_log_header(BeginLogRecord(log_tid=1).serialize() + bytes(16))
    lm = LogManager(disk)
    with pytest.raises(StorageError):
        lm.recovery_log_info()


def test_lsns_are_file_offsets(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    first = BeginLogRecord(log_tid=1)
    lsn1 = lm.add_log_to_buffer(first)
    lsn2 = lm.add_log_to_buffer(CommitLogRecord(log_tid=1))
    assert lsn1 == HEADER_RECORD_SIZE
    assert lsn2 == lsn1 + len(first.serialize())
    assert first.lsn == lsn1


def test_prev_lsn_links_to_previous_record(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    lsn1 = lm.add_log_to_buffer(BeginLogRecord(log_tid=1))
    second = CommitLogRecord(log_tid=1)
    lm.add_log_to_buffer(second)
    assert second.prev_lsn == lsn1


def test_header_on_disk_tracks_global_lsn(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    record = InsertLogRecord(log_tid=3, value=RecordValue(b"row"), rid=Rid(0, 1), table_name="t")
    lm.add_log_to_buffer(record)
    header = HeaderRecord.deserialize(_log_bytes(disk)[:HEADER_RECORD_SIZE])
    assert header.global_lsn == lm.global_lsn
    assert header.global_lsn == HEADER_RECORD_SIZE + record.log_tot_len


def test_flush_writes_records_at_their_lsn(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    record = InsertLogRecord(log_tid=7, value=RecordValue(b"abc"), rid=Rid(2, 5), table_name="t")
    lsn = lm.add_log_to_buffer(record)
    assert len(_log_bytes(disk)) == HEADER_RECORD_SIZE
    lm.flush_log_to_disk()
    parsed = parse_log_record(_log_bytes(disk)[lsn:])
    assert isinstance(parsed, InsertLogRecord)
    assert parsed.log_tid == 7
    assert parsed.value.data == b"abc"
    assert parsed.rid == Rid(2, 5)
    assert lm.flushed_to_disk_lsn == lm.global_lsn
    assert lm.buffer.offset == 0


def test_flush_with_empty_buffer_writes_nothing(disk):
    lm = LogManager(disk)
    lm.recovery_log_info()
    before = _log_bytes(disk)
    lm.flush_log_to_disk()
    assert _log_bytes(disk) == before


def test_full_buffer_is_flushed_before_append(disk):
    lm = LogManager(disk, buffer_size=LOG_HEADER_SIZE * 2)
    lm.recovery_log_info()
    for tid in range(3):
        lm.add_log_to_buffer(BeginLogRecord(log_tid=tid))
    assert len(_log_bytes(disk)) == HEADER_RECORD_SIZE + 2 * LOG_HEADER_SIZE
    assert lm.buffer.offset == LOG_HEADER_SIZE