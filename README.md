# rmstore

This package holds the storage and logging layers of a small relational database engine. It has no third-party dependencies.

## Modules

- **`rmstore.replacer`** provides `Replacer` and `LRUReplacer`. `Replacer` is the abstract frame-replacement policy. `LRUReplacer` evicts the frame that was unpinned longest ago.
- **`rmstore.page`** provides `PageId` and `Page`:
  - `PageId` is a frozen, ordered `(fd, page_no)` pair.
  - `Page` is a 4096-byte frame with an `is_dirty` flag, a `pin_count` and a `page_lsn` property.
- **`rmstore.disk_manager`** provides `DiskManager`. It manages files by OS file descriptor. It does the following:
  - reads and writes pages;
  - hands out page numbers for each file;
  - creates, opens, closes and destroys files and directories;
  - reads and writes the log file (`db.log` by default) and the start file (`db.start` by default).

  Failures raise `StorageError`. An unknown descriptor raises `FileNotOpenError`.
- **`rmstore.buffer_pool_manager`** provides `BufferPoolManager`, a fixed pool of frames with the following methods:
  - `fetch_page`, `new_page`, `unpin_page`, `flush_page` and `flush_all_pages`;
  - `delete_page` and `delete_all_pages`.

  Dirty pages are written back when they are evicted. When no frame is free, `fetch_page` and `new_page` return `None`.
- **`rmstore.sm_meta`** provides the catalogue classes:
  - `ColType`, `ColMeta`, `IndexMeta`, `TabMeta` and `DbMeta`.
  - `DbMeta.dumps()` and `DbMeta.loads()` convert the catalogue to and from a whitespace-separated text form.
  - Failed lookups raise `TableNotFoundError`, `ColumnNotFoundError` or `IndexNotFoundError`. All three are subclasses of `MetaError`.
- **`rmstore.log_records`** provides the write-ahead log record types:
  - `HeaderRecord`, `CheckPointRecord`, `BeginLogRecord`, `CommitLogRecord` and `AbortLogRecord`;
  - `InsertLogRecord`, `DeleteLogRecord` and `UpdateLogRecord`.

  Each type has a little-endian binary `serialize()` and `deserialize()`. `parse_log_record` reads a record of any type from its bytes.
- **`rmstore.log_manager`** provides `LogBuffer` and `LogManager`:
  - `LogManager` gives each record an lsn, which is the record's byte offset in the log.
  - It buffers records and appends them to the log file on `flush_log_to_disk()`.
  - It keeps the global lsn up to date in the `HeaderRecord` at the start of the log file. `recovery_log_info()` reads the global lsn back from that header.
- **`rmstore.log_recovery`** provides `RecoveryManager`. It works in three steps:
  1. `analyze()` scans the log. It starts after the checkpoint named in the start file, or at the beginning when the start file holds -1. It collects the changes of transactions that began and did not commit or abort.
  2. `redo_plan()` yields the steps that reapply those changes.
  3. `undo_plan()` yields the steps that roll them back.

  Each step is `(fd, op, rid, data)`, and steps are grouped by page.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from rmstore.replacer import LRUReplacer

replacer = LRUReplacer(4)
replacer.unpin(1)
replacer.unpin(2)
replacer.pin(1)
assert replacer.victim() == 2
assert replacer.victim() is None
```

```python
import os
import tempfile

from rmstore.buffer_pool_manager import BufferPoolManager
from rmstore.disk_manager import DiskManager

dm = DiskManager()
path = os.path.join(tempfile.mkdtemp(), "table")
dm.create_file(path)
fd = dm.open_file(path)

pool = BufferPoolManager(2, dm)
page = pool.new_page(fd)          # page 0, zeroed and pinned
page.data[:5] = b"hello"
pool.unpin_page(page.id, True)
pool.flush_page(page.id)
assert dm.read_page(fd, 0, 5) == b"hello"
```

```python
from rmstore.log_records import InsertLogRecord, RecordValue, Rid, parse_log_record

record = InsertLogRecord(log_tid=1, value=RecordValue(b"abc"), rid=Rid(0, 1), table_name="t")
assert parse_log_record(record.serialize()) == record
```

```python
from rmstore.sm_meta import DbMeta

db = DbMeta.loads(DbMeta(name="shop").dumps())
assert db.name == "shop"
```

## What this package does not do

- **No server, command line or query processing.** Nothing here parses or runs SQL.
- **No record files or indexes.** Tuples inside pages are not managed by this package. `RecoveryManager` produces redo and undo plans, and the caller must apply them to its own record files.
- **No transactions and no locking.** Nothing begins, commits or aborts transactions, and nothing grants locks. Log records only carry transaction ids that the caller supplies.
- **No checkpoints.** The package can read a checkpoint position from the start file, but it never writes checkpoints.

## Requirements

- Python 3.10 or later.
- A POSIX system, because files are handled through OS file descriptors.