import pytest

from rmstore.disk_manager import DiskManager, FileNotOpenError, StorageError
from rmstore.page import PAGE_SIZE


@pytest.fixture
def dm(tmp_path):
    manager = DiskManager(
        log_file_name=str(tmp_path / "db.log"),
        start_file_name=str(tmp_path / "db.start"),
    )
    yield manager
    for fd in list(manager._fd2path):
        manager.close_file(fd)


@pytest.fixture
def table_fd(dm, tmp_path):
    path = str(tmp_path / "table")
    dm.create_file(path)
    return dm.open_file(path)


def test_create_file_then_is_file(dm, tmp_path):
    path = str(tmp_path / "t1")
    assert not dm.is_file(path)
    dm.create_file(path)
    assert dm.is_file(path)
    assert dm.get_file_size(path) == 0


def test_create_existing_file_raises(dm, tmp_path):
    path = str(tmp_path / "t1")
    dm.create_file(path)
    with pytest.raises(FileExistsError):
        dm.create_file(path)


def test_open_file_twice_returns_same_fd(dm, tmp_path):
    path = str(tmp_path / "t1")
    dm.create_file(path)
    fd = dm.open_file(path)
    assert dm.open_file(path) == fd
    assert dm.get_file_fd(path) == fd
    assert dm.get_file_name(fd) == path


def test_open_missing_file_raises(dm, tmp_path):
    with pytest.raises(FileNotFoundError):
        dm.open_file(str(tmp_path / "missing"))


def test_page_round_trip(dm, table_fd):
    payload = bytes(range(256)) * (PAGE_SIZE // 256)
    dm.write_page(table_fd, 2, payload)
    assert dm.read_page(table_fd, 2, PAGE_SIZE) == payload
    assert dm.read_page(table_fd, 0, PAGE_SIZE) == bytes(PAGE_SIZE)


def test_read_page_past_end_raises(dm, table_fd):
    dm.write_page(table_fd, 0, b"x" * PAGE_SIZE)
    with pytest.raises(StorageError):
        dm.read_page(table_fd, 5, PAGE_SIZE)


def test_allocate_page_counts_per_fd(dm):
    assert [dm.allocate_page(3) for _ in range(3)] == [0, 1, 2]
    assert dm.allocate_page(4) == 0
    assert dm.get_fd2pageno(3) == 3


def test_set_fd2pageno_controls_next_allocation(dm):
    dm.set_fd2pageno(7, 11)
    assert dm.allocate_page(7) == 11
    assert dm.get_fd2pageno(7) == 12


def test_allocate_page_rejects_bad_fd(dm):
    with pytest.raises(ValueError):
        dm.allocate_page(DiskManager.MAX_FD)
    with pytest.raises(ValueError):
        dm.allocate_page(-1)


def test_close_unknown_fd_raises(dm):
    with pytest.raises(StorageError):
        dm.close_file(99999)


def test_file_name_after_close_raises(dm, tmp_path):
    path = str(tmp_path / "t1")
    dm.create_file(path)
    fd = dm.open_file(path)
    dm.close_file(fd)
    with pytest.raises(FileNotOpenError):
        dm.get_file_name(fd)


def test_destroy_open_file_raises(dm, tmp_path):
    path = str(tmp_path / "t1")
    dm.create_file(path)
    dm.open_file(path)
    with pytest.raises(StorageError):
        dm.destroy_file(path)
    assert dm.is_file(path)


def test_destroy_missing_file_raises(dm, tmp_path):
    with pytest.raises(FileNotFoundError):
        dm.destroy_file(str(tmp_path / "missing"))


def test_destroy_closed_file(dm, tmp_path):
    path = str(tmp_path / "t1")
    dm.create_file(path)
    dm.close_file(dm.open_file(path))
    dm.destroy_file(path)
    assert not dm.is_file(path)


def test_get_file_size_of_missing_is_minus_one(dm, tmp_path):
    assert dm.get_file_size(str(tmp_path / "missing")) == -1


def test_log_append_and_read(dm):
    dm.create_file(dm.log_file_name)
    dm.write_log(b"abc")
    dm.write_log(b"defg")
    assert dm.read_log(7, 0) == b"abcdefg"
    assert dm.read_log(100, 3) == b"defg"
    assert dm.read_log(4, 7) == b""
    assert dm.read_log(4, 8) is None


def test_log_header_overwrites_start(dm):
    dm.create_file(dm.log_file_name)
    dm.write_log(b"0123456789")
    dm.write_log_header(b"HDR")
    assert dm.read_log_header(5) == b"HDR34"
    assert dm.get_file_size(dm.log_file_name) == 10


def test_read_log_header_short_raises(dm):
    dm.create_file(dm.log_file_name)
    dm.write_log(b"ab")
    with pytest.raises(StorageError):
        dm.read_log_header(8)


def test_start_file_round_trip(dm):
    dm.create_file(dm.start_file_name)
    dm.write_start_file(b"\xff\xff\xff\xff")
    assert dm.read_start_file(4, 0) == b"\xff\xff\xff\xff"
    assert dm.read_start_file(4, 10) is None


def test_closing_log_fd_resets_it(dm):
    dm.create_file(dm.log_file_name)
    dm.write_log(b"x")
    fd = dm.log_fd
    dm.close_file(fd)
    assert dm.log_fd == -1
    assert dm.read_log(1, 0) == b"x"


def test_directory_create_and_destroy(dm, tmp_path):
    path = str(tmp_path / "db")
    assert not dm.is_dir(path)
    dm.create_dir(path)
    assert dm.is_dir(path)
    dm.destroy_dir(path)
    assert not dm.is_dir(path)


def test_destroy_missing_dir_raises(dm, tmp_path):
    with pytest.raises(StorageError):
        dm.destroy_dir(str(tmp_path / "nothing"))