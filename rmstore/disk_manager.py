"""File, page and log I/O on disk."""

from __future__ import annotations

import os
import shutil
import threading

from rmstore.page import PAGE_SIZE


class StorageError(Exception):
    """An I/O operation on a storage file failed."""


class FileNotOpenError(StorageError):
    """A file descriptor was used that this manager did not open."""

    def __init__(self, fd: int) -> None:
        super().__init__(f"file not open: {fd}")
        self.fd = fd


class DiskManager:
    """Reads and writes pages, log data and the start file."""

    MAX_FD = 8192

    def __init__(self, log_file_name: str = "db.log", start_file_name: str = "db.start") -> None:
        self.log_file_name = log_file_name
        self.start_file_name = start_file_name
        self.log_fd = -1
        self.start_fd = -1
        self.released_pages: set[int] = set()
        self._path2fd: dict[str, int] = {}
        self._fd2path: dict[int, str] = {}
        self._fd2pageno: dict[int, int] = {}
        self._pageno_lock = threading.Lock()

    # Pages

    def _seek(self, fd: int, position: int, whence: int = os.SEEK_SET) -> None:
        try:
            result = os.lseek(fd, position, whence)
        except OSError as exc:
            raise StorageError(f"seek failed on fd {fd}: {exc}") from exc
        if whence == os.SEEK_SET and result != position:
            raise StorageError(f"seek failed on fd {fd}")

    def write_page(self, fd: int, page_no: int, data: bytes) -> None:
        """Write data at the start of the given page and sync it to disk."""
        self._seek(fd, page_no * PAGE_SIZE)
        try:
            written = os.write(fd, data)
            if written != len(data):
                raise StorageError("write_page: short write")
            os.fsync(fd)
        except OSError as exc:
            raise StorageError(f"write_page failed: {exc}") from exc

    def read_page(self, fd: int, page_no: int, num_bytes: int) -> bytes:
        """Read num_bytes from the start of the given page."""
        self._seek(fd, page_no * PAGE_SIZE)
        try:
            data = os.read(fd, num_bytes)
        except OSError as exc:
            raise StorageError(f"read_page failed: {exc}") from exc
        if len(data) != num_bytes:
            raise StorageError("read_page: short read")
        return data

    def allocate_page(self, fd: int) -> int:
        """Hand out the next page number of a file."""
        if not 0 <= fd < self.MAX_FD:
            raise ValueError(f"file descriptor out of range: {fd}")
        with self._pageno_lock:
            page_no = self._fd2pageno.get(fd, 0)
            self._fd2pageno[fd] = page_no + 1
            return page_no

    def deallocate_page(self, page_id: int) -> None:
        """Record a page number as released; numbers are never handed out again."""
        with self._pageno_lock:
            self.released_pages.add(page_id)

    def set_fd2pageno(self, fd: int, start_page_no: int) -> None:
        """Set how many pages of a file are already allocated."""
        with self._pageno_lock:
            self._fd2pageno[fd] = start_page_no

    def get_fd2pageno(self, fd: int) -> int:
        """How many pages of a file are already allocated."""
        with self._pageno_lock:
            return self._fd2pageno.get(fd, 0)

    # Directories

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def create_dir(self, path: str) -> None:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create directory {path}: {exc}") from exc

    def destroy_dir(self, path: str) -> None:
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise StorageError(f"cannot remove directory {path}: {exc}") from exc

    # Files

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def create_file(self, path: str) -> None:
        """Create an empty file; it must not exist yet."""
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise FileExistsError(f"file:{path} has exists") from exc
        except OSError as exc:
            raise StorageError(f"Failed to create file: {path}") from exc
        os.close(fd)

    def destroy_file(self, path: str) -> None:
        """Delete a closed file and sync its directory."""
        if path in self._path2fd:
            raise StorageError(f"Cannot destroy file because it is currently open: {path}")
        try:
            os.unlink(path)
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"file: {path} not exist") from exc
        except OSError as exc:
            raise StorageError(f"Failed to destroy file: {path}") from exc

        dir_flag = getattr(os, "O_DIRECTORY", None)
        if dir_flag is None:
            return
        dir_path = os.path.dirname(path) or "."
        try:
            dir_fd = os.open(dir_path, dir_flag | os.O_RDONLY)
        except OSError as exc:
            raise StorageError(f"Failed to open directory: {dir_path}") from exc
        try:
            os.fsync(dir_fd)
        except OSError as exc:
            raise StorageError(f"Failed to fsync directory: {dir_path}") from exc
        finally:
            os.close(dir_fd)

    def open_file(self, path: str) -> int:
        """Open a file for reading and writing; an open file keeps its descriptor."""
        if path in self._path2fd:
            return self._path2fd[path]
        try:
            fd = os.open(path, os.O_RDWR)
        except OSError as exc:
            raise FileNotFoundError(f"Failed to open file: {path}") from exc
        self._fd2path[fd] = path
        self._path2fd[path] = fd
        return fd

    def close_file(self, fd: int) -> None:
        if fd not in self._fd2path:
            raise StorageError(f"File descriptor is not open: {fd}")
        try:
            os.close(fd)
        except OSError as exc:
            raise StorageError(f"Failed to close file descriptor: {fd}") from exc
        path = self._fd2path.pop(fd)
        del self._path2fd[path]
        if fd == self.log_fd:
            self.log_fd = -1
        if fd == self.start_fd:
            self.start_fd = -1

    def get_file_size(self, path: str) -> int:
        """Size of a file in bytes, or -1 if it cannot be stat'ed."""
        try:
            return os.stat(path).st_size
        except OSError:
            return -1

    def get_file_name(self, fd: int) -> str:
        try:
            return self._fd2path[fd]
        except KeyError:
            raise FileNotOpenError(fd) from None

    def get_file_fd(self, path: str) -> int:
        """Descriptor of a file, opening it if needed."""
        if path not in self._path2fd:
            return self.open_file(path)
        return self._path2fd[path]

    # Log and start file

    def _read_at(self, fd: int, path: str, size: int, offset: int) -> bytes | None:
        file_size = self.get_file_size(path)
        if offset > file_size:
            return None
        size = min(size, file_size - offset)
        if size == 0:
            return b""
        self._seek(fd, offset)
        data = os.read(fd, size)
        if len(data) != size:
            raise StorageError(f"short read from {path}")
        return data

    def _write_at_start(self, fd: int, data: bytes) -> None:
        self._seek(fd, 0)
        if os.write(fd, data) != len(data):
            raise StorageError("short write")

    def _log_fd(self) -> int:
        if self.log_fd == -1:
            self.log_fd = self.get_file_fd(self.log_file_name)
        return self.log_fd

    def _start_fd(self) -> int:
        if self.start_fd == -1:
            self.start_fd = self.get_file_fd(self.start_file_name)
        return self.start_fd

    def read_log(self, size: int, offset: int) -> bytes | None:
        """Read up to size bytes of the log at offset; None if offset is past the end."""
        return self._read_at(self._log_fd(), self.log_file_name, size, offset)

    def write_log(self, data: bytes) -> None:
        """Append data to the log file."""
        fd = self._log_fd()
        self._seek(fd, 0, os.SEEK_END)
        if os.write(fd, data) != len(data):
            raise StorageError("write_log: short write")

    def read_log_header(self, size: int) -> bytes:
        """Read the first size bytes of the log file."""
        fd = self._log_fd()
        self._seek(fd, 0)
        data = os.read(fd, size)
        if len(data) != size:
            raise StorageError("read_log_header: short read")
        return data

    def write_log_header(self, data: bytes) -> None:
        """Overwrite the start of the log file with data."""
        self._write_at_start(self._log_fd(), data)

    def read_start_file(self, size: int, offset: int) -> bytes | None:
        """Read up to size bytes of the start file; None if offset is past the end."""
        return self._read_at(self._start_fd(), self.start_file_name, size, offset)

    def write_start_file(self, data: bytes) -> None:
        """Overwrite the start of the start file with data."""
        self._write_at_start(self._start_fd(), data)