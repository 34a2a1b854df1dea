"""Access to the sensor and display device files."""

from __future__ import annotations

import os
import threading
from enum import IntEnum
from typing import Mapping, Optional

DEV_FILE_BMP = "/dev/bmp180"
DEV_FILE_LCD = "/dev/lcd1602"

_READ_LIMIT = 127


class DriverType(IntEnum):
    BMP180 = 0
    LCD1602 = 1


class DriverError(OSError):
    """Raised when a device file cannot be opened, read or written."""


class DriverManager:
    """Lazily opens device files and reads or writes them under a lock."""

    def __init__(self, paths: Optional[Mapping[DriverType, str]] = None) -> None:
        self.paths: dict[DriverType, str] = {
            DriverType.BMP180: DEV_FILE_BMP,
            DriverType.LCD1602: DEV_FILE_LCD,
        }
        if paths:
            self.paths.update(paths)
        self._fds: dict[DriverType, int] = {}
        self._lock = threading.Lock()

    def open(self, driver_type: DriverType, mode: int) -> int:
        """Open the device file for ``driver_type`` with ``os.open`` flags ``mode``."""
        path = self.paths[driver_type]
        with self._lock:
            try:
                fd = os.open(path, mode)
            except OSError as exc:
                raise DriverError(f"failed to open {path}: {exc.strerror}") from exc
            self._fds[driver_type] = fd
            return fd

    def _fd(self, driver_type: DriverType, mode: int) -> int:
        fd = self._fds.get(driver_type)
        return fd if fd is not None else self.open(driver_type, mode)

    def read(self, driver_type: DriverType) -> str:
        """Read the device's current value from the start of its file."""
        fd = self._fd(driver_type, os.O_RDONLY)
        with self._lock:
            try:
                os.lseek(fd, 0, os.SEEK_SET)
                data = os.read(fd, _READ_LIMIT)
            except OSError as exc:
                raise DriverError(f"failed to read device: {exc.strerror}") from exc
        return data.decode("utf-8", errors="replace")

    def write(self, driver_type: DriverType, text: str) -> None:
        """Write ``text`` to the device."""
        fd = self._fd(driver_type, os.O_WRONLY)
        with self._lock:
            try:
                os.write(fd, text.encode("utf-8"))
            except OSError as exc:
                raise DriverError(f"failed to write device: {exc.strerror}") from exc

    def close(self) -> None:
        """Close every open device file."""
        with self._lock:
            for fd in self._fds.values():
                try:
                    os.close(fd)
                except OSError:
                    pass
            self._fds.clear()

    def __enter__(self) -> "DriverManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()