"""Minimal inotify binding: descriptor setup, blocking reads and record decoding."""
from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
import struct
from typing import Iterator, Optional

from .events import ALL_EVENTS, EventRecord

logger = logging.getLogger(__name__)

_libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)

_libc.inotify_init1.argtypes = [ctypes.c_int]
_libc.inotify_init1.restype = ctypes.c_int

_libc.inotify_add_watch.argtypes = [ctypes.c_int, ctypes.c_char_p, ctypes.c_uint32]
_libc.inotify_add_watch.restype = ctypes.c_int

IN_CLOEXEC = 0o2000000

# struct inotify_event: wd, mask, cookie, len, followed by len bytes of name
EVENT_HEADER = struct.Struct("iIII")

NAME_MAX = 255

# Room for ten maximum-length records per read.
READ_SIZE = 10 * (EVENT_HEADER.size + NAME_MAX + 1)


class EventSourceError(Exception):
    """Raised when the notification source cannot be set up or read."""


class EventDecodeError(EventSourceError):
    """Raised when a read buffer does not hold whole event records."""


def _os_error(filename: Optional[str] = None) -> OSError:
    errno = ctypes.get_errno()
    return OSError(errno, os.strerror(errno), filename)


def decode_events(buffer: bytes) -> Iterator[EventRecord]:
    """Split one read buffer into its event records.

    Each record advances the cursor by the header size plus the name length
    declared in the header, whatever the name bytes contain. Records with an
    empty mask are still yielded; deciding what to run for them is left to
    the router.
    """

    view = memoryview(buffer)
    offset = 0
    end = len(view)
    while offset < end:
        if offset + EVENT_HEADER.size > end:
            raise EventDecodeError(
                f"truncated event header at offset {offset} of {end}-byte buffer"
            )
        wd, mask, cookie, name_len = EVENT_HEADER.unpack_from(view, offset)
        offset += EVENT_HEADER.size
        if offset + name_len > end:
            raise EventDecodeError(
                f"event name of {name_len} bytes overruns {end}-byte buffer at offset {offset}"
            )
        name: Optional[str] = None
        if name_len:
            raw_name = bytes(view[offset : offset + name_len]).split(b"\x00", 1)[0]
            name = os.fsdecode(raw_name) or None
        offset += name_len
        yield EventRecord(wd=wd, mask=mask, cookie=cookie, name=name)


class InotifySource:
    """Owns one inotify descriptor for the lifetime of the watcher."""

    def __init__(self) -> None:
        fd = _libc.inotify_init1(IN_CLOEXEC)
        if fd < 0:
            raise EventSourceError(f"inotify_init: {_os_error().strerror}")
        self._fd: Optional[int] = fd
        logger.debug("Opened inotify descriptor %s", fd)

    @property
    def closed(self) -> bool:
        return self._fd is None

    def add_watch(self, path: str, mask: int = ALL_EVENTS) -> int:
        """Watch *path* and return the descriptor inotify assigned to it.

        Raises OSError carrying the kernel's errno when the watch is refused.
        """

        wd = _libc.inotify_add_watch(self._require_fd(), os.fsencode(path), int(mask))
        if wd < 0:
            raise _os_error(path)
        return wd

    def read_buffer(self, size: int = READ_SIZE) -> bytes:
        """Block until the kernel hands over at least one event."""

        try:
            data = os.read(self._require_fd(), size)
        except OSError as exc:
            raise EventSourceError(f"read: {exc.strerror or exc}") from exc
        if not data:
            raise EventSourceError("read() from inotify descriptor returned 0 bytes")
        return data

    def close(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        os.close(fd)
        logger.debug("Closed inotify descriptor %s", fd)

    def __enter__(self) -> "InotifySource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _require_fd(self) -> int:
        if self._fd is None:
            raise EventSourceError("inotify descriptor is closed")
        return self._fd
