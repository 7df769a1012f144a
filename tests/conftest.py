"""Shared fixtures for watcher tests."""

import io
import struct
from typing import List, Optional

import pytest

from watchrun.config import AppConfig, OutputOptions
from watchrun.output import OutputFormatter


def pack_event(wd: int, mask: int, name: Optional[str] = None, *, cookie: int = 0, pad_to: int = 16) -> bytes:
    """Build one raw inotify record the way the kernel lays it out."""
    name_bytes = b""
    if name is not None:
        raw = name.encode() + b"\x00"
        padded_len = -(-len(raw) // pad_to) * pad_to
        name_bytes = raw.ljust(padded_len, b"\x00")
    return struct.pack("iIII", wd, mask, cookie, len(name_bytes)) + name_bytes


class SequentialWatches:
    """Stands in for inotify_add_watch, handing out 1, 2, 3, ..."""

    def __init__(self):
        self.calls: List[str] = []

    def __call__(self, path: str) -> int:
        self.calls.append(path)
        return len(self.calls)


class FakeSource(SequentialWatches):
    """Event source that replays prepared buffers, then interrupts."""

    def __init__(self, buffers):
        super().__init__()
        self.buffers = list(buffers)
        self.closed = False

    def add_watch(self, path: str) -> int:
        return self(path)

    def read_buffer(self) -> bytes:
        if not self.buffers:
            raise KeyboardInterrupt
        return self.buffers.pop(0)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def streams():
    return io.StringIO(), io.StringIO()


@pytest.fixture
def formatter(streams):
    stdout, stderr = streams
    return OutputFormatter(OutputOptions(), stdout=stdout, stderr=stderr)


@pytest.fixture
def app_config():
    return AppConfig()
