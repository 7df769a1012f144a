"""Event models shared across watcher components."""
from __future__ import annotations

import operator
from dataclasses import dataclass
from enum import Enum, IntFlag
from functools import reduce
from typing import Optional, Tuple


class EventKind(IntFlag):
    """Event bits reported by inotify in an event's ``mask`` field."""

    ACCESS = 0x00000001
    MODIFY = 0x00000002
    ATTRIB = 0x00000004
    CLOSE_WRITE = 0x00000008
    CLOSE_NOWRITE = 0x00000010
    OPEN = 0x00000020
    MOVED_FROM = 0x00000040
    MOVED_TO = 0x00000080
    CREATE = 0x00000100
    DELETE = 0x00000200
    DELETE_SELF = 0x00000400
    MOVE_SELF = 0x00000800
    UNMOUNT = 0x00002000
    Q_OVERFLOW = 0x00004000
    IGNORED = 0x00008000
    ISDIR = 0x40000000


# Mask passed to inotify_add_watch to subscribe to every watchable event.
ALL_EVENTS = (
    EventKind.ACCESS
    | EventKind.MODIFY
    | EventKind.ATTRIB
    | EventKind.CLOSE_WRITE
    | EventKind.CLOSE_NOWRITE
    | EventKind.OPEN
    | EventKind.MOVED_FROM
    | EventKind.MOVED_TO
    | EventKind.CREATE
    | EventKind.DELETE
    | EventKind.DELETE_SELF
    | EventKind.MOVE_SELF
)

# Order in which the catch-all bucket tests a mask.
LABELLED_KINDS: Tuple[EventKind, ...] = (
    EventKind.ACCESS,
    EventKind.ATTRIB,
    EventKind.CLOSE_NOWRITE,
    EventKind.CLOSE_WRITE,
    EventKind.CREATE,
    EventKind.DELETE,
    EventKind.DELETE_SELF,
    EventKind.IGNORED,
    EventKind.ISDIR,
    EventKind.MODIFY,
    EventKind.MOVE_SELF,
    EventKind.MOVED_FROM,
    EventKind.MOVED_TO,
    EventKind.OPEN,
    EventKind.Q_OVERFLOW,
    EventKind.UNMOUNT,
)


class Bucket(str, Enum):
    """Command lists a user can attach commands to."""

    ALL = "ALL"
    ACCESS = "ACCESS"
    MODIFY = "MODIFY"
    CLOSE = "CLOSE"
    OPEN = "OPEN"
    CREATE = "CREATE"
    DELETE = "DELETE"
    ATTRIB = "ATTRIB"

    @property
    def kinds(self) -> EventKind:
        """Event bits that trigger this bucket."""

        return _BUCKET_KINDS[self]

    @classmethod
    def parse(cls, name: str) -> "Bucket":
        try:
            return cls(name.strip().upper())
        except ValueError:
            allowed = ", ".join(bucket.value for bucket in cls)
            raise ValueError(f"unknown event bucket {name!r} (expected one of: {allowed})") from None


_BUCKET_KINDS = {
    Bucket.ALL: reduce(operator.or_, LABELLED_KINDS),
    Bucket.ACCESS: EventKind.ACCESS,
    Bucket.MODIFY: EventKind.MODIFY,
    Bucket.CLOSE: EventKind.CLOSE_NOWRITE | EventKind.CLOSE_WRITE,
    Bucket.OPEN: EventKind.OPEN,
    Bucket.CREATE: EventKind.CREATE,
    Bucket.DELETE: EventKind.DELETE,
    Bucket.ATTRIB: EventKind.ATTRIB,
}

# Order in which typed buckets are evaluated for a single record.
TYPED_BUCKETS: Tuple[Bucket, ...] = (
    Bucket.ACCESS,
    Bucket.MODIFY,
    Bucket.CLOSE,
    Bucket.OPEN,
    Bucket.CREATE,
    Bucket.DELETE,
    Bucket.ATTRIB,
)


@dataclass(frozen=True)
class EventRecord:
    """A single record carved out of an inotify read buffer."""

    wd: int
    mask: int
    cookie: int = 0
    name: Optional[str] = None

    def has(self, kinds: EventKind) -> bool:
        return bool(self.mask & kinds)


@dataclass(frozen=True)
class DispatchContext:
    """What a command gets told about the event that triggered it."""

    event_name: str
    directory: Optional[str] = None
    file: Optional[str] = None
