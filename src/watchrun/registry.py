"""Mapping between inotify watch descriptors and the paths the user asked for."""
from __future__ import annotations

import errno
import logging
import os
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

AddWatch = Callable[[str], int]


class RegistrationError(Exception):
    """Raised when a requested path cannot be watched."""


class WatchRegistry:
    """Array-indexed lookup from watch descriptor to watched path.

    inotify hands out descriptors 1, 2, 3, ... for a fresh instance, so the
    descriptor of the k-th successful registration is k and ``resolve`` is a
    plain list index. Registration checks that assumption for every watch and
    refuses to continue once it breaks. Supporting watch removal would need a
    real mapping instead.
    """

    def __init__(self, add_watch: AddWatch, *, force: bool = False):
        self._add_watch = add_watch
        self._force = force
        self._paths: List[str] = []
        self._skipped: List[str] = []

    def register(self, path: str) -> Optional[int]:
        """Watch *path* and return its descriptor.

        Returns None when the path does not exist and forced mode is on.
        """

        if not os.path.exists(path):
            if self._force:
                logger.warning("Skipping %s: path does not exist", path)
                self._skipped.append(path)
                return None
            raise RegistrationError(f"{path}: {os.strerror(errno.ENOENT)}")

        try:
            wd = self._add_watch(path)
        except OSError as exc:
            if self._force and exc.errno == errno.ENOENT:
                logger.warning("Skipping %s: path disappeared before it could be watched", path)
                self._skipped.append(path)
                return None
            raise RegistrationError(f"inotify_add_watch {path}: {exc.strerror or exc}") from exc

        expected = len(self._paths) + 1
        if wd != expected:
            raise RegistrationError(
                f"inotify_add_watch returned an invalid watch descriptor for {path} "
                f"(expected {expected}, got {wd})"
            )

        self._paths.append(path)
        logger.debug("Watching %s (wd=%s)", path, wd)
        return wd

    def register_all(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.register(path)

    def resolve(self, wd: int) -> str:
        """Return the path registered under *wd*."""

        return self._paths[wd - 1]

    def get(self, wd: int) -> Optional[str]:
        """Like ``resolve`` but returns None for descriptors outside the table."""

        if 1 <= wd <= len(self._paths):
            return self._paths[wd - 1]
        return None

    @property
    def skipped(self) -> Tuple[str, ...]:
        return tuple(self._skipped)

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Tuple[int, str]]:
        return iter(enumerate(self._paths, start=1))
