"""Blocking inotify event loop."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from .config import AppConfig
from .executor import CommandExecutor
from .inotify import decode_events
from .registry import WatchRegistry
from .router import route

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    def add_watch(self, path: str) -> int: ...

    def read_buffer(self) -> bytes: ...

    def close(self) -> None: ...


class MonitorState(str, Enum):
    INIT = "init"
    WATCHING = "watching"
    DISPATCHING = "dispatching"
    TEARDOWN = "teardown"


@dataclass
class MonitorStats:
    """Counters emitted by the monitor for observability."""

    cycles: int = 0
    events_decoded: int = 0
    dispatches: int = 0
    commands_started: int = 0


class EventMonitor:
    """Reads inotify buffers and runs the commands each event selects."""

    def __init__(
        self,
        config: AppConfig,
        source: EventSource,
        executor: CommandExecutor,
        registry: Optional[WatchRegistry] = None,
    ):
        self._config = config
        self._source = source
        self._executor = executor
        self._registry = registry or WatchRegistry(source.add_watch, force=config.force)
        self._stopping = False
        self._stats = MonitorStats()
        self.state = MonitorState.INIT

    @property
    def registry(self) -> WatchRegistry:
        return self._registry

    @property
    def stats(self) -> MonitorStats:
        return self._stats

    def setup(self) -> None:
        """Register a watch for every configured path."""

        self._registry.register_all(self._config.paths)
        logger.info("Watching %s path(s)", len(self._registry))
        if self._config.output.verbose:
            for wd, path in self._registry:
                logger.info("  wd=%s %s", wd, path)

    def run(self) -> None:
        """Register watches and process events until interrupted or stopped."""

        try:
            self.setup()
            while not self._stopping:
                self.state = MonitorState.WATCHING
                buffer = self._source.read_buffer()
                self.state = MonitorState.DISPATCHING
                self.process_buffer(buffer)
        except KeyboardInterrupt:
            logger.info("Monitor interrupted by user")
        finally:
            self.state = MonitorState.TEARDOWN
            self._source.close()
            logger.info(
                "Monitor stopped after %s reads, %s events, %s dispatches, %s commands",
                self._stats.cycles,
                self._stats.events_decoded,
                self._stats.dispatches,
                self._stats.commands_started,
            )

    def stop(self) -> None:
        """Signal the monitor to stop once the current buffer is handled."""

        self._stopping = True

    def process_buffer(self, buffer: bytes) -> None:
        for event in decode_events(buffer):
            self._stats.events_decoded += 1
            for dispatch in route(event, self._registry, self._config.commands):
                self._stats.dispatches += 1
                self._stats.commands_started += self._executor.run_dispatch(dispatch)
        self._stats.cycles += 1
