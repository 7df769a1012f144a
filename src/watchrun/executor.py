"""Run configured shell commands and relay their output line by line."""
from __future__ import annotations

import logging
import os
import subprocess
from typing import Dict, Iterable, List, Mapping, Optional

from .events import DispatchContext
from .output import OutputFormatter
from .router import Dispatch

logger = logging.getLogger(__name__)

# Size of each read from a command's stdout pipe.
STDOUT_CHUNK_SIZE = 4096


def split_lines(data: bytes) -> List[bytes]:
    """Return the complete, non-empty lines in *data* as raw bytes.

    A trailing fragment without a newline is not a complete line and is
    dropped, as are empty lines.
    """

    lines: List[bytes] = []
    start = 0
    while True:
        end = data.find(b"\n", start)
        if end < 0:
            break
        if end > start:
            lines.append(data[start:end])
        start = end + 1
    return lines


def build_environment(context: DispatchContext, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Environment for a command: *base* plus ``event``, ``file`` and ``dir``.

    ``file`` and ``dir`` are removed when the event has no value for them.
    """

    env = dict(os.environ if base is None else base)
    env["event"] = context.event_name
    for key, value in (("file", context.file), ("dir", context.directory)):
        if value is None:
            env.pop(key, None)
        else:
            env[key] = value
    return env


class CommandExecutor:
    """Runs commands one at a time, blocking until each one's output is shown."""

    def __init__(self, formatter: OutputFormatter, *, shell: bool = True):
        self._formatter = formatter
        self._shell = shell

    def run_dispatch(self, dispatch: Dispatch) -> int:
        """Announce the event and run its commands in order.

        Returns the number of commands that were started.
        """

        self._formatter.event(dispatch.context)
        return self.run_commands(dispatch.commands, dispatch.context)

    def run_commands(self, commands: Iterable[str], context: DispatchContext) -> int:
        started = 0
        for command in commands:
            if self.execute(command, context):
                started += 1
        return started

    def execute(self, command: str, context: DispatchContext) -> bool:
        """Run one command and print each complete line it writes to stdout.

        Returns False when the command could not be started.
        """

        self._formatter.command(command)
        env = build_environment(context)
        try:
            process = subprocess.Popen(command, shell=self._shell, stdout=subprocess.PIPE, env=env)
        except OSError as exc:
            logger.error("Failed to start command %r: %s", command, exc.strerror or exc)
            return False

        output = self._capture(process)
        returncode = process.wait()
        if returncode != 0:
            logger.debug("Command %r exited with status %s", command, returncode)

        for line in split_lines(output):
            self._formatter.output_line(line)
        return True

    @staticmethod
    def _capture(process: subprocess.Popen) -> bytes:
        buffer = bytearray()
        assert process.stdout is not None
        with process.stdout:
            while True:
                chunk = process.stdout.read(STDOUT_CHUNK_SIZE)
                if not chunk:
                    break
                buffer.extend(chunk)
        return bytes(buffer)
