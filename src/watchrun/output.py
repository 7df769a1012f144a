"""Rendering of event, command and captured-output lines."""
from __future__ import annotations

import sys
from typing import Optional, TextIO

from .config import OutputOptions
from .events import DispatchContext

ANSI_RESET = "\033[m"

EVENT_COLOR = "\033[32m"
COMMAND_PREFIX = "  $ "
COMMAND_PREFIX_COLOR = "\033[34m"
OUTPUT_PREFIX = "    -> "
OUTPUT_PREFIX_COLOR = "\033[90m"


class OutputFormatter:
    """Writes narration to stderr and captured command output to stdout.

    Event and command lines are dropped in quiet mode. Captured lines are
    dropped when subcommand output is silenced, and printed bare in quiet
    mode so they can still be piped.
    """

    def __init__(
        self,
        options: OutputOptions,
        *,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self._options = options
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr if self._stderr is not None else sys.stderr

    def event(self, context: DispatchContext) -> None:
        if self._options.quiet:
            return
        target = " ".join(part for part in (context.directory, context.file) if part is not None)
        if self._options.pretty:
            label = f"{EVENT_COLOR}{context.event_name}{ANSI_RESET}"
        else:
            label = context.event_name
        self._write(self.stderr, f"{label} {target}")

    def command(self, command: str) -> None:
        if self._options.quiet:
            return
        if self._options.pretty:
            self._write(self.stderr, f"{COMMAND_PREFIX_COLOR}{COMMAND_PREFIX}{command}{ANSI_RESET}")
        else:
            self._write(self.stderr, f"{COMMAND_PREFIX}{command}")

    def output_line(self, line: bytes) -> None:
        """Print one captured line exactly as the command wrote it.

        Streams with a binary ``buffer`` receive the raw bytes. Pure text
        streams get the line decoded as UTF-8 with undecodable bytes
        escaped.
        """

        if self._options.quiet_output:
            return
        if self._options.quiet:
            prefix, suffix = b"", b""
        elif self._options.pretty:
            prefix = (OUTPUT_PREFIX_COLOR + OUTPUT_PREFIX + ANSI_RESET).encode("ascii")
            suffix = ANSI_RESET.encode("ascii")
        else:
            prefix, suffix = OUTPUT_PREFIX.encode("ascii"), b""
        self._write_bytes(self.stdout, prefix + line + suffix)

    @staticmethod
    def _write(stream: TextIO, text: str) -> None:
        stream.write(text + "\n")
        stream.flush()

    @staticmethod
    def _write_bytes(stream: TextIO, data: bytes) -> None:
        raw = getattr(stream, "buffer", None)
        if raw is None:
            OutputFormatter._write(stream, data.decode("utf-8", errors="backslashreplace"))
            return
        # Text already queued on the stream must go out first.
        stream.flush()
        raw.write(data + b"\n")
        raw.flush()
