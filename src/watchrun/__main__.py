"""Command-line entry point for the watcher."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import AppConfig, ConfigError, load_config
from .events import Bucket
from .executor import CommandExecutor
from .inotify import EventSourceError, InotifySource
from .monitor import EventMonitor
from .output import OutputFormatter
from .registry import RegistrationError

__version__ = "0.1.1"

logger = logging.getLogger("watchrun")

_BUCKET_OPTIONS = (
    ("-X", "--all", Bucket.ALL, "Run COMMAND when PATH fires any event."),
    ("-A", "--access", Bucket.ACCESS, "Run COMMAND when PATH is accessed."),
    ("-M", "--modify", Bucket.MODIFY, "Run COMMAND when PATH is modified."),
    ("-O", "--open", Bucket.OPEN, "Run COMMAND when PATH is opened."),
    ("-C", "--create", Bucket.CREATE, "Run COMMAND when PATH is created."),
    ("-S", "--close", Bucket.CLOSE, "Run COMMAND when PATH is closed."),
    ("-D", "--delete", Bucket.DELETE, "Run COMMAND when PATH is deleted."),
    ("-B", "--attrib", Bucket.ATTRIB, "Run COMMAND when PATH's attributes change."),
)

# Single-letter switches that take no value and may share a group with bucket letters.
_SWITCH_LETTERS = frozenset("pvQqsf")


def expand_grouped_flags(argv: Sequence[str]) -> List[str]:
    """Rewrite grouped short bucket flags into ``--on``.

    ``-MC make`` attaches ``make`` to both MODIFY and CREATE. Plain
    switches in the group (``-vMC``) are split out. A group holding a letter that is
    neither, such as ``-Mmake``, is left to argparse.
    """

    letters = {short[1]: bucket for short, _, bucket, _ in _BUCKET_OPTIONS}
    expanded: List[str] = []
    args = iter(argv)
    for arg in args:
        if arg == "--":
            expanded.append(arg)
            expanded.extend(args)
            break
        group = arg[1:]
        if (
            len(arg) > 2
            and arg.startswith("-")
            and not arg.startswith("--")
            and set(group) <= letters.keys() | _SWITCH_LETTERS
            and any(letter in letters for letter in group)
        ):
            expanded.extend(f"-{letter}" for letter in group if letter in _SWITCH_LETTERS)
            buckets = dict.fromkeys(letters[letter].value for letter in group if letter in letters)
            expanded.extend(["--on", ",".join(buckets)])
        else:
            expanded.append(arg)
    return expanded


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]
    return build_parser().parse_intermixed_args(expand_grouped_flags(argv))


class _AppendCommand(argparse.Action):
    """Collects ``(buckets, command)`` pairs in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        if self.const is not None:
            buckets: Tuple[Bucket, ...] = (self.const,)
            command = values
        else:
            kinds, command = values
            try:
                buckets = tuple(Bucket.parse(name) for name in kinds.split(",") if name.strip())
            except ValueError as exc:
                raise argparse.ArgumentError(self, str(exc)) from exc
            if not buckets:
                raise argparse.ArgumentError(self, "expected at least one event bucket")
        items: List[Tuple[Tuple[Bucket, ...], str]] = list(getattr(namespace, self.dest, None) or [])
        items.append((buckets, command))
        setattr(namespace, self.dest, items)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchrun",
        description="Wait for inotify events from PATH(s) and run the given commands.",
    )
    parser.add_argument("paths", nargs="*", metavar="PATH", help="File or directory to watch")

    events = parser.add_argument_group("Configure inotify responses")
    for short, long, bucket, help_text in _BUCKET_OPTIONS:
        events.add_argument(
            short,
            long,
            dest="commands",
            action=_AppendCommand,
            const=bucket,
            metavar="COMMAND",
            help=help_text,
        )
    events.add_argument(
        "--on",
        dest="commands",
        action=_AppendCommand,
        nargs=2,
        metavar=("KINDS", "COMMAND"),
        help="Run COMMAND for each comma-separated event bucket in KINDS (e.g. MODIFY,CREATE).",
    )

    output = parser.add_argument_group("Control output")
    output.add_argument("-p", "--pretty", action="store_true", help="Produce pretty output.")
    output.add_argument("-v", "--verbose", action="store_true", help="Produce verbose output.")
    output.add_argument(
        "-Q", "--quiet-out", dest="quiet_output", action="store_true", help="Silence the output of subcommands."
    )
    output.add_argument("-q", "--quiet", "-s", "--silent", dest="quiet", action="store_true", help="Produce no output.")

    parser.add_argument(
        "-f", "--force", action="store_true", help="Skip paths that do not exist instead of failing."
    )
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> AppConfig:
    """Merge the optional config file with command-line options."""

    app_config = AppConfig()
    if args.config:
        load_config(Path(args.config), into=app_config)

    app_config.paths.extend(args.paths)
    for buckets, command in args.commands or []:
        app_config.commands.add_many(buckets, command)

    options = app_config.output
    options.verbose = options.verbose or args.verbose
    options.quiet = options.quiet or args.quiet
    options.quiet_output = options.quiet_output or args.quiet_output
    options.pretty = options.pretty or args.pretty
    app_config.force = app_config.force or args.force

    app_config.validate()
    return app_config


def _configure_logging(level_name: str, *, verbose: bool, quiet: bool) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG
    if quiet:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    _configure_logging(args.log_level, verbose=args.verbose, quiet=args.quiet)

    try:
        app_config = build_config(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        raise SystemExit(2) from exc

    signal.signal(signal.SIGTERM, _raise_interrupt)

    formatter = OutputFormatter(app_config.output)
    executor = CommandExecutor(formatter)
    try:
        source = InotifySource()
        monitor = EventMonitor(app_config, source, executor)
        monitor.run()
    except (RegistrationError, EventSourceError) as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
