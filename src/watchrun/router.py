"""Turn decoded inotify records into the command lists they trigger."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import CommandTable
from .events import LABELLED_KINDS, TYPED_BUCKETS, Bucket, DispatchContext, EventRecord
from .registry import WatchRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dispatch:
    """One command list to run for one labelled event."""

    bucket: Bucket
    commands: Tuple[str, ...]
    context: DispatchContext


def resolve_target(event: EventRecord, registry: WatchRegistry) -> Tuple[Optional[str], Optional[str]]:
    """Return the ``(directory, file)`` pair an event refers to.

    A trailing name means the event concerns a child of a watched directory.
    Otherwise the watched path itself is the file and there is no directory.
    """

    watched = registry.get(event.wd)
    if watched is None:
        logger.debug("Event for unknown watch descriptor %s (mask=%#x)", event.wd, event.mask)
    if event.name:
        return watched, event.name
    return None, watched


def route(event: EventRecord, registry: WatchRegistry, commands: CommandTable) -> List[Dispatch]:
    """Resolve every dispatch a single record produces, in execution order.

    The catch-all bucket runs once per event bit set in the mask, labelled
    with that bit's name. Each typed bucket then runs at most once, labelled
    with the bucket name. The two phases are independent.
    """

    if not event.mask:
        return []

    directory, file = resolve_target(event, registry)
    dispatches: List[Dispatch] = []

    catch_all = commands.get(Bucket.ALL)
    if catch_all:
        for kind in LABELLED_KINDS:
            if event.has(kind):
                context = DispatchContext(event_name=kind.name, directory=directory, file=file)
                dispatches.append(Dispatch(Bucket.ALL, catch_all, context))

    for bucket in TYPED_BUCKETS:
        bucket_commands = commands.get(bucket)
        if bucket_commands and event.has(bucket.kinds):
            context = DispatchContext(event_name=bucket.value, directory=directory, file=file)
            dispatches.append(Dispatch(bucket, bucket_commands, context))

    return dispatches
