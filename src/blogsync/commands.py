"""The commands blogsync can run, and their dispatch."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import assert_never

from pydantic import BaseModel, ConfigDict

from blogsync import codec
from blogsync.broker import Broker, read_local
from blogsync.config import BlogConfig, Config
from blogsync.errors import SyncReport
from blogsync.models import Entry

logger = logging.getLogger(__name__)


class PullCommand(BaseModel):
    """Download every entry of *blog* into its local tree."""

    model_config = ConfigDict(frozen=True)

    blog: str
    workers: int = 1


class PushCommand(BaseModel):
    """Upload the local entry file at *path*."""

    model_config = ConfigDict(frozen=True)

    path: Path


class PostCommand(BaseModel):
    """Create a new entry on *blog* from *body*."""

    model_config = ConfigDict(frozen=True)

    blog: str
    body: str
    draft: bool = False
    title: str | None = None
    custom_path: str | None = None


Command = PullCommand | PushCommand | PostCommand

BrokerFactory = Callable[[BlogConfig], Broker]


def build_post_entry(command: PostCommand) -> Entry:
    """Turn post input plus command-line overrides into a new entry."""
    entry = codec.decode_input(command.body)
    update: dict[str, object] = {}
    if command.draft:
        update["is_draft"] = True
    if command.title:
        update["title"] = command.title
    if command.custom_path:
        update["custom_path"] = command.custom_path
    return entry.model_copy(update=update)


def execute(
    command: Command,
    config: Config,
    *,
    broker_factory: BrokerFactory = Broker,
) -> SyncReport | Entry:
    """Run *command* against the blog it targets.

    Returns:
        The pull report for :class:`PullCommand`, otherwise the entry as the
        server returned it.
    """
    match command:
        case PullCommand(blog=blog, workers=workers):
            broker = broker_factory(config.get(blog))
            return broker.pull(workers=workers)
        case PushCommand(path=path):
            target = path.expanduser().resolve()
            blog_config = config.reverse_lookup(target)
            entry = read_local(target)
            logger.debug("Pushing %s to %s", target, blog_config.remote_root)
            return broker_factory(blog_config).upload_fresh(entry, target)
        case PostCommand(blog=blog):
            broker = broker_factory(config.get(blog))
            return broker.post_entry(build_post_entry(command))
        case _:
            assert_never(command)
