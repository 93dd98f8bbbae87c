"""Mapping between remote entries and local file paths."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import unquote, urlparse

from blogsync.config import BlogConfig
from blogsync.errors import FormatError
from blogsync.models import Entry

logger = logging.getLogger(__name__)

ENTRY_EXTENSION = ".md"

_UNSAFE = re.compile(r"[^\w.-]+")


def _clean_segment(segment: str) -> str:
    cleaned = _UNSAFE.sub("-", unquote(segment)).strip("-.")
    return cleaned


def slug_for(entry: Entry) -> str:
    """Relative slug naming *entry*'s file, without extension.

    A custom path keeps its ``/`` separators so authors can group entries
    into directories; otherwise the last segment of the edit URL is used.

    Raises:
        FormatError: If the entry has neither a usable custom path nor an
            edit URL.
    """
    if entry.custom_path:
        segments = [_clean_segment(s) for s in entry.custom_path.strip("/").split("/")]
        segments = [s for s in segments if s]
        if segments:
            return "/".join(segments)

    if entry.edit_url:
        url_path = urlparse(entry.edit_url).path
        for segment in reversed(url_path.split("/")):
            cleaned = _clean_segment(segment)
            if cleaned:
                return cleaned

    raise FormatError(f"Cannot derive a file name for entry {entry.label!r}")


def local_path(config: BlogConfig, entry: Entry) -> Path:
    """Absolute path of the local file for *entry*.

    Depends only on the blog configuration and the entry itself.
    """
    return config.blog_root / f"{slug_for(entry)}{ENTRY_EXTENSION}"


class PathAllocator:
    """Assigns distinct local paths to the entries of one pull run.

    Every entry's natural path is reserved up front.  Walking the entries in
    server order, the first entry to claim a path keeps it and each later
    collider gets ``<slug>-<n>.md`` with the lowest ``n`` that is neither
    reserved nor already handed out.
    """

    def __init__(self, config: BlogConfig) -> None:
        self._config = config

    def allocate(self, entries: Iterable[Entry]) -> list[tuple[Entry, Path]]:
        ordered = list(entries)
        natural = [local_path(self._config, entry) for entry in ordered]
        taken = set(natural)
        assigned: set[Path] = set()

        allocated: list[tuple[Entry, Path]] = []
        for entry, path in zip(ordered, natural):
            if path in assigned:
                resolved = self._next_free(path, taken)
                logger.info("Path collision for %s: using %s", entry.label, resolved)
                path = resolved
            assigned.add(path)
            taken.add(path)
            allocated.append((entry, path))
        return allocated

    @staticmethod
    def _next_free(path: Path, taken: set[Path]) -> Path:
        n = 1
        while True:
            candidate = path.with_name(f"{path.stem}-{n}{path.suffix}")
            if candidate not in taken:
                return candidate
            n += 1
