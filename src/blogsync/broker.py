"""Reconciliation between a blog's remote collection and its local files.

Pull decides per entry whether the local file can be (over)written, using
the ``ContentHash`` header as the baseline:

- no local file: write it (``CREATED``)
- local body still hashes to its recorded baseline: overwrite (``UPDATED``)
- otherwise the file was edited and not pushed: leave it alone (``CONFLICT``)

Conflicts are reported, never merged.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from blogsync import codec
from blogsync.atompub import AtomPubClient
from blogsync.config import BlogConfig
from blogsync.errors import FormatError, ProtocolError, SyncReport
from blogsync.models import Entry, StoreResult
from blogsync.paths import PathAllocator, local_path
from blogsync.storage import PathLocks, atomic_write

logger = logging.getLogger(__name__)


def merge_server_fields(local: Entry, remote: Entry) -> Entry:
    """Fill fields the local file does not carry from the remote entry.

    Updates replace the whole remote entry, so anything the local header
    cannot express (categories, publish date, author, body type) must be
    copied over or the server would drop it.  The entry date always comes
    from the server.
    """
    update: dict[str, object] = {"last_modified": remote.last_modified}
    if not local.categories:
        update["categories"] = list(remote.categories)
    if local.published is None:
        update["published"] = remote.published
    if not local.author:
        update["author"] = remote.author
    if not local.content_type:
        update["content_type"] = remote.content_type
    if not local.alternate_url:
        update["alternate_url"] = remote.alternate_url
    if not local.custom_path:
        update["custom_path"] = remote.custom_path
    return local.model_copy(update=update)


def _keep_local_headers(remote: Entry, local: Entry) -> Entry:
    """Carry the local file's unknown keys and header spelling onto *remote*."""
    return remote.model_copy(update={"extra_headers": local.extra_headers, "header_text": local.header_text})


def read_local(path: Path) -> Entry:
    """Decode the entry file at *path*, keeping its line endings intact."""
    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FormatError(f"{path} is not valid UTF-8") from exc
    except OSError as exc:
        raise FormatError(f"Cannot read {path}: {exc}") from exc
    try:
        return codec.decode(text)
    except FormatError as exc:
        raise FormatError(f"{path}: {exc}") from exc


class Broker:
    """Pull, push and post workflows for a single blog."""

    def __init__(self, config: BlogConfig, client: AtomPubClient | None = None) -> None:
        self._config = config
        self._client = client or AtomPubClient(config)
        self._locks = PathLocks()

    @property
    def config(self) -> BlogConfig:
        return self._config

    def local_path(self, entry: Entry) -> Path:
        return local_path(self._config, entry)

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def fetch_remote_entries(self) -> list[Entry]:
        """All remote entries, de-duplicated by edit URL.

        Entries can repeat across adjacent pages when the server reorders
        during pagination; the last occurrence wins and takes that later
        position in the result.

        Raises:
            ProtocolError: If a listed entry has no edit link.
        """
        entries = self._client.fetch_collection(self._config.collection_url)
        latest: dict[str, Entry] = {}
        for entry in entries:
            if not entry.edit_url:
                raise ProtocolError(f"Remote entry {entry.title!r} has no edit link")
            latest.pop(entry.edit_url, None)
            latest[entry.edit_url] = entry

        duplicates = len(entries) - len(latest)
        if duplicates:
            logger.info("Dropped %d duplicate entries across pages", duplicates)
        return list(latest.values())

    def store_fresh(self, remote: Entry, path: Path) -> tuple[StoreResult, Path]:
        """Write *remote* to *path* unless that would lose a local edit.

        Returns:
            The classification and the path that was considered.

        Raises:
            FormatError: If an existing file at *path* cannot be decoded.
        """
        with self._locks.hold(path):
            if not path.exists():
                self._write(remote, path)
                logger.info("Created %s", path)
                return StoreResult.CREATED, path

            local = read_local(path)
            if local.content_hash and codec.content_hash(local.content) == local.content_hash:
                self._write(_keep_local_headers(remote, local), path)
                logger.info("Updated %s", path)
                return StoreResult.UPDATED, path

            logger.warning("Conflict: %s has local changes that were not pushed; skipping %s", path, remote.label)
            return StoreResult.CONFLICT, path

    def pull(self, workers: int = 1) -> SyncReport:
        """Fetch every remote entry and store each one with :meth:`store_fresh`.

        With ``workers > 1`` paths are processed on a bounded thread pool.
        Entries that share a path are handled in server order within a
        single task, so the outcome matches a sequential run.  The first
        fatal error cancels outstanding work and propagates.
        """
        report = SyncReport(remote_root=self._config.remote_root)
        allocated = PathAllocator(self._config).allocate(self.fetch_remote_entries())

        results: dict[int, tuple[StoreResult, Path]] = {}
        if workers <= 1:
            for index, (entry, path) in enumerate(allocated):
                results[index] = self.store_fresh(entry, path)
        else:
            groups: dict[Path, list[int]] = {}
            for index, (_, path) in enumerate(allocated):
                groups.setdefault(path, []).append(index)

            def store_group(indexes: list[int]) -> None:
                for index in indexes:
                    entry, path = allocated[index]
                    results[index] = self.store_fresh(entry, path)

            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(store_group, indexes) for indexes in groups.values()]
                try:
                    for future in as_completed(futures):
                        future.result()
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise

        for index, (entry, _) in enumerate(allocated):
            result, path = results[index]
            report.record(entry.edit_url or "", str(path), result)

        report.finish()
        logger.info(
            "Pull of %s: %d created, %d updated, %d conflicts",
            self._config.remote_root,
            report.created,
            report.updated,
            len(report.conflicts),
        )
        return report

    # ------------------------------------------------------------------
    # Push / post
    # ------------------------------------------------------------------

    def upload_fresh(self, entry: Entry, path: Path | None = None) -> Entry:
        """Replace the remote entry with the local one and refresh the local file.

        The current remote entry is fetched first so server-managed fields
        survive the full-replace update.  The server's response is written
        back to *path* (or the entry's mapped path) with a new baseline.

        Raises:
            FormatError: If *entry* has no edit URL.
        """
        if not entry.edit_url:
            raise FormatError(f"Entry {entry.label!r} has no EditURL; use post to create it")

        remote = self._client.get_entry(entry.edit_url)
        outgoing = merge_server_fields(entry, remote)
        updated = self._client.update_entry(entry.edit_url, outgoing)
        if not updated.edit_url:
            updated = updated.model_copy(update={"edit_url": entry.edit_url})

        target = path or self.local_path(updated)
        with self._locks.hold(target):
            return self._write(_keep_local_headers(updated, entry), target)

    def post_entry(self, entry: Entry) -> Entry:
        """Create a new remote entry and return it as the server stored it.

        Nothing is written locally.

        Raises:
            FormatError: If *entry* already has an edit URL.
        """
        if entry.edit_url:
            raise FormatError(f"Entry already exists at {entry.edit_url}; use push to update it")
        return self._client.create_entry(self._config.collection_url, entry)

    def _write(self, entry: Entry, path: Path) -> Entry:
        stored = entry.model_copy(update={"content_hash": codec.content_hash(entry.content)})
        atomic_write(path, codec.encode(stored))
        return stored
