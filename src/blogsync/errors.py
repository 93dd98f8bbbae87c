"""Error taxonomy and structured reporting for sync runs."""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from blogsync.models import StoreResult

logger = logging.getLogger(__name__)


class BlogsyncError(Exception):
    """Base class for every error blogsync raises on purpose."""


class ConfigError(BlogsyncError):
    """Blog not found, or the configuration file is malformed."""


class TransportError(BlogsyncError):
    """Connection, DNS, TLS or timeout failure."""


class AuthError(BlogsyncError):
    """The remote rejected our credentials."""

    def __init__(self, message: str = "", status: int = 0) -> None:
        self.status = status
        super().__init__(message)


class ProtocolError(BlogsyncError):
    """The remote answered with something we cannot use."""

    def __init__(self, message: str = "", status: int = 0, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(message)


class FormatError(BlogsyncError):
    """A local file is missing required metadata or has a malformed header."""


class ConflictError(BlogsyncError):
    """A write was rejected because our view of the entry is stale."""

    def __init__(self, message: str = "", status: int = 0) -> None:
        self.status = status
        super().__init__(message)


class NotFoundError(BlogsyncError):
    """No configured blog owns a given local path."""


class SyncOutcome(BaseModel):
    """What happened to one remote entry during a pull."""

    edit_url: str
    path: str
    result: StoreResult


class SyncReport(BaseModel):
    """Summary report of a pull run."""

    remote_root: str = ""
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    outcomes: list[SyncOutcome] = Field(default_factory=list)

    def record(self, edit_url: str, path: str, result: StoreResult) -> None:
        """Record the classification of a single entry."""
        self.outcomes.append(SyncOutcome(edit_url=edit_url, path=path, result=result))

    def finish(self) -> None:
        """Mark the report as finished."""
        self.finished_at = datetime.now()

    def _count(self, result: StoreResult) -> int:
        return sum(1 for o in self.outcomes if o.result is result)

    @property
    def created(self) -> int:
        return self._count(StoreResult.CREATED)

    @property
    def updated(self) -> int:
        return self._count(StoreResult.UPDATED)

    @property
    def conflicts(self) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.result is StoreResult.CONFLICT]

    def summary_text(self) -> str:
        """Human-readable summary of the pull run."""
        duration = ""
        if self.finished_at:
            secs = (self.finished_at - self.started_at).total_seconds()
            duration = f" in {secs:.1f}s"

        lines = [
            f"Pulled {len(self.outcomes)} entries from {self.remote_root or 'remote'}{duration}",
            f"Created: {self.created}, updated: {self.updated}, conflicts: {len(self.conflicts)}",
        ]
        for outcome in self.conflicts[:5]:
            lines.append(f"  [conflict] {outcome.path}")
        if len(self.conflicts) > 5:
            lines.append(f"  ... and {len(self.conflicts) - 5} more")
        return "\n".join(lines)
