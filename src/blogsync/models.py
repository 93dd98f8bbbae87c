"""Entry model shared by the codec, the wire client and the broker."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class StoreResult(StrEnum):
    """Classification of a pulled entry against its local copy."""

    CREATED = "created"
    UPDATED = "updated"
    CONFLICT = "conflict"


class Entry(BaseModel):
    """A blog entry, either as the server describes it or as a local file holds it.

    ``edit_url`` is the remote identity: it is ``None`` until the server
    creates the entry and never changes afterwards.  ``content_hash`` is the
    fingerprint of ``content`` at the last successful pull or push and only
    exists on the local side.

    ``published``, ``categories``, ``author`` and ``content_type`` are managed
    by the server and are not part of the local header.
    """

    title: str = ""
    edit_url: str | None = None
    alternate_url: str | None = None
    custom_path: str | None = None
    content: str = ""
    is_draft: bool = False
    last_modified: datetime | None = None
    content_hash: str | None = None

    published: datetime | None = None
    categories: list[str] = Field(default_factory=list)
    author: str | None = None
    content_type: str | None = None

    extra_headers: dict[str, str] = Field(default_factory=dict)
    # original text of recognized header values that differ from the
    # canonical rendering; None marks a key the file left out
    header_text: dict[str, str | None] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        """Short identifier for log and console output."""
        return self.edit_url or self.custom_path or self.title or "<untitled>"
