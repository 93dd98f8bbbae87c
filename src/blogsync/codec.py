"""Local file format for entries.

A local entry file is a header of ``Key: value`` lines, one blank line,
then the body verbatim::

    Title: Hello again
    Date: 2024-05-01T09:30:00+09:00
    URL: https://example.hatenablog.com/entry/2024/05/01/093000
    EditURL: https://blog.hatena.ne.jp/alice/example.hatenablog.com/atom/entry/1234
    IsDraft: no
    ContentHash: sha256:9f86d08...

    Body text starts here.

Keys the codec does not know are kept in ``Entry.extra_headers`` and
written back after the known ones.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime

from blogsync.errors import FormatError
from blogsync.models import Entry

logger = logging.getLogger(__name__)

HEADER_ORDER = ("Title", "Date", "URL", "EditURL", "CustomPath", "IsDraft", "ContentHash")
_ATTRIBUTES = {
    "Title": "title",
    "Date": "last_modified",
    "URL": "alternate_url",
    "EditURL": "edit_url",
    "CustomPath": "custom_path",
    "IsDraft": "is_draft",
    "ContentHash": "content_hash",
}

_HEADER_LINE = re.compile(r"^([A-Za-z][A-Za-z0-9_-]*):(.*)$")
_TRUE_VALUES = {"yes", "true"}
_FALSE_VALUES = {"no", "false"}


def content_hash(content: str) -> str:
    """Fingerprint of an entry body, used as the conflict-detection baseline."""
    return "sha256:" + hashlib.sha256(content.encode("utf-8")).hexdigest()


def _split_header(text: str) -> tuple[list[str], str]:
    """Split file text into raw header lines and the untouched body."""
    header: list[str] = []
    pos = 0
    while True:
        end = text.find("\n", pos)
        if end == -1:
            raise FormatError("Unterminated header: expected a blank line after the metadata block")
        line = text[pos:end].rstrip("\r")
        if line == "":
            return header, text[end + 1 :]
        header.append(line)
        pos = end + 1


def _parse_header(lines: list[str]) -> dict[str, str]:
    """Map each header key to the text after its colon, separator space included."""
    fields: dict[str, str] = {}
    for lineno, line in enumerate(lines, start=1):
        match = _HEADER_LINE.match(line)
        if match is None:
            raise FormatError(f"Malformed header line {lineno}: {line!r}")
        key, raw = match.group(1), match.group(2)
        if key in fields:
            raise FormatError(f"Duplicate header key {key!r} on line {lineno}")
        fields[key] = raw
    return fields


def _unpad(raw: str) -> str:
    # only the single space after the colon is syntax
    return raw[1:] if raw.startswith(" ") else raw


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise FormatError(f"{key} must be yes or no, got {value!r}")


def _parse_datetime(key: str, value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise FormatError(f"{key} is not an ISO 8601 timestamp: {value!r}") from exc


def _field_value(key: str, raw: str) -> object:
    """Typed value of a recognized header from the text after its colon."""
    if key == "Title":
        return _unpad(raw)
    text = raw.strip()
    if key == "Date":
        return _parse_datetime(key, text)
    if key == "IsDraft":
        return _parse_bool(key, text) if text else False
    return text or None


def _canonical_text(key: str, value: object) -> str | None:
    """Text after the colon that ``encode`` writes for *value*, or None to omit the key."""
    if key == "Title":
        return f" {value}" if value else ""
    if key == "IsDraft":
        return " yes" if value else " no"
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return f" {value.isoformat()}"
    return f" {value}"


def _entry_from_fields(fields: dict[str, str], content: str, *, keep_spelling: bool) -> Entry:
    values = {key: _field_value(key, fields.get(key, "")) for key in HEADER_ORDER}
    spelling: dict[str, str | None] = {}
    if keep_spelling:
        for key in HEADER_ORDER:
            if key not in fields:
                if _canonical_text(key, values[key]) is not None:
                    spelling[key] = None
            elif fields[key] != _canonical_text(key, values[key]):
                spelling[key] = fields[key]
    return Entry(
        content=content,
        extra_headers={k: _unpad(v) for k, v in fields.items() if k not in HEADER_ORDER},
        header_text=spelling,
        **{_ATTRIBUTES[key]: value for key, value in values.items()},
    )


def decode(text: str) -> Entry:
    """Parse the contents of a local entry file.

    Recognized values written differently from how ``encode`` would write
    them (``IsDraft: true``, a ``Z`` offset, a missing ``IsDraft``) are
    remembered in ``Entry.header_text`` so the file encodes back unchanged.

    Raises:
        FormatError: If the header is unterminated, contains a line that is
            not ``key: value``, repeats a key, or lacks ``Title``.
    """
    header_lines, body = _split_header(text)
    fields = _parse_header(header_lines)
    if "Title" not in fields:
        raise FormatError("Missing required header key: Title")
    return _entry_from_fields(fields, body, keep_spelling=True)


def decode_input(text: str) -> Entry:
    """Parse free-form input for a new post.

    Text that opens with a well-formed header naming at least one known key
    is decoded like a local file, except that ``Title`` is optional.
    Anything else is taken as the body in full.
    """
    try:
        header_lines, body = _split_header(text)
        fields = _parse_header(header_lines)
    except FormatError:
        return Entry(content=text)
    if not header_lines or not any(key in HEADER_ORDER for key in fields):
        return Entry(content=text)
    return _entry_from_fields(fields, body, keep_spelling=False)


def _header_line(key: str, text: str) -> str:
    if "\n" in text or "\r" in text:
        raise FormatError(f"{key} cannot span multiple lines")
    return f"{key}:{text}"


def _recognized_text(entry: Entry, key: str) -> str | None:
    current = getattr(entry, _ATTRIBUTES[key])
    canonical = _canonical_text(key, current)
    if key not in entry.header_text:
        return canonical
    original = entry.header_text[key]
    if original is None:
        # left out of the file; stays out while the value is still the default
        return None if current == _field_value(key, "") else canonical
    return original if _field_value(key, original) == current else canonical


def encode(entry: Entry) -> str:
    """Render an entry as local file text, header keys in a fixed order."""
    lines = []
    for key in HEADER_ORDER:
        text = _recognized_text(entry, key)
        if text is not None:
            lines.append(_header_line(key, text))
    for key, value in entry.extra_headers.items():
        if key in HEADER_ORDER or not _HEADER_LINE.match(f"{key}:"):
            raise FormatError(f"Invalid extra header key {key!r}")
        lines.append(_header_line(key, f" {value}" if value else ""))
    return "\n".join(lines) + "\n\n" + entry.content
