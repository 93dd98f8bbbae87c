"""AtomPub client for a blog's entry collection.

Speaks the Atom Publishing Protocol as Hatena Blog implements it: the
collection URL lists entries (paged with ``<link rel="next">``) and accepts
new ones via POST; each entry's ``rel="edit"`` link is its member URL for
GET and PUT.  Draft state travels in ``<app:control><app:draft>`` and the
custom path in the ``hatenablog:custom-url`` extension element.

This client uses urllib.request and xml.etree; no retries are attempted.
"""

from __future__ import annotations

import base64
import contextlib
import hashlib
import logging
import os
import urllib.request
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from datetime import UTC, datetime
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin

from blogsync.config import BlogConfig
from blogsync.errors import AuthError, ConflictError, ProtocolError, TransportError
from blogsync.models import Entry

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
APP_NS = "http://www.w3.org/2007/app"
HATENA_NS = "http://www.hatena.ne.jp/info/xmlns#hatenablog"
NS = {"atom": ATOM_NS, "app": APP_NS, "hatenablog": HATENA_NS}

ENTRY_CONTENT_TYPE = "application/atom+xml;type=entry;charset=utf-8"
DEFAULT_BODY_TYPE = "text/plain"

ET.register_namespace("", ATOM_NS)
ET.register_namespace("app", APP_NS)
ET.register_namespace("hatenablog", HATENA_NS)


# ---------------------------------------------------------------------------
# Wire codec
# ---------------------------------------------------------------------------


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ProtocolError(f"Invalid Atom timestamp: {value!r}") from exc


def entry_from_element(element: ET.Element) -> Entry:
    """Convert an ``<atom:entry>`` element into an Entry."""
    edit_url = None
    alternate_url = None
    for link in element.findall("atom:link", NS):
        rel = link.get("rel", "alternate")
        href = link.get("href")
        if rel == "edit" and href:
            edit_url = href
        elif rel == "alternate" and href and link.get("type", "text/html") == "text/html":
            alternate_url = href

    content_el = element.find("atom:content", NS)
    updated = element.findtext("atom:updated", default=None, namespaces=NS)
    draft = element.findtext("app:control/app:draft", default="no", namespaces=NS)

    return Entry(
        title=" ".join((element.findtext("atom:title", default="", namespaces=NS)).split()),
        edit_url=edit_url,
        alternate_url=alternate_url,
        custom_path=(element.findtext("hatenablog:custom-url", default="", namespaces=NS).strip() or None),
        content=(content_el.text or "") if content_el is not None else "",
        content_type=content_el.get("type") if content_el is not None else None,
        is_draft=draft.strip().lower() == "yes",
        last_modified=_parse_timestamp(updated),
        published=_parse_timestamp(element.findtext("atom:published", default=None, namespaces=NS)),
        categories=[c.get("term", "") for c in element.findall("atom:category", NS) if c.get("term")],
        author=(element.findtext("atom:author/atom:name", default="", namespaces=NS).strip() or None),
    )


def entry_to_xml(entry: Entry) -> bytes:
    """Serialize an Entry as an Atom entry document for POST or PUT."""
    root = ET.Element(f"{{{ATOM_NS}}}entry")
    ET.SubElement(root, f"{{{ATOM_NS}}}title").text = entry.title

    if entry.author:
        author_el = ET.SubElement(root, f"{{{ATOM_NS}}}author")
        ET.SubElement(author_el, f"{{{ATOM_NS}}}name").text = entry.author

    content_el = ET.SubElement(root, f"{{{ATOM_NS}}}content")
    content_el.set("type", entry.content_type or DEFAULT_BODY_TYPE)
    content_el.text = entry.content

    if entry.last_modified:
        ET.SubElement(root, f"{{{ATOM_NS}}}updated").text = entry.last_modified.isoformat()
    if entry.published:
        ET.SubElement(root, f"{{{ATOM_NS}}}published").text = entry.published.isoformat()

    for term in entry.categories:
        ET.SubElement(root, f"{{{ATOM_NS}}}category", attrib={"term": term})

    control = ET.SubElement(root, f"{{{APP_NS}}}control")
    ET.SubElement(control, f"{{{APP_NS}}}draft").text = "yes" if entry.is_draft else "no"

    if entry.custom_path:
        ET.SubElement(root, f"{{{HATENA_NS}}}custom-url").text = entry.custom_path

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _parse_document(data: bytes, expected: str) -> ET.Element:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ProtocolError(f"Malformed Atom XML: {exc}") from exc
    if root.tag != f"{{{ATOM_NS}}}{expected}":
        raise ProtocolError(f"Expected an Atom {expected}, got <{root.tag}>")
    return root


def parse_entry(data: bytes) -> Entry:
    """Parse a single-entry Atom document."""
    return entry_from_element(_parse_document(data, "entry"))


def parse_feed(data: bytes, base_url: str = "") -> tuple[list[Entry], str | None]:
    """Parse one collection page.

    Returns:
        The page's entries in document order and the absolute URL of the
        next page, or ``None`` on the last page.
    """
    root = _parse_document(data, "feed")
    entries = [entry_from_element(el) for el in root.findall("atom:entry", NS)]
    next_url = None
    for link in root.findall("atom:link", NS):
        if link.get("rel") == "next" and link.get("href"):
            next_url = urljoin(base_url, link.get("href", ""))
            break
    return entries, next_url


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def basic_auth_header(username: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def wsse_header(
    username: str,
    password: str,
    *,
    nonce: bytes | None = None,
    created: str | None = None,
) -> dict[str, str]:
    """Build an ``X-WSSE`` UsernameToken header.

    ``PasswordDigest`` is ``base64(sha1(nonce + created + password))``.
    """
    nonce = nonce if nonce is not None else os.urandom(20)
    created = created or datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    digest = hashlib.sha1(nonce + created.encode() + password.encode()).digest()
    token = (
        f'UsernameToken Username="{username}", '
        f'PasswordDigest="{base64.b64encode(digest).decode("ascii")}", '
        f'Nonce="{base64.b64encode(nonce).decode("ascii")}", '
        f'Created="{created}"'
    )
    return {"X-WSSE": token}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AtomPubClient:
    """Authenticated AtomPub client bound to one blog's credentials."""

    def __init__(self, config: BlogConfig, *, timeout: float = 30) -> None:
        self._config = config
        self._timeout = timeout

    def iter_pages(self, url: str) -> Iterator[list[Entry]]:
        """Yield the entries of each collection page, following ``next`` links."""
        visited: set[str] = set()
        next_url: str | None = url
        while next_url and next_url not in visited:
            visited.add(next_url)
            logger.debug("GET collection page %s", next_url)
            entries, following = parse_feed(self._request("GET", next_url), base_url=next_url)
            yield entries
            if following in visited:
                logger.warning("Collection page %s links back to %s; stopping", next_url, following)
            next_url = following

    def fetch_collection(self, url: str) -> list[Entry]:
        """Every entry in the collection, in server order, across all pages.

        GET {collection_url}, then each ``rel="next"`` page.
        """
        entries: list[Entry] = []
        for page in self.iter_pages(url):
            entries.extend(page)
        logger.info("Fetched %d entries from %s", len(entries), url)
        return entries

    def get_entry(self, edit_url: str) -> Entry:
        """GET {edit_url}"""
        return parse_entry(self._request("GET", edit_url))

    def create_entry(self, collection_url: str, entry: Entry) -> Entry:
        """POST {collection_url}

        Returns:
            The entry as the server stored it, with its edit and
            alternate URLs assigned.
        """
        created = parse_entry(self._request("POST", collection_url, body=entry_to_xml(entry)))
        logger.info("Created entry %s", created.edit_url)
        return created

    def update_entry(self, edit_url: str, entry: Entry) -> Entry:
        """PUT {edit_url}, replacing the whole entry.

        Raises:
            ConflictError: If the server rejects the write as stale.
        """
        updated = parse_entry(self._request("PUT", edit_url, body=entry_to_xml(entry)))
        logger.info("Updated entry %s", edit_url)
        return updated

    def _auth_headers(self) -> dict[str, str]:
        if self._config.auth == "wsse":
            return wsse_header(self._config.username, self._config.password)
        return basic_auth_header(self._config.username, self._config.password)

    def _request(self, method: str, url: str, *, body: bytes | None = None) -> bytes:
        """Make an authenticated request and return the raw response body.

        Raises:
            AuthError: On 401 or 403.
            ConflictError: On 409 or 412.
            ProtocolError: On any other HTTP error status.
            TransportError: If the URL is unusable or the server cannot be reached.
        """
        headers = {"Accept": "application/atom+xml", **self._auth_headers()}
        if body is not None:
            headers["Content-Type"] = ENTRY_CONTENT_TYPE

        try:
            req = urllib.request.Request(url, data=body, headers=headers, method=method)
        except ValueError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                return resp.read()
        except HTTPError as exc:
            resp_body = ""
            with contextlib.suppress(Exception):
                resp_body = exc.read().decode("utf-8", errors="replace")
            message = f"{method} {url} failed: {exc.code} {exc.reason}"
            if exc.code in (401, 403):
                raise AuthError(message, status=exc.code) from exc
            if exc.code in (409, 412):
                raise ConflictError(message, status=exc.code) from exc
            raise ProtocolError(message, status=exc.code, body=resp_body) from exc
        except URLError as exc:
            raise TransportError(f"{method} {url} failed: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
