"""Parse repository entries out of a GitHub profile "repositories" tab."""

from __future__ import annotations

import re
from dataclasses import dataclass
from html.parser import HTMLParser

# Account-namespace paths that are never repositories
EXCLUDED_SEGMENTS = frozenset({"issues", "pulls", "wiki", "actions", "security", "settings"})


@dataclass
class ScrapedRepository:
    """Fields recoverable from the profile page for one repository."""

    name: str
    description: str = ""
    language: str = ""
    updated_at: str = ""


@dataclass
class _Anchor:
    name: str
    in_heading: bool


def _has_class(attrs: dict[str, str], *needles: str) -> bool:
    classes = attrs.get("class", "")
    return any(needle in classes for needle in needles)


class _RepositoryListParser(HTMLParser):
    """Collect repository anchors and the details that follow each one.

    Description, language and update time are attributed to the most recent
    repository anchor inside a heading, which matches the list layout where
    each item is ``h3 > a`` followed by its details.
    """

    def __init__(self, account: str) -> None:
        super().__init__(convert_charrefs=True)
        self._href_re = re.compile(rf"^/{re.escape(account)}/([^/?#]+)/?$", re.IGNORECASE)
        self.anchors: list[_Anchor] = []
        self.details: dict[str, ScrapedRepository] = {}
        self._heading_depth = 0
        self._current: ScrapedRepository | None = None
        self._capture: str | None = None
        self._buffer: list[str] = []

    def handle_starttag(self, tag: str, attrs_list: list[tuple[str, str | None]]) -> None:
        attrs = {k: v or "" for k, v in attrs_list}
        if tag == "h3":
            self._heading_depth += 1
        elif tag == "a":
            self._handle_anchor(attrs.get("href", ""))
        elif self._current is not None and self._capture is None:
            if tag == "p" and (
                _has_class(attrs, "description") or attrs.get("itemprop") == "description"
            ):
                self._start_capture("description")
            elif tag == "span" and (
                attrs.get("itemprop") == "programmingLanguage" or _has_class(attrs, "language")
            ):
                self._start_capture("language")
            elif tag == "relative-time" and attrs.get("datetime") and not self._current.updated_at:
                self._current.updated_at = attrs["datetime"]

    def handle_endtag(self, tag: str) -> None:
        if tag == "h3" and self._heading_depth:
            self._heading_depth -= 1
        elif self._capture == "description" and tag == "p":
            self._finish_capture()
        elif self._capture == "language" and tag == "span":
            self._finish_capture()

    def handle_data(self, data: str) -> None:
        if self._capture is not None:
            self._buffer.append(data)

    def _handle_anchor(self, href: str) -> None:
        match = self._href_re.match(href)
        if not match:
            return
        name = match.group(1)
        if name.lower() in EXCLUDED_SEGMENTS:
            return
        in_heading = self._heading_depth > 0
        self.anchors.append(_Anchor(name=name, in_heading=in_heading))
        if in_heading:
            self._current = self.details.setdefault(name, ScrapedRepository(name=name))

    def _start_capture(self, field_name: str) -> None:
        self._capture = field_name
        self._buffer = []

    def _finish_capture(self) -> None:
        text = " ".join("".join(self._buffer).split())
        if self._current is not None and self._capture and not getattr(self._current, self._capture):
            setattr(self._current, self._capture, text)
        self._capture = None
        self._buffer = []


def parse_repository_list(html: str, account: str) -> list[ScrapedRepository]:
    """Extract repositories listed for ``account`` from profile page HTML.

    Anchors inside headings are preferred; when the layout has none, any
    anchor pointing at ``/{account}/{name}`` is used. Names are de-duplicated
    within the page, keeping first-seen order.
    """
    parser = _RepositoryListParser(account)
    parser.feed(html)
    parser.close()

    heading_anchors = [a for a in parser.anchors if a.in_heading]
    anchors = heading_anchors or parser.anchors

    seen: set[str] = set()
    repositories: list[ScrapedRepository] = []
    for anchor in anchors:
        key = anchor.name.lower()
        if key in seen:
            continue
        seen.add(key)
        repositories.append(parser.details.get(anchor.name, ScrapedRepository(name=anchor.name)))
    return repositories
