"""HTML metadata extraction: title, description, icons and Open Graph tags."""

from __future__ import annotations

from html.parser import HTMLParser
from typing import Dict, List

ICON_RELS = ("apple-touch-icon", "icon")
OG_PREFIX = "og:"


class _HeadScanner(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title: str | None = None
        self.metas: List[Dict[str, str]] = []
        self.links: List[Dict[str, str]] = []
        self._in_title = False
        self._title_parts: List[str] = []

    def handle_starttag(self, tag, attrs):
        # Title content is raw text, markup inside it included
        if self._in_title:
            self._title_parts.append(self.get_starttag_text() or "")
            return
        if tag == "title":
            if self.title is None:
                self._in_title = True
        elif tag == "meta":
            self.metas.append(_first_attrs(attrs))
        elif tag == "link":
            self.links.append(_first_attrs(attrs))

    def handle_startendtag(self, tag, attrs):
        if self._in_title:
            self._title_parts.append(self.get_starttag_text() or "")
            return
        self.handle_starttag(tag, attrs)
        self.handle_endtag(tag)

    def handle_endtag(self, tag):
        if not self._in_title:
            return
        if tag == "title":
            self._in_title = False
            self.title = "".join(self._title_parts)
        else:
            self._title_parts.append(f"</{tag}>")

    def handle_data(self, data):
        if self._in_title:
            self._title_parts.append(data)

    def handle_comment(self, data):
        if self._in_title:
            self._title_parts.append(f"<!--{data}-->")

    def close(self):
        super().close()
        # Unterminated <title> still counts
        if self._in_title:
            self._in_title = False
            self.title = "".join(self._title_parts)


def _first_attrs(attrs) -> Dict[str, str]:
    # The first occurrence of a duplicated attribute wins, as in a DOM
    out: Dict[str, str] = {}
    for name, value in attrs:
        out.setdefault(name, value or "")
    return out


def extract_metadata(html: str) -> Dict[str, str]:
    """
    Pull page metadata out of an HTML document.

    Keys, in order of assignment:
        title             text of the first <title>
        description       <meta name="description" content>
        apple-touch-icon  <link rel="apple-touch-icon" href>
        icon              <link rel="icon" href>
        og:*              <meta name|property="og:..." content>

    Names and rels are compared lowercased. When a key repeats, the last
    element wins. Missing attributes read as "".
    """
    scanner = _HeadScanner()
    scanner.feed(html)
    scanner.close()

    ret: Dict[str, str] = {}

    if scanner.title is not None:
        ret["title"] = scanner.title

    for meta in scanner.metas:
        if meta.get("name", "").lower() == "description":
            ret["description"] = meta.get("content", "")

    for link in scanner.links:
        rel = link.get("rel", "").lower()
        if rel in ICON_RELS:
            ret[rel] = link.get("href", "")

    for meta in scanner.metas:
        key = meta.get("name", "") or meta.get("property", "")
        key = key.lower()
        if key.startswith(OG_PREFIX):
            ret[key] = meta.get("content", "")

    return ret
