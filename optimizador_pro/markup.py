"""Bounded pattern matching over page markup.

Assets are located with regular expressions over tag fragments rather than
a document tree. Each matched fragment is kept verbatim so it can later be
removed with a plain string replacement; BeautifulSoup is only asked to read
the attributes of one fragment at a time.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, Iterator, List

from bs4 import BeautifulSoup

from .models import AssetReference

LINK_PATTERN = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
HEAD_PATTERN = re.compile(r"<head\b[^>]*>(.*?)</head\s*>", re.IGNORECASE | re.DOTALL)
STYLE_PATTERN = re.compile(r"<style\b[^>]*>(.*?)</style\s*>", re.IGNORECASE | re.DOTALL)
SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>(.*?)</script\s*>", re.IGNORECASE | re.DOTALL)
EMPTY_SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>\s*</script\s*>", re.IGNORECASE)
OPENING_TAG_PATTERN = re.compile(r"<[a-zA-Z][^>]*>")
NOSCRIPT_PATTERN = re.compile(r"<noscript\b[^>]*>.*?</noscript\s*>", re.IGNORECASE | re.DOTALL)

HEAD_OPEN_PATTERN = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
HEAD_CLOSE_PATTERN = re.compile(r"</head\s*>", re.IGNORECASE)
BODY_CLOSE_PATTERN = re.compile(r"</body\s*>", re.IGNORECASE)

MIN_INLINE_STYLE_CHARS = 50

_CRITICAL_STYLE_TAG_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"id=[\"']wp-custom-css[\"']",
        r"id=[\"']customizer-css[\"']",
        r"id=[\"']optimizador-pro-critical-css[\"']",
        r"data-ampdevmode",
        r"data-no-optimize",
    )
]
_CRITICAL_STYLE_CONTENT_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"@media\s+print",
        r"@keyframes",
        r"body\s*\{[^}]*display\s*:\s*none",
    )
]


def opening_tag(fragment: str) -> str:
    match = OPENING_TAG_PATTERN.search(fragment)
    return match.group(0) if match else ""


def tag_attributes(fragment: str) -> Dict[str, str]:
    """Return the attributes of the first element in ``fragment``.

    Names are lowercased, values entity-decoded and boolean attributes map
    to an empty string. Unparseable input gives an empty mapping.
    """
    tag = opening_tag(fragment)
    if not tag:
        return {}
    soup = BeautifulSoup(tag, "html.parser", multi_valued_attributes=None)
    element = soup.find(True)
    if element is None:
        return {}
    return {
        name.lower(): ("" if value is None else str(value))
        for name, value in element.attrs.items()
    }


def rel_tokens(attributes: Dict[str, str]) -> List[str]:
    return attributes.get("rel", "").lower().split()


def extract_stylesheet_links(html: str) -> List[AssetReference]:
    """Every ``<link rel="stylesheet" href=...>`` in document order."""
    links: List[AssetReference] = []
    for match in LINK_PATTERN.finditer(html):
        tag = match.group(0)
        attributes = tag_attributes(tag)
        href = attributes.get("href", "").strip()
        if "stylesheet" in rel_tokens(attributes) and href:
            links.append(AssetReference(tag=tag, url=href))
    return links


def should_exclude_inline_style(tag: str, content: str) -> bool:
    if any(pattern.search(opening_tag(tag)) for pattern in _CRITICAL_STYLE_TAG_PATTERNS):
        return True
    if len(content.strip()) < MIN_INLINE_STYLE_CHARS:
        return True
    return any(pattern.search(content) for pattern in _CRITICAL_STYLE_CONTENT_PATTERNS)


def extract_inline_styles(html: str) -> List[AssetReference]:
    """``<style>`` blocks in the document head that are safe to relocate."""
    head = HEAD_PATTERN.search(html)
    if not head:
        return []
    styles: List[AssetReference] = []
    for match in STYLE_PATTERN.finditer(head.group(1)):
        tag, content = match.group(0), match.group(1)
        if not content.strip():
            continue
        if should_exclude_inline_style(tag, content):
            continue
        styles.append(AssetReference(tag=tag, content=content))
    return styles


def extract_scripts(html: str) -> List[AssetReference]:
    """``<script src=...></script>`` pairs with an empty body."""
    scripts: List[AssetReference] = []
    for match in EMPTY_SCRIPT_PATTERN.finditer(html):
        tag = match.group(0)
        src = tag_attributes(tag).get("src", "").strip()
        if src:
            scripts.append(AssetReference(tag=tag, url=src))
    return scripts


def iter_inline_scripts(html: str) -> Iterator[str]:
    """Bodies of script blocks that do not load an external file."""
    for match in SCRIPT_PATTERN.finditer(html):
        if "src" in tag_attributes(match.group(0)):
            continue
        body = match.group(1)
        if body.strip():
            yield body


def noscript_spans(html: str) -> List[range]:
    return [range(match.start(), match.end()) for match in NOSCRIPT_PATTERN.finditer(html)]


def sub_outside_noscript(
    pattern: re.Pattern, replace: Callable[[re.Match], str], html: str
) -> str:
    """Like ``pattern.sub`` but leaves matches inside ``<noscript>`` alone."""
    spans = noscript_spans(html)
    if not spans:
        return pattern.sub(replace, html)

    def _guarded(match: re.Match) -> str:
        if any(match.start() in span for span in spans):
            return match.group(0)
        return replace(match)

    return pattern.sub(_guarded, html)


def remove_fragments(html: str, fragments: Iterable[str]) -> str:
    for fragment in dict.fromkeys(fragments):
        if fragment:
            html = html.replace(fragment, "")
    return html


def has_head_close(html: str) -> bool:
    return HEAD_CLOSE_PATTERN.search(html) is not None


def has_body_close(html: str) -> bool:
    return BODY_CLOSE_PATTERN.search(html) is not None


def insert_before_head_close(html: str, fragment: str) -> str:
    """Insert ``fragment`` before the first ``</head>``."""
    match = HEAD_CLOSE_PATTERN.search(html)
    if not match:
        return html
    return html[: match.start()] + fragment + "\n" + html[match.start():]


def insert_after_head_open(html: str, fragment: str) -> str:
    """Insert ``fragment`` right after the opening ``<head>`` tag."""
    match = HEAD_OPEN_PATTERN.search(html)
    if not match:
        return html
    return html[: match.end()] + fragment + html[match.end():]


def insert_before_body_close(html: str, fragment: str) -> str:
    """Insert ``fragment`` before the last ``</body>``."""
    last = None
    for last in BODY_CLOSE_PATTERN.finditer(html):
        pass
    if last is None:
        return html
    return html[: last.start()] + fragment + "\n" + html[last.start():]
