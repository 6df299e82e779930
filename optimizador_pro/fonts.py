"""Google Fonts request merging and non-blocking loading."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set
from urllib.parse import parse_qs, quote, urlsplit

from .config import OptimizerSettings
from .exclusions import is_excluded
from .markup import (
    LINK_PATTERN,
    has_head_close,
    insert_after_head_open,
    insert_before_head_close,
    noscript_spans,
    rel_tokens,
    remove_fragments,
    tag_attributes,
)
from .models import FontFamilySpec, GoogleFontLink
from .utils import escape_attribute

logger = logging.getLogger("optimizador_pro")

GOOGLE_FONTS_HOST = "fonts.googleapis.com"
CSS2_ENDPOINT = "https://fonts.googleapis.com/css2"
DEFAULT_WEIGHT = "400"
NAMED_WEIGHTS = {
    "thin": "100",
    "extralight": "200",
    "light": "300",
    "regular": "400",
    "normal": "400",
    "italic": "400",
    "medium": "500",
    "semibold": "600",
    "bold": "700",
    "extrabold": "800",
    "black": "900",
}
NUMERIC_WEIGHT_PATTERN = re.compile(r"^(\d{3})")

PRECONNECT_HINTS = (
    ("https://fonts.googleapis.com", '<link rel="preconnect" href="https://fonts.googleapis.com">'),
    ("https://fonts.gstatic.com", '<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>'),
)


def _normalize_weight(token: str) -> Optional[str]:
    token = token.strip().lower()
    if not token:
        return None
    match = NUMERIC_WEIGHT_PATTERN.match(token)
    if match:
        return match.group(1)
    if token in NAMED_WEIGHTS:
        return NAMED_WEIGHTS[token]
    # 400italic, 700i, bolditalic
    for suffix in ("italic", "i"):
        if token.endswith(suffix):
            return _normalize_weight(token[: -len(suffix)]) or DEFAULT_WEIGHT
    return None


def _axis_weights(axes: str, values: str) -> Set[str]:
    names = [name.strip().lower() for name in axes.split(",")]
    if "wght" not in names:
        return set()
    position = names.index("wght")
    weights: Set[str] = set()
    for row in values.split(";"):
        cells = row.split(",")
        if position < len(cells):
            weight = _normalize_weight(cells[position])
            if weight:
                weights.add(weight)
    return weights


def parse_font_family(value: str) -> Optional[FontFamilySpec]:
    """Parse one ``family`` value such as ``Open Sans:wght@300;400``.

    Old (``Roboto:300,700italic``) and css2 (``Roboto:ital,wght@0,400;1,700``)
    notations are both accepted; only the weights survive.
    """
    name, _, variants = value.partition(":")
    name = name.replace("+", " ").strip()
    if not name:
        return None

    weights: Set[str] = set()
    if "@" in variants:
        axes, _, values = variants.partition("@")
        weights = _axis_weights(axes, values)
    elif variants:
        for token in variants.split(","):
            weight = _normalize_weight(token)
            if weight:
                weights.add(weight)
    return FontFamilySpec(name=name, weights=weights or {DEFAULT_WEIGHT})


def parse_font_url(url: str) -> List[FontFamilySpec]:
    query = urlsplit(url).query
    if not query:
        return []
    families: List[FontFamilySpec] = []
    for value in parse_qs(query).get("family", []):
        for chunk in value.split("|"):
            family = parse_font_family(chunk)
            if family is not None:
                families.append(family)
    return families


def merge_families(links: List[GoogleFontLink]) -> List[FontFamilySpec]:
    merged: Dict[str, Set[str]] = {}
    for link in links:
        for family in link.families:
            merged.setdefault(family.name, set()).update(family.weights)
    return [FontFamilySpec(name=name, weights=weights) for name, weights in merged.items()]


def build_combined_url(families: List[FontFamilySpec]) -> str:
    parts = []
    for family in families:
        weights = ";".join(sorted(family.weights, key=int))
        parts.append(f"family={quote(family.name)}:wght@{weights}")
    return f"{CSS2_ENDPOINT}?{'&'.join(parts)}&display=swap"


def add_preconnect_hints(html: str) -> str:
    """Insert the Google Fonts preconnect links after ``<head>`` when missing."""
    present = set()
    for match in LINK_PATTERN.finditer(html):
        attributes = tag_attributes(match.group(0))
        if "preconnect" in rel_tokens(attributes):
            present.add(attributes.get("href", "").strip().rstrip("/"))
    missing = [tag for origin, tag in PRECONNECT_HINTS if origin not in present]
    if not missing:
        return html
    return insert_after_head_open(html, "\n" + "\n".join(missing))


class GoogleFontsOptimizer:
    def __init__(self, settings: OptimizerSettings) -> None:
        self.settings = settings

    def extract_google_fonts(self, html: str) -> List[GoogleFontLink]:
        spans = noscript_spans(html)
        links: List[GoogleFontLink] = []
        for match in LINK_PATTERN.finditer(html):
            if any(match.start() in span for span in spans):
                continue
            tag = match.group(0)
            attributes = tag_attributes(tag)
            href = attributes.get("href", "").strip()
            if GOOGLE_FONTS_HOST not in href or "stylesheet" not in rel_tokens(attributes):
                continue
            if is_excluded(href, self.settings.google_fonts_exclusions):
                logger.debug("Google Fonts link excluded: %s", href)
                continue
            families = parse_font_url(href)
            if families:
                links.append(GoogleFontLink(tag=tag, url=href, families=families))
        return links

    def optimize(self, html: str) -> str:
        links = self.extract_google_fonts(html)
        if links and has_head_close(html):
            if self.settings.google_fonts_async_loading:
                html = self.load_async(html, links)
            else:
                html = self.combine(html, links)
        return add_preconnect_hints(html)

    def combine(self, html: str, links: List[GoogleFontLink]) -> str:
        combined_url = build_combined_url(merge_families(links))
        if len(links) == 1 and links[0].url == combined_url:
            return html
        html = remove_fragments(html, [link.tag for link in links])
        tag = f'<link rel="stylesheet" href="{escape_attribute(combined_url)}" media="all">'
        logger.debug("Combined %d Google Fonts links", len(links))
        return insert_before_head_close(html, tag)

    def load_async(self, html: str, links: List[GoogleFontLink]) -> str:
        html = remove_fragments(html, [link.tag for link in links])
        pairs = []
        for url in dict.fromkeys(link.url for link in links):
            href = escape_attribute(url)
            pairs.append(
                f'<link rel="preload" href="{href}" as="style" onload="this.rel=\'stylesheet\'">\n'
                f'<noscript><link rel="stylesheet" href="{href}"></noscript>'
            )
        return insert_before_head_close(html, "\n".join(pairs))
