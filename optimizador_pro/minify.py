"""CSS and JavaScript minification for combined artifacts."""

from __future__ import annotations

import re
from urllib.parse import urljoin

import rcssmin
import rjsmin

CSS_URL_PATTERN = re.compile(r"url\(\s*([\"']?)([^\"')]+)\1\s*\)", re.IGNORECASE)
CSS_IMPORT_PATTERN = re.compile(r"@import\s+([\"'])([^\"']+)\1", re.IGNORECASE)

_UNTOUCHED_PREFIXES = ("data:", "/", "#", "about:", "javascript:")


def minify_css(css: str) -> str:
    """Strip comments and insignificant whitespace from CSS."""
    return rcssmin.cssmin(css).strip()


def minify_js(js: str) -> str:
    """Strip comments and insignificant whitespace from JavaScript."""
    return rjsmin.jsmin(js).strip()


def _is_relative_reference(reference: str) -> bool:
    reference = reference.strip()
    if not reference or reference.startswith(_UNTOUCHED_PREFIXES):
        return False
    return re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", reference) is None


def rebase_css_urls(css: str, source_url: str) -> str:
    """Rewrite relative ``url()`` and ``@import`` targets against ``source_url``.

    Combined stylesheets are served from the cache directory, so relative
    references have to be anchored to the stylesheet they came from.
    """
    base = source_url.split("?", 1)[0].split("#", 1)[0]

    def _url(match: re.Match) -> str:
        quote, reference = match.group(1), match.group(2).strip()
        if not _is_relative_reference(reference):
            return match.group(0)
        return f"url({quote}{urljoin(base, reference)}{quote})"

    def _import(match: re.Match) -> str:
        quote, reference = match.group(1), match.group(2).strip()
        if not _is_relative_reference(reference):
            return match.group(0)
        return f"@import {quote}{urljoin(base, reference)}{quote}"

    css = CSS_URL_PATTERN.sub(_url, css)
    return CSS_IMPORT_PATTERN.sub(_import, css)
