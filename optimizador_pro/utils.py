"""Utility helpers for hashing and attribute escaping."""

from __future__ import annotations

import hashlib
import html


def md5_hex(value: str) -> str:
    """Hex md5 digest of a UTF-8 string."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def escape_attribute(value: str) -> str:
    """Escape a value for a double- or single-quoted HTML attribute."""
    return html.escape(value, quote=True)
