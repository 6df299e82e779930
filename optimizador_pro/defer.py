"""Adds ``defer`` to local external scripts."""

from __future__ import annotations

import logging
import re

from .config import DEFER_DEFAULT_EXCLUSIONS, OptimizerSettings
from .exclusions import is_excluded, merge_patterns
from .markup import tag_attributes
from .paths import UrlResolver

logger = logging.getLogger("optimizador_pro")

SCRIPT_OPEN_PATTERN = re.compile(r"<script\b[^>]*>", re.IGNORECASE)
SRC_ATTRIBUTE_PATTERN = re.compile(r"(?<![\w-])(src\s*=)", re.IGNORECASE)

CRITICAL_SCRIPTS = (
    "jquery",
    "jquery-core",
    "jquery-migrate",
    "wp-includes/js/jquery",
    "wp-admin",
    "customize-controls",
    "admin-bar",
)


class DeferJSOptimizer:
    def __init__(self, settings: OptimizerSettings, resolver: UrlResolver) -> None:
        self.settings = settings
        self.resolver = resolver
        self.exclusions = merge_patterns(
            settings.defer_js_exclusions, DEFER_DEFAULT_EXCLUSIONS
        )

    def optimize(self, html: str) -> str:
        return SCRIPT_OPEN_PATTERN.sub(lambda match: self.defer_tag(match.group(0)), html)

    def defer_tag(self, tag: str) -> str:
        """Return ``tag`` with ``defer`` before its ``src``, or unchanged."""
        attributes = tag_attributes(tag)
        src = attributes.get("src", "").strip()
        if not src:
            return tag
        if "defer" in attributes or "async" in attributes:
            return tag
        if attributes.get("type", "").strip().lower() == "module":
            return tag
        if is_excluded(src, self.exclusions) or is_excluded(tag, self.exclusions):
            return tag
        if self.resolver.is_external(src):
            return tag
        if any(critical in src for critical in CRITICAL_SCRIPTS):
            return tag
        deferred, count = SRC_ATTRIBUTE_PATTERN.subn(r"defer \1", tag, count=1)
        if not count:
            return tag
        logger.debug("Deferred %s", src)
        return deferred
