"""Script combination and minification."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from .cache import ArtifactCache, CacheWriteError, build_cache_key, read_asset
from .config import OptimizerSettings, PageContext
from .exclusions import is_excluded
from .markup import (
    extract_scripts,
    has_body_close,
    insert_before_body_close,
    iter_inline_scripts,
    remove_fragments,
    tag_attributes,
)
from .minify import minify_js
from .models import AssetReference, FilteredAsset
from .paths import UrlResolver
from .utils import escape_attribute

logger = logging.getLogger("optimizador_pro")

JQUERY_PATTERNS = ("jquery", "jquery-core", "jquery-migrate", "wp-includes/js/jquery")
ALWAYS_CRITICAL_PATTERNS = ("wp-admin", "wp-login", "customize-controls", "admin-bar")
MODULE_PATH_PATTERNS = ("@wordpress/interactivity", "wp-includes/js/dist/")
JQUERY_DEPENDENT_MARKERS = (
    "wp-admin",
    "customize-preview",
    "woocommerce",
    "contact-form-7",
    "elementor",
    "wpforms",
    "gravity",
)

JQUERY_USAGE_PATTERN = re.compile(r"\$\(|\bjQuery\(|\.ready\(|\.click\(|\.on\(")
ES_MODULE_SYNTAX_PATTERN = re.compile(r"\b(import\s+.*from|export\s+)", re.IGNORECASE)
DYNAMIC_IMPORT_PATTERN = re.compile(r"import\s*\(", re.IGNORECASE)


def is_jquery_safe_to_dequeue(html: str, page: Optional[PageContext] = None) -> bool:
    """Best-effort check that nothing on the page still needs jQuery."""
    for body in iter_inline_scripts(html):
        if JQUERY_USAGE_PATTERN.search(body):
            return False
    if any(marker in html for marker in JQUERY_DEPENDENT_MARKERS):
        return False
    if page is not None and (page.is_admin or page.is_customize_preview):
        return False
    return True


class JSOptimizer:
    """Combine local external scripts into one file loaded before ``</body>``."""

    def __init__(
        self,
        settings: OptimizerSettings,
        resolver: UrlResolver,
        cache: ArtifactCache,
        page: Optional[PageContext] = None,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.cache = cache
        self.page = page or PageContext()

    def optimize(self, html: str) -> str:
        scripts = extract_scripts(html)
        if not scripts:
            return html
        if not has_body_close(html):
            logger.debug("No </body> found; leaving scripts untouched")
            return html

        allow_jquery_dequeue = self.settings.dequeue_jquery
        if allow_jquery_dequeue and not is_jquery_safe_to_dequeue(html, self.page):
            logger.debug("jQuery is in use on this page; keeping it out of the bundle")
            allow_jquery_dequeue = False

        optimizable = self.filter_optimizable_scripts(scripts, allow_jquery_dequeue)
        if not optimizable:
            return html

        key = build_cache_key(optimizable)
        try:
            self.cache.materialize("js", key, "js", lambda: self.combine(optimizable))
        except CacheWriteError as exc:
            logger.error("JS optimization skipped: %s", exc)
            return html

        combined_url = self.cache.artifact_url("js", key, "js")
        html = remove_fragments(html, [script.tag for script in optimizable])
        combined_tag = f'<script src="{escape_attribute(combined_url)}"></script>'
        return insert_before_body_close(html, combined_tag)

    def filter_optimizable_scripts(
        self,
        scripts: Sequence[AssetReference],
        allow_jquery_dequeue: bool = False,
    ) -> List[FilteredAsset]:
        optimizable: List[FilteredAsset] = []
        for script in scripts:
            src = script.url or ""
            if self.resolver.is_external(src):
                continue
            if self.cache.owns(src):
                continue
            exclusions = self.settings.js_exclusions
            if is_excluded(src, exclusions) or is_excluded(script.tag, exclusions):
                logger.debug("Script %s excluded", src)
                continue
            if self.is_es_module(script):
                logger.debug("Script %s is an ES module", src)
                continue
            if self.is_critical_script(src, allow_jquery_dequeue):
                continue
            path = self.resolver.resolve(src)
            if path is None or not path.is_file():
                continue
            mtime = self.resolver.modified_time(path)
            if mtime is None:
                continue
            optimizable.append(FilteredAsset(asset=script, path=path, mtime=mtime))
        return optimizable

    def is_es_module(self, script: AssetReference) -> bool:
        if tag_attributes(script.tag).get("type", "").strip().lower() == "module":
            return True
        src = script.url or ""
        if any(pattern in src for pattern in MODULE_PATH_PATTERNS):
            return True
        path = self.resolver.resolve(src)
        if path is None or not path.is_file():
            return False
        content = read_asset(path)
        if content is None:
            return False
        return bool(
            ES_MODULE_SYNTAX_PATTERN.search(content) or DYNAMIC_IMPORT_PATTERN.search(content)
        )

    @staticmethod
    def is_critical_script(src: str, allow_jquery_dequeue: bool = False) -> bool:
        if any(pattern in src for pattern in JQUERY_PATTERNS):
            return not allow_jquery_dequeue
        return any(pattern in src for pattern in ALWAYS_CRITICAL_PATTERNS)

    def combine(self, scripts: Sequence[FilteredAsset]) -> str:
        parts = []
        for script in scripts:
            content = read_asset(script.path)
            if content is not None:
                parts.append(content)
        return minify_js("\n;\n".join(parts))
