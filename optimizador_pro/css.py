"""Stylesheet combination and minification."""

from __future__ import annotations

import logging
from typing import List, Sequence

from .cache import ArtifactCache, CacheWriteError, build_cache_key, read_asset
from .config import OptimizerSettings
from .exclusions import is_excluded
from .markup import (
    extract_inline_styles,
    extract_stylesheet_links,
    has_head_close,
    insert_before_head_close,
    remove_fragments,
)
from .minify import minify_css, rebase_css_urls
from .models import AssetReference, FilteredAsset
from .paths import UrlResolver
from .utils import escape_attribute

logger = logging.getLogger("optimizador_pro")

INLINE_SECTION_HEADER = "\n\n/* === Inline styles from <style> tags === */\n"


class CSSOptimizer:
    """Combine local stylesheets (and optionally head ``<style>`` blocks) into one file."""

    def __init__(
        self,
        settings: OptimizerSettings,
        resolver: UrlResolver,
        cache: ArtifactCache,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.cache = cache

    def optimize(self, html: str) -> str:
        links = extract_stylesheet_links(html)
        inline_styles: List[AssetReference] = []
        if self.settings.combine_inline_css:
            inline_styles = extract_inline_styles(html)

        if not links and not inline_styles:
            return html
        if not has_head_close(html):
            logger.debug("No </head> found; leaving stylesheets untouched")
            return html

        optimizable = self.filter_optimizable_links(links)
        if not optimizable and not inline_styles:
            return html

        key = build_cache_key(optimizable, inline_styles)
        try:
            self.cache.materialize(
                "css", key, "css", lambda: self.combine(optimizable, inline_styles)
            )
        except CacheWriteError as exc:
            logger.error("CSS optimization skipped: %s", exc)
            return html

        combined_url = self.cache.artifact_url("css", key, "css")
        removed = [asset.tag for asset in optimizable] + [style.tag for style in inline_styles]
        html = remove_fragments(html, removed)
        return insert_before_head_close(html, self.combined_tag(combined_url))

    def filter_optimizable_links(self, links: Sequence[AssetReference]) -> List[FilteredAsset]:
        optimizable: List[FilteredAsset] = []
        for link in links:
            href = link.url or ""
            if self.resolver.is_external(href):
                continue
            if self.cache.owns(href):
                continue
            exclusions = self.settings.css_exclusions
            if is_excluded(href, exclusions) or is_excluded(link.tag, exclusions):
                logger.debug("Stylesheet %s excluded", href)
                continue
            path = self.resolver.resolve(href)
            if path is None or not path.is_file():
                continue
            mtime = self.resolver.modified_time(path)
            if mtime is None:
                continue
            optimizable.append(FilteredAsset(asset=link, path=path, mtime=mtime))
        return optimizable

    def combine(
        self,
        links: Sequence[FilteredAsset],
        inline_styles: Sequence[AssetReference] = (),
    ) -> str:
        """Concatenate files in document order, inline blocks last, then minify."""
        parts = []
        for link in links:
            content = read_asset(link.path)
            if content is not None:
                parts.append(rebase_css_urls(content, link.url))
        if inline_styles:
            inline_css = INLINE_SECTION_HEADER
            for style in inline_styles:
                inline_css += "\n/* Inline style block */\n" + (style.content or "") + "\n"
            parts.append(inline_css)
        return minify_css("\n".join(parts))

    def combined_tag(self, url: str) -> str:
        escaped = escape_attribute(url)
        if self.settings.critical_css_active:
            return (
                f"<link rel='preload' href='{escaped}' as='style' "
                f"onload=\"this.rel='stylesheet'\">"
                f"<noscript><link rel='stylesheet' href='{escaped}'></noscript>"
            )
        return f'<link rel="stylesheet" href="{escaped}" />'
