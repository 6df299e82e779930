"""Composition of the per-feature optimizers into one page rewrite."""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple

from .cache import ArtifactCache
from .config import OptimizerSettings, PageContext, SiteConfig
from .css import CSSOptimizer
from .defer import DeferJSOptimizer
from .delay import DelayJSOptimizer
from .exclusions import is_excluded
from .fonts import GoogleFontsOptimizer
from .head import ConsoleRestoreInjector, CriticalCSSInjector
from .js import JSOptimizer
from .lazyload import LazyloadOptimizer
from .paths import UrlResolver

logger = logging.getLogger("optimizador_pro")

MIN_DOCUMENT_LENGTH = 255
DOCUMENT_MARKER_PATTERN = re.compile(r"<html|<!doctype", re.IGNORECASE)

Step = Tuple[str, Callable[[str], str]]


class OptimizationPipeline:
    """Run the enabled optimizers over a rendered page in a fixed order.

    Each optimizer is an independent ``str -> str`` rewrite. A step that
    raises is logged and skipped; the page it received is handed to the
    next step unchanged.
    """

    def __init__(
        self,
        settings: OptimizerSettings,
        site: SiteConfig,
        page: Optional[PageContext] = None,
    ) -> None:
        self.settings = settings
        self.site = site
        self.page = page or PageContext()
        self.resolver = UrlResolver(site.site_url, site.document_root)
        self.cache = ArtifactCache(site.cache_dir, site.cache_url)

    def should_process(self, html: str) -> bool:
        if len(html) < MIN_DOCUMENT_LENGTH:
            return False
        if not DOCUMENT_MARKER_PATTERN.search(html):
            return False
        if self.page.is_admin or self.page.is_ajax:
            return False
        return not is_excluded(self.page.request_path, self.settings.excluded_pages)

    def _is_special_request(self) -> bool:
        page = self.page
        return page.is_feed or page.is_preview or page.is_customize_preview

    def _assets_allowed(self) -> bool:
        if self._is_special_request():
            return False
        return not self.page.logged_in or self.settings.optimize_logged_users

    def _defer_allowed(self) -> bool:
        if self._is_special_request():
            return False
        return not self.page.logged_in or self.settings.defer_logged_users

    def _delay_allowed(self) -> bool:
        return not (self.page.is_login or self.page.is_customize_preview)

    def _lazyload_allowed(self) -> bool:
        if self._is_special_request() or self.page.is_amp:
            return False
        if self.page.logged_in and not self.settings.lazyload_logged_users:
            return False
        return not is_excluded(
            self.page.request_path, self.settings.lazyload_excluded_pages
        )

    def steps(self) -> List[Step]:
        """The enabled steps for this request, in execution order."""
        settings = self.settings
        steps: List[Step] = []
        if settings.critical_css_active:
            steps.append(("critical-css", CriticalCSSInjector(settings).optimize))
        if settings.restore_console:
            steps.append(("restore-console", ConsoleRestoreInjector(settings).optimize))
        if settings.optimize_google_fonts and self._delay_allowed():
            steps.append(("google-fonts", GoogleFontsOptimizer(settings).optimize))
        if settings.minify_css and self._assets_allowed():
            steps.append(
                ("css", CSSOptimizer(settings, self.resolver, self.cache).optimize)
            )
        if settings.minify_js and self._assets_allowed():
            steps.append(
                ("js", JSOptimizer(settings, self.resolver, self.cache, self.page).optimize)
            )
        if settings.defer_js and self._defer_allowed():
            steps.append(("defer-js", DeferJSOptimizer(settings, self.resolver).optimize))
        if settings.delay_js and self._delay_allowed():
            steps.append(("delay-js", DelayJSOptimizer(settings).optimize))
        if settings.lazyload_enabled and self._lazyload_allowed():
            steps.append(
                ("lazyload", LazyloadOptimizer(settings, self.resolver).optimize)
            )
        return steps

    def run(self, html: str) -> str:
        if not self.should_process(html):
            return html
        for name, step in self.steps():
            try:
                html = step(html)
            except Exception:
                logger.exception("Optimization step %s failed; keeping its input", name)
        return html


def optimize_page(
    html: str,
    settings: OptimizerSettings,
    site: SiteConfig,
    page: Optional[PageContext] = None,
) -> str:
    return OptimizationPipeline(settings, site, page).run(html)
