"""Fixed snippets injected at the top of ``<head>``."""

from __future__ import annotations

import logging
import re

from .config import OptimizerSettings
from .markup import HEAD_OPEN_PATTERN, insert_after_head_open
from .minify import minify_css

logger = logging.getLogger("optimizador_pro")

CRITICAL_CSS_ID = "optimizador-pro-critical-css"
CONSOLE_RESTORE_ID = "optimizador-pro-restore-console"
TAG_PATTERN = re.compile(r"<[^>]*>")

CONSOLE_RESTORE_SCRIPT = """
<script id="optimizador-pro-restore-console">
(function() {
    try {
        var frame = document.createElement('iframe');
        frame.style.display = 'none';
        (document.head || document.documentElement).appendChild(frame);
        var pristine = frame.contentWindow.console;
        ['log', 'info', 'warn', 'error', 'debug', 'table', 'group', 'groupEnd'].forEach(function(method) {
            if (pristine && typeof pristine[method] === 'function') {
                window.console[method] = pristine[method].bind(pristine);
            }
        });
    } catch (e) {}
})();
</script>"""


def strip_tags(value: str) -> str:
    return TAG_PATTERN.sub("", value)


class CriticalCSSInjector:
    """Inline the configured above-the-fold CSS right after ``<head>``."""

    def __init__(self, settings: OptimizerSettings) -> None:
        self.settings = settings

    def optimize(self, html: str) -> str:
        if not self.settings.critical_css_active:
            return html
        if f'id="{CRITICAL_CSS_ID}"' in html or not HEAD_OPEN_PATTERN.search(html):
            return html
        css = strip_tags(minify_css(self.settings.critical_css))
        block = (
            "\n<!-- OptimizadorPro Critical CSS -->\n"
            f'<style id="{CRITICAL_CSS_ID}">{css}</style>\n'
            "<!-- /OptimizadorPro Critical CSS -->\n"
        )
        logger.debug("Injected %d bytes of critical CSS", len(css))
        return insert_after_head_open(html, block)


class ConsoleRestoreInjector:
    def __init__(self, settings: OptimizerSettings) -> None:
        self.settings = settings

    def optimize(self, html: str) -> str:
        if not self.settings.restore_console:
            return html
        if f'id="{CONSOLE_RESTORE_ID}"' in html:
            return html
        return insert_after_head_open(html, CONSOLE_RESTORE_SCRIPT)
