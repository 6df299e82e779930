"""Delays script execution until the first user interaction.

Scripts are neutralized in place by giving them a type the browser does not
execute. A loader emitted before ``</body>`` turns them back into real
scripts, in document order, on the first click, scroll, key press or touch,
or after a fixed timeout.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Dict, List

from .config import OptimizerSettings
from .exclusions import is_excluded
from .markup import SCRIPT_PATTERN, insert_before_body_close, opening_tag, tag_attributes
from .utils import escape_attribute

logger = logging.getLogger("optimizador_pro")

DELAYED_TYPE = "optimizador-pro-delayed"
DELAYED_INLINE_TYPE = "optimizador-pro-delayed-inline"
LOADER_ID = "optimizador-pro-delay-js-loader"
OWN_SCRIPT_ID_PREFIX = "optimizador-pro-"
MIN_INLINE_SCRIPT_CHARS = 50

JAVASCRIPT_TYPES = {
    "",
    "text/javascript",
    "application/javascript",
    "application/x-javascript",
    "text/ecmascript",
    "application/ecmascript",
}
STRUCTURED_DATA_TYPE_PATTERN = re.compile(
    r"type=[\"']application/(ld\+json|json|importmap)[\"']", re.IGNORECASE
)
MODULE_TYPE_PATTERN = re.compile(r"type=[\"']module[\"']", re.IGNORECASE)

CRITICAL_TAG_PATTERNS = (
    "jquery",
    "wp-includes/js/jquery",
    "@wordpress/interactivity",
    "wp-admin",
    "wp-login",
    "customizer",
    "admin-bar",
)
CRITICAL_INLINE_PATTERNS = (
    "var ajaxurl",
    "window.wp",
    "document.documentElement.className",
    "dataLayer",
    "gtag",
    "ga(",
    "_gaq",
)

DELAY_JS_LOADER = """<script id="optimizador-pro-delay-js-loader">
(function() {
    'use strict';

    var delayedScripts = [];
    var userInteracted = false;
    var interactionEvents = ['click', 'scroll', 'keydown', 'touchstart', 'mousedown'];

    // Collect all delayed scripts
    function collectDelayedScripts() {
        var scripts = document.querySelectorAll('script[type="optimizador-pro-delayed"], script[type="optimizador-pro-delayed-inline"]');
        delayedScripts = Array.from(scripts);
    }

    // Execute all delayed scripts
    function executeDelayedScripts() {
        if (userInteracted || delayedScripts.length === 0) {
            return;
        }

        userInteracted = true;

        // Remove event listeners
        interactionEvents.forEach(function(event) {
            document.removeEventListener(event, executeDelayedScripts, { passive: true });
        });

        // Process each delayed script
        delayedScripts.forEach(function(script) {
            if (!script || !script.parentNode) {
                return;
            }

            try {
                var newScript = document.createElement('script');

                // Handle external scripts
                if (script.hasAttribute('data-src')) {
                    newScript.src = script.getAttribute('data-src');
                }

                // Handle inline scripts
                if (script.type === 'optimizador-pro-delayed-inline') {
                    try {
                        // Decode base64 content
                        var content = atob(script.textContent || script.innerHTML);
                        newScript.textContent = content;
                    } catch (e) {
                        // Fallback to direct content if base64 fails
                        newScript.textContent = script.textContent || script.innerHTML;
                    }
                }

                // Copy attributes (except type and data-src)
                Array.from(script.attributes).forEach(function(attr) {
                    if (attr.name !== 'type' && attr.name !== 'data-src') {
                        newScript.setAttribute(attr.name, attr.value);
                    }
                });

                // Replace the script
                script.parentNode.replaceChild(newScript, script);

            } catch (e) {
                console.warn('OptimizadorPro: Failed to execute delayed script', e);
            }
        });

        // Clear the array
        delayedScripts = [];
    }

    // Initialize when DOM is ready
    function init() {
        collectDelayedScripts();

        if (delayedScripts.length === 0) {
            return;
        }

        // Add event listeners for user interaction
        interactionEvents.forEach(function(event) {
            document.addEventListener(event, executeDelayedScripts, { passive: true });
        });

        // Fallback: execute after 5 seconds regardless of interaction
        setTimeout(executeDelayedScripts, 5000);
    }

    // Start when DOM is ready
    if (document.readyState === 'loading') {
        document.addEventListener('DOMContentLoaded', init);
    } else {
        init();
    }

})();
</script>"""


def _looks_like_json(content: str) -> bool:
    stripped = content.strip()
    if not stripped.startswith("{"):
        return False
    try:
        json.loads(stripped)
    except ValueError:
        return False
    return True


def _attribute_string(attributes: Dict[str, str]) -> str:
    parts = []
    for name, value in attributes.items():
        if value == "" or value == name:
            parts.append(name)
        else:
            parts.append(f'{name}="{escape_attribute(value)}"')
    return "".join(f" {part}" for part in parts)


class DelayJSOptimizer:
    def __init__(self, settings: OptimizerSettings) -> None:
        self.settings = settings

    def optimize(self, html: str) -> str:
        delayed: List[str] = []

        def _delay(match: re.Match) -> str:
            tag = self.delay_script(match.group(0), match.group(1))
            if tag != match.group(0):
                delayed.append(tag)
            return tag

        html = SCRIPT_PATTERN.sub(_delay, html)
        if delayed:
            logger.debug("Delayed %d scripts until user interaction", len(delayed))
        if (delayed or DELAYED_TYPE in html) and f'id="{LOADER_ID}"' not in html:
            html = insert_before_body_close(html, DELAY_JS_LOADER)
        return html

    def should_exclude_script(self, tag: str, content: str) -> bool:
        if DELAYED_TYPE in tag:
            return True
        attributes = tag_attributes(tag)
        if attributes.get("id", "").startswith(OWN_SCRIPT_ID_PREFIX):
            return True
        if STRUCTURED_DATA_TYPE_PATTERN.search(opening_tag(tag)):
            return True
        if MODULE_TYPE_PATTERN.search(opening_tag(tag)):
            return True
        if attributes.get("type", "").strip().lower() not in JAVASCRIPT_TYPES:
            return True
        lowered = tag.lower()
        if any(pattern in lowered for pattern in CRITICAL_TAG_PATTERNS):
            return True
        if content and _looks_like_json(content):
            return True
        src = attributes.get("src", "").strip()
        if is_excluded(src, self.settings.delay_js_exclusions):
            return True
        return is_excluded(tag, self.settings.delay_js_exclusions)

    @staticmethod
    def is_critical_inline_script(content: str) -> bool:
        stripped = content.strip()
        if len(stripped) < MIN_INLINE_SCRIPT_CHARS:
            return True
        lowered = stripped.lower()
        return any(pattern.lower() in lowered for pattern in CRITICAL_INLINE_PATTERNS)

    def delay_script(self, tag: str, content: str) -> str:
        """Return the neutralized placeholder for one script block, or ``tag``."""
        if self.should_exclude_script(tag, content):
            return tag

        attributes = tag_attributes(tag)
        src = attributes.pop("src", "").strip()
        attributes.pop("type", None)

        if src:
            return (
                f'<script type="{DELAYED_TYPE}" data-src="{escape_attribute(src)}"'
                f"{_attribute_string(attributes)}></script>"
            )

        if self.is_critical_inline_script(content):
            return tag
        # atob() yields Latin-1, so non-ASCII bodies would come back garbled.
        if not content.isascii():
            return tag
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        return f'<script type="{DELAYED_INLINE_TYPE}"{_attribute_string(attributes)}>{encoded}</script>'
