"""Deferred loading of images and iframes."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from .config import LAZYLOAD_DEFAULT_EXCLUSIONS, OptimizerSettings
from .exclusions import is_excluded, merge_patterns
from .images import read_image_dimensions
from .markup import insert_before_body_close, sub_outside_noscript, tag_attributes
from .paths import UrlResolver

logger = logging.getLogger("optimizador_pro")

LAZYLOAD_CLASS = "lazyload"
LAZYLOAD_SCRIPT_ID = "optimizador-pro-lazyload"
PLACEHOLDER_TEMPLATE = (
    "data:image/svg+xml,%3Csvg xmlns='http://www.w3.org/2000/svg' "
    "viewBox='0 0 {width} {height}'%3E%3C/svg%3E"
)

IMG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
IFRAME_PATTERN = re.compile(r"<iframe\b[^>]*>", re.IGNORECASE)
TAG_NAME_PATTERN = re.compile(r"<[a-zA-Z]+")
TAG_END_PATTERN = re.compile(r"\s*/?>$")
DIMENSION_PATTERN = re.compile(r"^\s*(\d+)(?:\.\d+)?\s*(?:px)?\s*$", re.IGNORECASE)


def _attribute_pattern(name: str) -> re.Pattern:
    return re.compile(
        r"(?<=\s)" + name + r"\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL
    )


SRC_ATTRIBUTE = _attribute_pattern("src")
CLASS_ATTRIBUTE = _attribute_pattern("class")
SRCSET_ATTRIBUTE = re.compile(r"\s+srcset\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL)

LAZYLOAD_SCRIPT = """
<script id="optimizador-pro-lazyload">
document.addEventListener("DOMContentLoaded", function() {
    function loadElement(lazyElement) {
        if (lazyElement.dataset.src) {
            lazyElement.src = lazyElement.dataset.src;
        }
        if (lazyElement.dataset.srcset) {
            lazyElement.srcset = lazyElement.dataset.srcset;
        }
        lazyElement.classList.remove("lazyload");
    }

    if ("IntersectionObserver" in window) {
        var lazyObserver = new IntersectionObserver(function(entries, observer) {
            entries.forEach(function(entry) {
                if (entry.isIntersecting) {
                    loadElement(entry.target);
                    observer.unobserve(entry.target);
                }
            });
        }, {
            rootMargin: "50px",
            threshold: 0.01
        });

        document.querySelectorAll(".lazyload").forEach(function(lazyElement) {
            lazyObserver.observe(lazyElement);
        });
    } else {
        // Fallback for older browsers
        document.querySelectorAll(".lazyload").forEach(loadElement);
    }
});
</script>"""


def placeholder_src(width: Optional[int], height: Optional[int]) -> str:
    if not width or not height:
        width, height = 1, 1
    return PLACEHOLDER_TEMPLATE.format(width=width, height=height)


def _parse_dimension(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    match = DIMENSION_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1)) or None


def _add_class(tag: str) -> str:
    match = CLASS_ATTRIBUTE.search(tag)
    if match:
        quote, classes = match.group(1), match.group(2)
        if LAZYLOAD_CLASS in classes.split():
            return tag
        merged = f"{classes} {LAZYLOAD_CLASS}".strip()
        return tag[: match.start()] + f"class={quote}{merged}{quote}" + tag[match.end():]
    name = TAG_NAME_PATTERN.match(tag)
    return tag[: name.end()] + f' class="{LAZYLOAD_CLASS}"' + tag[name.end():]


class LazyloadOptimizer:
    """Swap ``src`` for ``data-src`` so elements load once they scroll into view."""

    def __init__(self, settings: OptimizerSettings, resolver: UrlResolver) -> None:
        self.settings = settings
        self.resolver = resolver
        self.exclusions = merge_patterns(
            settings.lazyload_exclusions, LAZYLOAD_DEFAULT_EXCLUSIONS
        )

    def optimize(self, html: str) -> str:
        rewritten: List[str] = []

        def _image(match: re.Match) -> str:
            tag = self.lazyload_image(match.group(0))
            if tag != match.group(0):
                rewritten.append(tag)
            return tag

        def _iframe(match: re.Match) -> str:
            tag = self.lazyload_iframe(match.group(0))
            if tag != match.group(0):
                rewritten.append(tag)
            return tag

        html = sub_outside_noscript(IMG_PATTERN, _image, html)
        html = sub_outside_noscript(IFRAME_PATTERN, _iframe, html)

        if rewritten:
            logger.debug("Lazy-loading %d elements", len(rewritten))
            if f'id="{LAZYLOAD_SCRIPT_ID}"' not in html:
                html = insert_before_body_close(html, LAZYLOAD_SCRIPT)
        return html

    def _should_skip(self, tag: str, attributes: Dict[str, str], src: str) -> bool:
        if not src or src.startswith("data:"):
            return True
        if is_excluded(src, self.exclusions) or is_excluded(tag, self.exclusions):
            return True
        if "data-src" in attributes:
            return True
        return attributes.get("loading", "").strip().lower() == "eager"

    def resolve_dimensions(
        self, src: str, attributes: Dict[str, str]
    ) -> Tuple[Optional[int], Optional[int]]:
        """Width and height from attributes, completed from the file when needed."""
        width = _parse_dimension(attributes.get("width"))
        height = _parse_dimension(attributes.get("height"))
        if width and height:
            return width, height

        path = self.resolver.resolve(src)
        if path is None or not path.is_file():
            return width, height
        dimensions = read_image_dimensions(path)
        if not dimensions:
            return width, height

        natural_width, natural_height = dimensions
        if natural_width <= 0 or natural_height <= 0:
            return width, height
        if width is None and height is None:
            return natural_width, natural_height
        if width is None:
            return round(height * natural_width / natural_height), height
        return width, round(width * natural_height / natural_width)

    def lazyload_image(self, tag: str) -> str:
        attributes = tag_attributes(tag)
        src = attributes.get("src", "").strip()
        if self._should_skip(tag, attributes, src):
            return tag

        original_tag = tag
        srcset_markup = ""
        srcset = SRCSET_ATTRIBUTE.search(tag)
        if srcset:
            quote = srcset.group(1)
            srcset_markup = f" data-srcset={quote}{srcset.group(2)}{quote}"
            tag = tag[: srcset.start()] + tag[srcset.end():]

        source = SRC_ATTRIBUTE.search(tag)
        if not source:
            return original_tag

        width, height = self.resolve_dimensions(src, attributes)
        quote, original = source.group(1), source.group(2)
        replacement = (
            f'src="{placeholder_src(width, height)}" '
            f"data-src={quote}{original}{quote}{srcset_markup}"
        )
        tag = tag[: source.start()] + replacement + tag[source.end():]
        tag = _add_class(tag)

        derived = ""
        if "width" not in attributes and width:
            derived += f' width="{width}"'
        if "height" not in attributes and height:
            derived += f' height="{height}"'
        if derived:
            tag = TAG_END_PATTERN.sub(lambda end: derived + end.group(0), tag, count=1)
        return tag

    def lazyload_iframe(self, tag: str) -> str:
        attributes = tag_attributes(tag)
        src = attributes.get("src", "").strip()
        if self._should_skip(tag, attributes, src):
            return tag

        source = SRC_ATTRIBUTE.search(tag)
        if not source:
            return tag
        quote, original = source.group(1), source.group(2)
        tag = tag[: source.start()] + f"data-src={quote}{original}{quote}" + tag[source.end():]
        return _add_class(tag)
