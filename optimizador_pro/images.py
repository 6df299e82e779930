"""Local image inspection used to size lazy-load placeholders."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from filetype import guess
from PIL import Image

logger = logging.getLogger("optimizador_pro")

SIGNATURE_BYTES = 261
ALLOWED_IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff", "ico", "avif"}

_SVG_DIMENSION_PATTERN = r"""(?<![\w-]){name}\s*=\s*["']\s*([0-9.]+)(?:px)?\s*["']"""
_SVG_VIEWBOX_PATTERN = re.compile(
    r"""\bviewBox\s*=\s*["']\s*[-0-9.]+[\s,]+[-0-9.]+[\s,]+([0-9.]+)[\s,]+([0-9.]+)\s*["']""",
    re.IGNORECASE,
)


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def _svg_dimensions(path: Path) -> Optional[Tuple[int, int]]:
    try:
        head = path.read_text(encoding="utf-8", errors="replace")[:4096]
    except OSError as exc:
        logger.debug("Failed to read %s: %s", path, exc)
        return None
    svg_tag = re.search(r"<svg\b[^>]*>", head, re.IGNORECASE)
    if not svg_tag:
        return None
    tag = svg_tag.group(0)
    width = re.search(_SVG_DIMENSION_PATTERN.format(name="width"), tag, re.IGNORECASE)
    height = re.search(_SVG_DIMENSION_PATTERN.format(name="height"), tag, re.IGNORECASE)
    if width and height:
        values = width.group(1), height.group(1)
    else:
        viewbox = _SVG_VIEWBOX_PATTERN.search(tag)
        if not viewbox:
            return None
        values = viewbox.group(1), viewbox.group(2)
    try:
        dimensions = round(float(values[0])), round(float(values[1]))
    except ValueError:
        logger.debug("Unreadable SVG size in %s", path)
        return None
    if dimensions[0] < 1 or dimensions[1] < 1:
        return None
    return dimensions


def read_image_dimensions(path: Path) -> Optional[Tuple[int, int]]:
    """Return ``(width, height)`` of a local image, or ``None`` if unknown."""
    path = Path(path)
    if path.suffix.lower() == ".svg":
        return _svg_dimensions(path)

    try:
        with path.open("rb") as handle:
            signature = handle.read(SIGNATURE_BYTES)
    except OSError as exc:
        logger.debug("Failed to read %s: %s", path, exc)
        return None

    extension = detect_image_format(signature)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        logger.debug("Skipping %s: unsupported image type", path)
        return None

    try:
        with Image.open(path) as image:
            width, height = image.size
    except (OSError, ValueError) as exc:
        logger.debug("Failed to read dimensions of %s: %s", path, exc)
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height
