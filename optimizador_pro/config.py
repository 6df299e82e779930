"""Configuration objects and constants for the optimization pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from .exclusions import parse_patterns

OPTION_PREFIX = "optimizador_pro_"

LAZYLOAD_DEFAULT_EXCLUSIONS = ("data-skip-lazy", "skip-lazy", "no-lazy")
DEFER_DEFAULT_EXCLUSIONS = ("no-defer", "skip-defer", "data-no-defer")
CACHE_SUBDIR = "wp-content/cache/optimizador-pro"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


@dataclass
class OptimizerSettings:
    """Per-request snapshot of feature toggles and exclusion lists."""

    minify_css: bool = False
    minify_js: bool = False
    defer_js: bool = False
    delay_js: bool = False
    lazyload_enabled: bool = False
    combine_inline_css: bool = False
    dequeue_jquery: bool = False
    optimize_google_fonts: bool = False
    google_fonts_async_loading: bool = False
    restore_console: bool = False
    optimize_logged_users: bool = False
    lazyload_logged_users: bool = False
    defer_logged_users: bool = False
    critical_css: str = ""
    css_exclusions: Tuple[str, ...] = ()
    js_exclusions: Tuple[str, ...] = ()
    defer_js_exclusions: Tuple[str, ...] = ()
    delay_js_exclusions: Tuple[str, ...] = ()
    lazyload_exclusions: Tuple[str, ...] = ()
    google_fonts_exclusions: Tuple[str, ...] = ()
    excluded_pages: Tuple[str, ...] = ()
    lazyload_excluded_pages: Tuple[str, ...] = ()

    @property
    def critical_css_active(self) -> bool:
        return bool(self.critical_css.strip())

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "OptimizerSettings":
        """Build settings from an options-store dump.

        Keys may be given bare (``minify_css``) or with the store prefix
        (``optimizador_pro_minify_css``). Exclusion lists accept the
        newline-delimited text the admin screen saves, or any sequence.
        Unknown keys are ignored.
        """
        values = {}
        for item in fields(cls):
            key = item.name
            if OPTION_PREFIX + key in options:
                raw = options[OPTION_PREFIX + key]
            elif key in options:
                raw = options[key]
            else:
                continue
            if item.type == "bool":
                values[key] = _coerce_bool(raw)
            elif item.type == "str":
                values[key] = "" if raw is None else str(raw)
            else:
                values[key] = parse_patterns(raw)
        return cls(**values)


@dataclass
class SiteConfig:
    """Host capabilities: where the site lives and where artifacts go."""

    site_url: str
    document_root: Path
    cache_dir: Path
    cache_url: str

    @classmethod
    def for_site(
        cls,
        site_url: str,
        document_root: Path,
        cache_dir: Optional[Path] = None,
        cache_url: Optional[str] = None,
    ) -> "SiteConfig":
        """Fill in the cache location below the document root when not given."""
        site_url = site_url.rstrip("/")
        document_root = Path(document_root)
        return cls(
            site_url=site_url,
            document_root=document_root,
            cache_dir=Path(cache_dir) if cache_dir else document_root / CACHE_SUBDIR,
            cache_url=cache_url or f"{site_url}/{CACHE_SUBDIR}",
        )


@dataclass
class PageContext:
    """What kind of request produced the page being optimized."""

    request_path: str = "/"
    is_admin: bool = False
    is_ajax: bool = False
    is_feed: bool = False
    is_preview: bool = False
    is_customize_preview: bool = False
    is_amp: bool = False
    logged_in: bool = False

    @property
    def is_login(self) -> bool:
        return any(
            page in self.request_path for page in ("wp-login.php", "wp-register.php")
        )


def load_settings(path: Path) -> OptimizerSettings:
    """Read an options dump (JSON object) from disk."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")
    return OptimizerSettings.from_options(data)
