"""Data models used throughout the optimization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set


@dataclass(frozen=True)
class AssetReference:
    """Raw asset markup discovered while scanning a page."""

    tag: str
    url: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class FilteredAsset:
    """Asset that passed eligibility and resolved to a local file."""

    asset: AssetReference
    path: Path
    mtime: int

    @property
    def tag(self) -> str:
        return self.asset.tag

    @property
    def url(self) -> str:
        return self.asset.url or ""


@dataclass
class FontFamilySpec:
    """A Google Fonts family and the weights requested for it."""

    name: str
    weights: Set[str] = field(default_factory=set)


@dataclass
class GoogleFontLink:
    """Google Fonts stylesheet link found in the page."""

    tag: str
    url: str
    families: List[FontFamilySpec]


@dataclass
class CacheStatus:
    """Summary of the combined artifacts currently on disk."""

    css_files: int = 0
    js_files: int = 0
    total_bytes: int = 0
