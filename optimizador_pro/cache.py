"""Content-addressed storage for combined CSS and JS artifacts.

The filesystem is the cache index: an artifact exists if and only if its
file exists. Keys are derived from asset identity and modification state,
so a changed input produces a new file rather than invalidating an old one.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence
from urllib.parse import urlsplit

from .models import AssetReference, CacheStatus, FilteredAsset
from .utils import md5_hex

logger = logging.getLogger("optimizador_pro")

ARTIFACT_PREFIX = "combined-"


class CacheWriteError(RuntimeError):
    """The cache directory or an artifact could not be written."""


def build_cache_key(
    assets: Sequence[FilteredAsset],
    inline_blocks: Sequence[AssetReference] = (),
) -> str:
    """Digest over ``url + mtime`` of each file and the hash of each inline block."""
    key_data = [f"{asset.url}{asset.mtime}" for asset in assets]
    key_data.extend(f"inline:{md5_hex(block.content or '')}" for block in inline_blocks)
    return md5_hex("|".join(key_data))


def read_asset(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
        return None


class ArtifactCache:
    """Combined artifacts under ``<cache_dir>/<kind>/combined-<key>.<ext>``."""

    def __init__(self, cache_dir: Path, cache_url: str) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_url = cache_url.rstrip("/")

    def artifact_path(self, kind: str, key: str, ext: str) -> Path:
        return self.cache_dir / kind / f"{ARTIFACT_PREFIX}{key}.{ext}"

    def artifact_url(self, kind: str, key: str, ext: str) -> str:
        return f"{self.cache_url}/{kind}/{ARTIFACT_PREFIX}{key}.{ext}"

    def owns(self, url: str) -> bool:
        """True when ``url`` points at an artifact this cache produced."""
        path = urlsplit(url.strip()).path
        base = urlsplit(self.cache_url).path.rstrip("/")
        if base and not path.startswith(base + "/"):
            return False
        return os.path.basename(path).startswith(ARTIFACT_PREFIX)

    def ensure_directory(self, kind: str) -> Path:
        directory = self.cache_dir / kind
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheWriteError(f"Cannot create cache directory {directory}: {exc}") from exc
        return directory

    def materialize(
        self,
        kind: str,
        key: str,
        ext: str,
        build: Callable[[], str],
    ) -> Path:
        """Return the artifact path, building and writing it on a miss."""
        path = self.artifact_path(kind, key, ext)
        if path.exists():
            logger.debug("Cache hit for %s", path)
            return path

        directory = self.ensure_directory(kind)
        content = build()
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(content)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheWriteError(f"Cannot write {path}: {exc}") from exc
        logger.info("Wrote combined %s artifact %s", kind, path)
        return path


def clear_cache(cache_dir: Path) -> int:
    """Delete everything under ``cache_dir`` and return the number of files removed."""
    root = Path(cache_dir)
    if not root.is_dir():
        return 0
    removed = 0
    for entry in root.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            removed += sum(1 for item in entry.rglob("*") if not item.is_dir())
            shutil.rmtree(entry)
        else:
            entry.unlink()
            removed += 1
    logger.info("Cleared %d cached files from %s", removed, root)
    return removed


def cache_status(cache_dir: Path) -> CacheStatus:
    root = Path(cache_dir)
    status = CacheStatus()
    for kind, ext in (("css", "css"), ("js", "js")):
        directory = root / kind
        if not directory.is_dir():
            continue
        files = [item for item in directory.glob(f"*.{ext}") if item.is_file()]
        if kind == "css":
            status.css_files = len(files)
        else:
            status.js_files = len(files)
        status.total_bytes += sum(item.stat().st_size for item in files)
    return status
