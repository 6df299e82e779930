"""Mapping of page URLs onto files below the document root."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

logger = logging.getLogger("optimizador_pro")

_HTTP_SCHEMES = ("http", "https")


class UrlResolver:
    """Resolve site URLs to local paths. Unresolvable input yields ``None``."""

    def __init__(self, site_url: str, document_root: Path) -> None:
        self.site_url = site_url.rstrip("/")
        self.document_root = Path(document_root)
        parsed = urlsplit(self.site_url)
        self._site_host = parsed.netloc.lower()
        self._site_path = parsed.path.rstrip("/")

    def is_external(self, url: str) -> bool:
        """True for http(s) or protocol-relative URLs on another host."""
        url = url.strip()
        if url.startswith("//"):
            return urlsplit("http:" + url).netloc.lower() != self._site_host
        parsed = urlsplit(url)
        if parsed.scheme.lower() not in _HTTP_SCHEMES:
            return False
        return parsed.netloc.lower() != self._site_host

    def resolve(self, url: str) -> Optional[Path]:
        url = url.strip().split("?", 1)[0].split("#", 1)[0]
        if not url or url.startswith("//"):
            return None

        parsed = urlsplit(url)
        if parsed.scheme:
            if parsed.scheme.lower() not in _HTTP_SCHEMES:
                return None
            if parsed.netloc.lower() != self._site_host:
                return None
            path = parsed.path
            if self._site_path:
                if path != self._site_path and not path.startswith(self._site_path + "/"):
                    return None
                path = path[len(self._site_path):]
        elif url.startswith("/"):
            path = url
        else:
            return None

        relative = unquote(path).lstrip("/")
        if not relative:
            return None
        candidate = os.path.normpath(os.path.join(str(self.document_root), relative))
        root = os.path.normpath(str(self.document_root))
        if candidate != root and not candidate.startswith(root + os.sep):
            logger.debug("Refusing to resolve %s outside the document root", url)
            return None
        return Path(candidate)

    @staticmethod
    def modified_time(path: Path) -> Optional[int]:
        try:
            return int(os.stat(path).st_mtime)
        except OSError:
            return None
