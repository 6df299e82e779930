"""Shared fixtures: a throwaway document root served at https://example.com."""

import tempfile
import unittest
from pathlib import Path

from optimizador_pro.cache import ArtifactCache
from optimizador_pro.config import SiteConfig
from optimizador_pro.paths import UrlResolver

SITE_URL = "https://example.com"
FILLER = (
    "<p>Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod "
    "tempor incididunt ut labore et dolore magna aliqua. Ut enim ad minim veniam, "
    "quis nostrud exercitation ullamco laboris nisi ut aliquip ex ea commodo.</p>"
)


def page(head="", body=""):
    """A complete document comfortably above the minimum processed length."""
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
        f"{head}</head>\n<body>\n{FILLER}\n{body}</body>\n</html>\n"
    )


class SiteTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name) / "public"
        self.root.mkdir()
        self.site = SiteConfig.for_site(SITE_URL, self.root)
        self.resolver = UrlResolver(self.site.site_url, self.site.document_root)
        self.cache = ArtifactCache(self.site.cache_dir, self.site.cache_url)

    def write_asset(self, url_path, content):
        path = self.root / url_path.lstrip("/")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def artifacts(self, kind):
        directory = self.site.cache_dir / kind
        if not directory.is_dir():
            return []
        return sorted(directory.glob("combined-*"))
