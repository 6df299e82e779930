"""Tests for the command-line entry point."""

import io
import json
from contextlib import redirect_stdout

from optimizador_pro.cli import _ensure_command_prefix, main, parse_args

from support import SITE_URL, SiteTestCase, page


class TestCommandPrefix(SiteTestCase):
    def test_optimize_is_the_default_command(self):
        commands = ("optimize", "clear-cache", "cache-status")
        assert _ensure_command_prefix(["page.html"], commands) == ("optimize", "page.html")
        assert _ensure_command_prefix(["clear-cache"], commands) == ["clear-cache"]
        assert _ensure_command_prefix(["--help"], commands) == ["--help"]

    def test_parse_args(self):
        args = parse_args(["page.html", "--site-url", SITE_URL, "--document-root", str(self.root)])
        assert args.command == "optimize"
        assert args.request_path == "/"
        assert not args.logged_in


class TestCommands(SiteTestCase):
    def test_optimize_writes_output_file(self):
        self.write_asset("/wp-content/themes/site/app.js", "var app = 1;\n")
        source = self.root / "page.html"
        source.write_text(page(body='<script src="/wp-content/themes/site/app.js"></script>'), encoding="utf-8")
        options = self.root / "options.json"
        options.write_text(json.dumps({"optimizador_pro_defer_js": "1"}), encoding="utf-8")
        target = self.root / "page.optimized.html"

        main(
            [
                str(source),
                "--output",
                str(target),
                "--settings",
                str(options),
                "--site-url",
                SITE_URL,
                "--document-root",
                str(self.root),
            ]
        )

        assert '<script defer src="/wp-content/themes/site/app.js"></script>' in target.read_text(encoding="utf-8")

    def test_cache_commands(self):
        css_dir = self.site.cache_dir / "css"
        css_dir.mkdir(parents=True)
        (css_dir / "combined-abc.css").write_text("body{}", encoding="utf-8")

        status = io.StringIO()
        with redirect_stdout(status):
            main(["cache-status", "--cache-dir", str(self.site.cache_dir)])
        assert "CSS files: 1" in status.getvalue()
        assert "Total size: 6 bytes" in status.getvalue()

        cleared = io.StringIO()
        with redirect_stdout(cleared):
            main(["clear-cache", "--cache-dir", str(self.site.cache_dir)])
        assert "Removed 1 cached files" in cleared.getvalue()
        assert not (css_dir / "combined-abc.css").exists()
