"""Command-line entry point for optimizing rendered pages."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .cache import cache_status, clear_cache
from .config import OptimizerSettings, PageContext, SiteConfig, load_settings
from .pipeline import OptimizationPipeline

logger = logging.getLogger("optimizador_pro.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("optimize", *argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_optimize_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Rendered HTML page to optimize")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the optimized page (default: STDOUT)",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON options dump with feature toggles and exclusion lists",
    )
    parser.add_argument(
        "--site-url",
        required=True,
        help="Public base URL of the site, e.g. https://example.com",
    )
    parser.add_argument(
        "--document-root",
        type=Path,
        required=True,
        help="Directory the site URL is served from",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Directory for combined artifacts (default: <document-root>/wp-content/cache/optimizador-pro)",
    )
    parser.add_argument(
        "--cache-url",
        default=None,
        help="Public URL of the cache directory",
    )
    parser.add_argument(
        "--request-path",
        default="/",
        help="Request URI the page was rendered for; used by page exclusions",
    )
    parser.add_argument(
        "--logged-in",
        action="store_true",
        help="Treat the page as rendered for a logged-in user",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_cache_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-dir",
        type=Path,
        required=True,
        help="Directory holding combined artifacts",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Combine, minify and defer the assets of rendered HTML pages.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    optimize_parser = subparsers.add_parser(
        "optimize", help="Run the optimization pipeline over an HTML file"
    )
    _add_optimize_arguments(optimize_parser)

    clear_parser = subparsers.add_parser(
        "clear-cache", help="Delete every combined artifact"
    )
    _add_cache_arguments(clear_parser)

    status_parser = subparsers.add_parser(
        "cache-status", help="Report the number and size of combined artifacts"
    )
    _add_cache_arguments(status_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _run_optimize(args: argparse.Namespace) -> None:
    _configure_logging(args.verbose)

    settings = load_settings(args.settings) if args.settings else OptimizerSettings()
    site = SiteConfig.for_site(
        args.site_url,
        Path(args.document_root).resolve(),
        cache_dir=args.cache_dir,
        cache_url=args.cache_url,
    )
    page = PageContext(request_path=args.request_path, logged_in=args.logged_in)

    html = Path(args.input).read_text(encoding="utf-8")
    start = time.perf_counter()
    optimized = OptimizationPipeline(settings, site, page).run(html)
    elapsed = time.perf_counter() - start
    logger.info(
        "Optimized %s in %.3fs (%d -> %d bytes)",
        args.input,
        elapsed,
        len(html.encode("utf-8")),
        len(optimized.encode("utf-8")),
    )

    if args.output:
        Path(args.output).write_text(optimized, encoding="utf-8")
        return
    sys.stdout.write(optimized)
    sys.stdout.flush()


def _run_clear_cache(args: argparse.Namespace) -> None:
    _configure_logging(args.verbose)
    removed = clear_cache(args.cache_dir)
    sys.stdout.write(f"Removed {removed} cached files\n")


def _run_cache_status(args: argparse.Namespace) -> None:
    _configure_logging(args.verbose)
    status = cache_status(args.cache_dir)
    sys.stdout.write(
        f"CSS files: {status.css_files}\n"
        f"JS files: {status.js_files}\n"
        f"Total size: {status.total_bytes} bytes\n"
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    if args.command == "optimize":
        _run_optimize(args)
    elif args.command == "clear-cache":
        _run_clear_cache(args)
    else:
        _run_cache_status(args)


if __name__ == "__main__":
    main()
