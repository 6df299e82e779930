"""Tests for Google Fonts merging and async loading."""

import unittest

from optimizador_pro.config import OptimizerSettings
from optimizador_pro.fonts import (
    GoogleFontsOptimizer,
    add_preconnect_hints,
    build_combined_url,
    merge_families,
    parse_font_family,
    parse_font_url,
)
from optimizador_pro.models import FontFamilySpec, GoogleFontLink

from support import page

LEGACY = '<link rel="stylesheet" href="https://fonts.googleapis.com/css?family=Open+Sans:300,400">'
CSS2 = (
    "<link rel='stylesheet' id='roboto-css' "
    "href='https://fonts.googleapis.com/css2?family=Roboto:wght@400&amp;family=Open+Sans:wght@400&amp;display=swap'>"
)
COMBINED_URL = (
    "https://fonts.googleapis.com/css2?family=Open%20Sans:wght@300;400"
    "&family=Roboto:wght@400&display=swap"
)


class TestFontParsing(unittest.TestCase):
    def test_legacy_weights(self):
        family = parse_font_family("Open Sans:300,400,700italic")
        assert family.name == "Open Sans"
        assert family.weights == {"300", "400", "700"}

    def test_named_weights(self):
        assert parse_font_family("Lato:regular,bold,400italic").weights == {"400", "700"}

    def test_css2_axes(self):
        assert parse_font_family("Roboto:wght@300;500").weights == {"300", "500"}
        assert parse_font_family("Roboto:ital,wght@0,400;1,700").weights == {"400", "700"}

    def test_family_without_weights(self):
        family = parse_font_family("Inter")
        assert family.name == "Inter"
        assert family.weights == {"400"}

    def test_legacy_pipe_separated_families(self):
        families = parse_font_url("https://fonts.googleapis.com/css?family=Open+Sans:400|Roboto:700&subset=latin")
        assert [family.name for family in families] == ["Open Sans", "Roboto"]
        assert families[1].weights == {"700"}

    def test_url_without_family(self):
        assert parse_font_url("https://fonts.googleapis.com/css2") == []


class TestCombinedUrl(unittest.TestCase):
    def test_merge_and_build(self):
        links = [
            GoogleFontLink(tag="a", url="a", families=[FontFamilySpec("Open Sans", {"400", "300"})]),
            GoogleFontLink(
                tag="b",
                url="b",
                families=[FontFamilySpec("Roboto", {"400"}), FontFamilySpec("Open Sans", {"400"})],
            ),
        ]
        families = merge_families(links)
        assert [family.name for family in families] == ["Open Sans", "Roboto"]
        assert build_combined_url(families) == COMBINED_URL

    def test_weights_sort_numerically(self):
        url = build_combined_url([FontFamilySpec("Inter", {"900", "100", "400"})])
        assert url == "https://fonts.googleapis.com/css2?family=Inter:wght@100;400;900&display=swap"


class TestGoogleFontsOptimizer(unittest.TestCase):
    def optimizer(self, **options):
        return GoogleFontsOptimizer(OptimizerSettings(optimize_google_fonts=True, **options))

    def test_extraction(self):
        html = page(
            head=LEGACY
            + CSS2
            + '<link rel="preconnect" href="https://fonts.googleapis.com">'
            + '<noscript><link rel="stylesheet" href="https://fonts.googleapis.com/css?family=Lato"></noscript>'
        )
        links = self.optimizer().extract_google_fonts(html)
        assert [link.tag for link in links] == [LEGACY, CSS2]
        assert links[1].url.endswith("&display=swap")

    def test_combine_mode(self):
        result = self.optimizer().optimize(page(head=LEGACY + "\n" + CSS2 + "\n"))
        assert LEGACY not in result
        assert CSS2 not in result
        expected = (
            '<link rel="stylesheet" href="'
            "https://fonts.googleapis.com/css2?family=Open%20Sans:wght@300;400"
            '&amp;family=Roboto:wght@400&amp;display=swap" media="all">\n</head>'
        )
        assert expected in result

    def test_combine_mode_is_idempotent(self):
        optimizer = self.optimizer()
        once = optimizer.optimize(page(head=LEGACY + "\n" + CSS2 + "\n"))
        assert optimizer.optimize(once) == once

    def test_async_mode(self):
        result = self.optimizer(google_fonts_async_loading=True).optimize(page(head=LEGACY + "\n"))
        href = "https://fonts.googleapis.com/css?family=Open+Sans:300,400"
        assert LEGACY not in result
        assert (
            f'<link rel="preload" href="{href}" as="style" onload="this.rel=\'stylesheet\'">\n'
            f'<noscript><link rel="stylesheet" href="{href}"></noscript>\n</head>'
        ) in result

    def test_excluded_font_untouched(self):
        optimizer = self.optimizer(google_fonts_exclusions=("Open+Sans",))
        result = optimizer.optimize(page(head=LEGACY + "\n"))
        assert LEGACY in result

    def test_no_fonts_only_adds_preconnect(self):
        html = page()
        result = self.optimizer().optimize(html)
        assert result.count('rel="preconnect"') == 2


class TestPreconnectHints(unittest.TestCase):
    def test_hints_follow_head_open(self):
        result = add_preconnect_hints("<html><head><title>t</title></head></html>")
        assert result == (
            "<html><head>\n"
            '<link rel="preconnect" href="https://fonts.googleapis.com">\n'
            '<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>'
            "<title>t</title></head></html>"
        )

    def test_existing_hints_are_respected(self):
        html = (
            '<html><head><link rel="preconnect" href="https://fonts.googleapis.com/">'
            '<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin></head></html>'
        )
        assert add_preconnect_hints(html) == html
