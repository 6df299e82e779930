"""Tests for asset extraction and splicing over raw markup."""

import re
import unittest

from optimizador_pro.markup import (
    extract_inline_styles,
    extract_scripts,
    extract_stylesheet_links,
    insert_after_head_open,
    insert_before_body_close,
    insert_before_head_close,
    iter_inline_scripts,
    remove_fragments,
    sub_outside_noscript,
    tag_attributes,
)

LONG_RULES = ".card { color: #333; padding: 12px; margin: 0 auto; border: 1px solid #ccc; }"


class TestTagAttributes(unittest.TestCase):
    def test_names_are_lowercased_and_booleans_empty(self):
        attributes = tag_attributes('<LINK REL="Stylesheet" HREF="/a.css" data-x>')
        assert attributes == {"rel": "Stylesheet", "href": "/a.css", "data-x": ""}

    def test_entities_are_decoded(self):
        attributes = tag_attributes('<link href="/a.css?a=1&amp;b=2">')
        assert attributes["href"] == "/a.css?a=1&b=2"

    def test_only_first_element_is_read(self):
        attributes = tag_attributes('<script src="/a.js"></script>')
        assert attributes == {"src": "/a.js"}

    def test_garbage(self):
        assert tag_attributes("no markup here") == {}


class TestExtraction(unittest.TestCase):
    def test_stylesheet_links_in_document_order(self):
        html = (
            "<head>"
            "<link rel='stylesheet' href='/one.css'>"
            '<link href="/two.css" media="all" rel="alternate stylesheet">'
            '<link rel="preload" href="/font.woff2" as="font">'
            '<link rel="stylesheet">'
            "</head>"
        )
        links = extract_stylesheet_links(html)
        assert [link.url for link in links] == ["/one.css", "/two.css"]
        assert links[0].tag == "<link rel='stylesheet' href='/one.css'>"

    def test_extraction_does_not_mutate(self):
        html = '<link rel="stylesheet" href="/one.css">'
        copy = str(html)
        extract_stylesheet_links(html)
        assert html == copy

    def test_inline_styles_only_from_head(self):
        html = (
            f"<html><head><style>{LONG_RULES}</style></head>"
            f"<body><style>{LONG_RULES}</style></body></html>"
        )
        styles = extract_inline_styles(html)
        assert len(styles) == 1
        assert styles[0].content == LONG_RULES

    def test_inline_styles_skip_rules(self):
        head = (
            "<head>"
            "<style>.a{color:red}</style>"
            f"<style id='wp-custom-css'>{LONG_RULES}</style>"
            f"<style data-no-optimize>{LONG_RULES}</style>"
            f"<style>@media print {{ {LONG_RULES} }}</style>"
            f"<style>@keyframes spin {{ from {{ opacity: 0 }} to {{ opacity: 1 }} }} {LONG_RULES}</style>"
            "<style>body { display: none; } .loading-overlay { background: rgba(0,0,0,.5); }</style>"
            "<style>   </style>"
            "</head>"
        )
        assert extract_inline_styles(head) == []

    def test_scripts_with_empty_body(self):
        html = (
            '<script src="/a.js"></script>'
            '<script src="/b.js">\n</script>'
            "<script>var inline = 1;</script>"
            '<script src="/c.js">console.log(1)</script>'
        )
        assert [script.url for script in extract_scripts(html)] == ["/a.js", "/b.js"]

    def test_inline_script_bodies(self):
        html = '<script src="/a.js"></script><script>var x = 1;</script><script> </script>'
        assert list(iter_inline_scripts(html)) == ["var x = 1;"]


class TestSplicing(unittest.TestCase):
    def test_insert_before_first_head_close(self):
        html = "<head><title>t</title></head><body><svg><head></head></svg></body>"
        result = insert_before_head_close(html, "<x>")
        assert result.startswith("<head><title>t</title><x>\n</head>")

    def test_insert_before_last_body_close(self):
        html = "<body><template></body></template></body>"
        assert insert_before_body_close(html, "<x>") == "<body><template></body></template><x>\n</body>"

    def test_insert_after_head_open(self):
        html = '<html><head lang="en"><title>t</title></head>'
        assert insert_after_head_open(html, "<x>") == '<html><head lang="en"><x><title>t</title></head>'

    def test_missing_anchors_leave_html_unchanged(self):
        html = "<div>fragment</div>"
        assert insert_before_head_close(html, "<x>") == html
        assert insert_before_body_close(html, "<x>") == html
        assert insert_after_head_open(html, "<x>") == html

    def test_remove_fragments(self):
        html = "<a><b><a>"
        assert remove_fragments(html, ["<a>", "", "<a>"]) == "<b>"

    def test_sub_outside_noscript(self):
        html = "<img src=a><noscript><img src=b></noscript><img src=c>"
        pattern = re.compile(r"<img[^>]*>")
        result = sub_outside_noscript(pattern, lambda match: "<IMG>", html)
        assert result == "<IMG><noscript><img src=b></noscript><IMG>"
