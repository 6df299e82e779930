"""Tests for adding defer to local scripts."""

from optimizador_pro.config import OptimizerSettings
from optimizador_pro.defer import DeferJSOptimizer

from support import SiteTestCase, page


class TestDeferJSOptimizer(SiteTestCase):
    def optimizer(self, **options):
        return DeferJSOptimizer(OptimizerSettings(defer_js=True, **options), self.resolver)

    def test_defer_inserted_before_src(self):
        tag = '<script id="app-js" src="/wp-content/themes/site/app.js?ver=2"></script>'
        result = self.optimizer().defer_tag(tag)
        assert result == '<script id="app-js" defer src="/wp-content/themes/site/app.js?ver=2"></script>'

    def test_data_src_is_not_mistaken_for_src(self):
        tag = '<script data-src="/lazy.js" src="/app.js"></script>'
        assert self.optimizer().defer_tag(tag) == '<script data-src="/lazy.js" defer src="/app.js"></script>'

    def test_same_host_absolute_url(self):
        tag = "<script src='https://example.com/app.js'></script>"
        assert self.optimizer().defer_tag(tag) == "<script defer src='https://example.com/app.js'></script>"

    def test_tags_left_alone(self):
        optimizer = self.optimizer(defer_js_exclusions=("plugins/checkout",))
        untouched = [
            "<script>var inline = true;</script>",
            '<script defer src="/already.js"></script>',
            '<script async src="/async.js"></script>',
            '<script type="module" src="/module.js"></script>',
            '<script src="https://cdn.example.org/lib.js"></script>',
            '<script src="//cdn.example.org/lib.js"></script>',
            '<script src="/wp-includes/js/jquery/jquery.min.js"></script>',
            '<script src="/wp-includes/js/jquery/jquery-migrate.min.js"></script>',
            '<script src="/wp-includes/js/admin-bar.min.js"></script>',
            '<script src="/wp-content/plugins/checkout/pay.js"></script>',
            '<script data-no-defer="1" src="/important.js"></script>',
            '<script class="skip-defer" src="/important.js"></script>',
        ]
        for tag in untouched:
            assert optimizer.defer_tag(tag) == tag

    def test_page_rewrite_preserves_other_bytes(self):
        body = (
            '<script src="/one.js"></script>\n'
            "<script>var keep = 1;</script>\n"
            '<script src="https://cdn.example.org/lib.js"></script>\n'
        )
        result = self.optimizer().optimize(page(body=body))
        expected = (
            '<script defer src="/one.js"></script>\n'
            "<script>var keep = 1;</script>\n"
            '<script src="https://cdn.example.org/lib.js"></script>\n'
        )
        assert result == page(body=expected)

    def test_optimize_is_idempotent(self):
        html = page(body='<script src="/one.js"></script><script src="/two.js"></script>')
        optimizer = self.optimizer()
        once = optimizer.optimize(html)
        assert once.count("defer src=") == 2
        assert optimizer.optimize(once) == once
