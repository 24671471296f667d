import unittest

from policyfront.ingestion.url_utils import canonicalize_url, outlet_domain


class TestUrlCanonicalization(unittest.TestCase):
    def test_canonicalize_strips_tracking_params(self):
        raw = "https://Example.com/path/to/article/?utm_source=x&utm_medium=y&id=123&gclid=AAA#section"
        canon = canonicalize_url(raw)
        self.assertEqual(canon, "https://example.com/path/to/article?id=123")

    def test_equivalent_urls_share_a_dedup_key(self):
        a = "https://example.com/a?utm_source=x&id=1&b=2"
        b = "https://example.com/a?b=2&id=1&fbclid=zzz"
        self.assertEqual(canonicalize_url(a), canonicalize_url(b))

    def test_empty_url(self):
        self.assertEqual(canonicalize_url(""), "")

    def test_outlet_domain(self):
        self.assertEqual(outlet_domain("https://www.SacBee.com/news/article1.html"), "sacbee.com")
        self.assertEqual(outlet_domain("http://news.example.org:8080/x"), "news.example.org")
        self.assertEqual(outlet_domain("not a url"), "")
        self.assertEqual(outlet_domain(""), "")


if __name__ == "__main__":
    unittest.main()
