"""
Tests for sitemap generation and caching
"""
import xml.etree.ElementTree as ET
from datetime import date

from core.sitemap import SITEMAP_NAMESPACE, SitemapCache, build_sitemap

NS = {"sm": SITEMAP_NAMESPACE}


def parse(content: bytes):
    root = ET.fromstring(content)
    return [
        {
            "loc": url.find("sm:loc", NS).text,
            "priority": url.find("sm:priority", NS).text,
            "changefreq": url.find("sm:changefreq", NS).text,
            "lastmod": url.find("sm:lastmod", NS).text,
        }
        for url in root.findall("sm:url", NS)
    ]


class TestBuildSitemap:
    """build_sitemap"""

    def test_static_pages_only(self):
        urls = parse(build_sitemap("https://bhumiconsultancy.in/", [], [], today=date(2024, 6, 1)))

        assert [u["loc"] for u in urls] == [
            "https://bhumiconsultancy.in/",
            "https://bhumiconsultancy.in/about",
            "https://bhumiconsultancy.in/training-programs",
            "https://bhumiconsultancy.in/contact",
            "https://bhumiconsultancy.in/verify-certificate",
        ]
        assert urls[0]["priority"] == "1.0"
        assert all(u["lastmod"] == "2024-06-01" for u in urls)

    def test_dynamic_pages_and_categories(self):
        services = [{"id": 1}, {"id": 2}]
        programs = [
            {"id": 1, "slug": "strategic-business-planning", "category": "Business"},
            {"id": 2, "slug": "financial-management", "category": "Data Science"},
            {"id": 3, "slug": "executive-leadership", "category": "Business"},
        ]

        urls = parse(build_sitemap("https://bhumiconsultancy.in", services, programs, today=date(2024, 6, 1)))
        locs = [u["loc"] for u in urls]

        assert len(urls) == 5 + 2 + 3 + 2
        assert "https://bhumiconsultancy.in/services/2" in locs
        assert "https://bhumiconsultancy.in/training-programs/financial-management" in locs
        assert locs[-2:] == [
            "https://bhumiconsultancy.in/training-programs?category=Business",
            "https://bhumiconsultancy.in/training-programs?category=Data%20Science",
        ]

        program_entry = next(u for u in urls if u["loc"].endswith("/executive-leadership"))
        assert program_entry["priority"] == "0.8"
        assert program_entry["changefreq"] == "weekly"

    def test_program_without_slug_uses_id(self):
        locs = [u["loc"] for u in parse(build_sitemap("https://x.in", [], [{"id": 7, "category": None}]))]
        assert "https://x.in/training-programs/7" in locs

    def test_xml_declaration(self):
        assert build_sitemap("https://x.in", [], []).startswith(b"<?xml")


class TestSitemapCache:
    """SitemapCache with an injected clock"""

    def test_empty(self):
        assert SitemapCache(ttl=60).get() is None

    def test_hit_within_ttl(self):
        now = [0.0]
        cache = SitemapCache(ttl=3600, clock=lambda: now[0])
        cache.put(b"<urlset/>")

        now[0] = 3600.0
        assert cache.get() == b"<urlset/>"

    def test_expires_after_ttl(self):
        now = [0.0]
        cache = SitemapCache(ttl=3600, clock=lambda: now[0])
        cache.put(b"<urlset/>")

        now[0] = 3600.5
        assert cache.get() is None

    def test_reset(self):
        cache = SitemapCache(ttl=3600, clock=lambda: 0.0)
        cache.put(b"<urlset/>")
        cache.reset()
        assert cache.get() is None
