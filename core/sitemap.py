"""
Sitemap generation and caching.
"""

import time
import xml.etree.ElementTree as ET
from datetime import date
from typing import Callable, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"

# path, changefreq, priority
STATIC_PAGES: List[Tuple[str, str, float]] = [
    ("/", "weekly", 1.0),
    ("/about", "monthly", 0.8),
    ("/training-programs", "weekly", 0.9),
    ("/contact", "monthly", 0.7),
    ("/verify-certificate", "monthly", 0.6),
]


def _add_url(urlset: ET.Element, loc: str, changefreq: str, priority: float, lastmod: str) -> None:
    url = ET.SubElement(urlset, "url")
    ET.SubElement(url, "loc").text = loc
    ET.SubElement(url, "lastmod").text = lastmod
    ET.SubElement(url, "changefreq").text = changefreq
    ET.SubElement(url, "priority").text = f"{priority:.1f}"


def build_sitemap(domain: str, services: Iterable[Mapping], programs: Iterable[Mapping],
                  today: Optional[date] = None) -> bytes:
    """
    Builds the sitemap XML.

    Args:
        domain: Site URL without trailing slash
        services: Service records, each with an "id"
        programs: Training program records with "id", "slug" and "category"
        today: Date used as lastmod for every entry

    Returns:
        bytes: UTF-8 encoded sitemap document
    """
    domain = domain.rstrip("/")
    lastmod = (today or date.today()).isoformat()
    programs = list(programs)

    urlset = ET.Element("urlset", xmlns=SITEMAP_NAMESPACE)

    for path, changefreq, priority in STATIC_PAGES:
        _add_url(urlset, f"{domain}{path}", changefreq, priority, lastmod)

    for service in services:
        _add_url(urlset, f"{domain}/services/{service['id']}", "monthly", 0.7, lastmod)

    for program in programs:
        key = program.get("slug") or program["id"]
        _add_url(urlset, f"{domain}/training-programs/{key}", "weekly", 0.8, lastmod)

    categories = []
    for program in programs:
        category = program.get("category")
        if category and category not in categories:
            categories.append(category)

    for category in categories:
        _add_url(urlset, f"{domain}/training-programs?category={quote(category)}", "weekly", 0.6, lastmod)

    return ET.tostring(urlset, encoding="utf-8", xml_declaration=True)


class SitemapCache:
    """Holds one generated sitemap for ttl seconds."""

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._content: Optional[bytes] = None
        self._generated_at: Optional[float] = None

    def get(self) -> Optional[bytes]:
        """Returns the cached sitemap, or None when empty or expired."""
        if self._content is None:
            return None
        if self.clock() - self._generated_at > self.ttl:
            return None
        return self._content

    def put(self, content: bytes) -> None:
        self._content = content
        self._generated_at = self.clock()

    def reset(self) -> None:
        self._content = None
        self._generated_at = None
