from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from xml.etree import ElementTree

from .i18n import (
    DEFAULT_BASE_URL,
    I18N_CONFIG,
    LocaleConfig,
    build_locale_url,
    generate_alternate_urls,
    get_locale_direction,
    strip_locale_prefix,
)
from .models import Article

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NS = "http://www.w3.org/1999/xhtml"

STATIC_PAGES = (
    ("", "weekly", 1.0),
    ("/blog", "daily", 0.8),
)
ARTICLE_CHANGE_FREQUENCY = "weekly"
ARTICLE_PRIORITY = 0.7

ROBOTS_DISALLOW = ("/admin/", "/auth/", "/api/", "/_next/")
BLOCKED_CRAWLERS = ("GPTBot", "ChatGPT-User", "Google-Extended", "CCBot")


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    last_modified: str | None
    change_frequency: str
    priority: float
    alternates: dict[str, str]


def build_page_metadata(
    locale: str,
    path: str,
    title: str,
    description: str = "",
    base_url: str = DEFAULT_BASE_URL,
    config: LocaleConfig = I18N_CONFIG,
) -> dict[str, object]:
    """Head metadata for one page in one locale.

    The canonical points at the page in the requested locale; the language
    map (with ``x-default``) comes from :func:`generate_alternate_urls`.
    """
    alternates = generate_alternate_urls(path, base_url, config)
    url = build_locale_url(locale, path, base_url, config)
    og_locale = config.og_locales.get(locale, locale)
    alternate_og = [
        config.og_locales.get(other, other) for other in config.locales if other != locale
    ]
    return {
        "title": title,
        "description": description,
        "dir": get_locale_direction(locale, config),
        "alternates": {"canonical": url, "languages": alternates.languages},
        "open_graph": {
            "url": url,
            "locale": og_locale,
            "alternate_locale": alternate_og,
        },
    }


def build_sitemap_entries(
    articles: Iterable[Article],
    base_url: str,
    now: str,
    config: LocaleConfig = I18N_CONFIG,
) -> list[SitemapEntry]:
    articles = list(articles)
    entries: list[SitemapEntry] = []
    for locale in config.locales:
        for page, frequency, priority in STATIC_PAGES:
            entries.append(
                SitemapEntry(
                    url=build_locale_url(locale, page, base_url, config),
                    last_modified=now,
                    change_frequency=frequency,
                    priority=priority,
                    alternates=_locale_alternates(page, base_url, config),
                )
            )
    for locale in config.locales:
        for article in articles:
            page = f"/blog/{article.slug}"
            entries.append(
                SitemapEntry(
                    url=build_locale_url(locale, page, base_url, config),
                    last_modified=article.updated_at or article.published_at,
                    change_frequency=ARTICLE_CHANGE_FREQUENCY,
                    priority=ARTICLE_PRIORITY,
                    alternates=_locale_alternates(page, base_url, config),
                )
            )
    return entries


def _locale_alternates(page: str, base_url: str, config: LocaleConfig) -> dict[str, str]:
    clean = strip_locale_prefix(page, config)
    return {locale: build_locale_url(locale, clean, base_url, config) for locale in config.locales}


def render_sitemap_xml(entries: Iterable[SitemapEntry]) -> str:
    ElementTree.register_namespace("", SITEMAP_NS)
    ElementTree.register_namespace("xhtml", XHTML_NS)
    urlset = ElementTree.Element(f"{{{SITEMAP_NS}}}urlset")
    for entry in entries:
        node = ElementTree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
        ElementTree.SubElement(node, f"{{{SITEMAP_NS}}}loc").text = entry.url
        if entry.last_modified:
            ElementTree.SubElement(node, f"{{{SITEMAP_NS}}}lastmod").text = entry.last_modified
        ElementTree.SubElement(node, f"{{{SITEMAP_NS}}}changefreq").text = entry.change_frequency
        ElementTree.SubElement(node, f"{{{SITEMAP_NS}}}priority").text = f"{entry.priority:.1f}"
        for locale, href in entry.alternates.items():
            ElementTree.SubElement(
                node,
                f"{{{XHTML_NS}}}link",
                {"rel": "alternate", "hreflang": locale, "href": href},
            )
    body = ElementTree.tostring(urlset, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


def build_robots_txt(base_url: str) -> str:
    base = base_url.rstrip("/")
    lines = ["User-agent: *", "Allow: /"]
    lines.extend(f"Disallow: {path}" for path in ROBOTS_DISALLOW)
    for crawler in BLOCKED_CRAWLERS:
        lines.append("")
        lines.append(f"User-agent: {crawler}")
        lines.append("Disallow: /")
    lines.append("")
    lines.append(f"Sitemap: {base}/sitemap.xml")
    lines.append(f"Host: {base}")
    return "\n".join(lines) + "\n"
