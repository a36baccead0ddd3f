"""Locale table, locale negotiation and hreflang URL generation.

Every function here is pure: no I/O and no module state beyond the static
locale table, so results can be recomputed freely for each page build.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .config import ConfigError
from .models import AlternateUrls

DEFAULT_BASE_URL = "https://hasanshiri.online"
LOCALE_COOKIE_NAME = "site_locale"
LOCALE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365

# ISO 639-2 codes browsers occasionally send for Persian.
_LOCALE_ALIASES = {"per": "fa", "fas": "fa"}

_SKIP_PREFIXES = ("/_next", "/api", "/admin", "/auth", "/monitoring", "/health", "/docs")
_SKIP_EXACT = ("/favicon.ico", "/robots.txt", "/sitemap.xml", "/openapi.json")


@dataclass(frozen=True)
class LocaleConfig:
    default_locale: str
    locales: tuple[str, ...]
    locale_names: dict[str, str] = field(default_factory=dict)
    locale_direction: dict[str, str] = field(default_factory=dict)
    og_locales: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_locale not in self.locales:
            raise ConfigError(f"default locale {self.default_locale!r} is not in locales")
        for locale in self.locales:
            if locale not in self.locale_names:
                raise ConfigError(f"missing display name for locale {locale!r}")
            if self.locale_direction.get(locale) not in ("ltr", "rtl"):
                raise ConfigError(f"locale {locale!r} needs direction 'ltr' or 'rtl'")


I18N_CONFIG = LocaleConfig(
    default_locale="en",
    locales=("en", "fa"),
    locale_names={"en": "English", "fa": "فارسی"},
    locale_direction={"en": "ltr", "fa": "rtl"},
    og_locales={"en": "en_US", "fa": "fa_IR"},
)


def is_valid_locale(candidate: object, config: LocaleConfig = I18N_CONFIG) -> bool:
    if not isinstance(candidate, str) or not candidate:
        return False
    return candidate in config.locales


def get_alternate_locale(locale: str | None, config: LocaleConfig = I18N_CONFIG) -> str:
    """Return the language-switcher target for ``locale``.

    Only defined for a two-locale table; with any other number of locales,
    or an unknown ``locale``, the default locale is returned.
    """
    if len(config.locales) != 2 or not is_valid_locale(locale, config):
        return config.default_locale
    first, second = config.locales
    return second if locale == first else first


def get_locale_name(locale: str, config: LocaleConfig = I18N_CONFIG) -> str:
    return config.locale_names.get(locale) or locale


def get_locale_direction(locale: str, config: LocaleConfig = I18N_CONFIG) -> str:
    return config.locale_direction.get(locale) or "ltr"


def strip_locale_prefix(path: str, config: LocaleConfig = I18N_CONFIG) -> str:
    """Remove exactly one leading ``/{locale}`` segment from ``path``.

    A path without a leading slash is treated as if it had one. The empty
    string stays empty so that the bare locale root carries no slash.
    """
    if path and not path.startswith("/"):
        path = "/" + path
    for locale in config.locales:
        prefix = f"/{locale}"
        if path == prefix:
            return ""
        if path.startswith(prefix + "/"):
            return path[len(prefix):]
    return path


def build_locale_url(
    locale: str, path: str, base_url: str = DEFAULT_BASE_URL, config: LocaleConfig = I18N_CONFIG
) -> str:
    clean_path = strip_locale_prefix(path, config)
    return f"{base_url.rstrip('/')}/{locale}{clean_path}"


def generate_alternate_urls(
    path: str, base_url: str = DEFAULT_BASE_URL, config: LocaleConfig = I18N_CONFIG
) -> AlternateUrls:
    clean_path = strip_locale_prefix(path, config)
    base = base_url.rstrip("/")
    languages = {locale: f"{base}/{locale}{clean_path}" for locale in config.locales}
    default_url = languages[config.default_locale]
    languages["x-default"] = default_url
    return AlternateUrls(canonical=default_url, languages=languages)


def has_locale_prefix(pathname: str, config: LocaleConfig = I18N_CONFIG) -> bool:
    return any(
        pathname == f"/{locale}" or pathname.startswith(f"/{locale}/")
        for locale in config.locales
    )


def should_skip_locale(pathname: str) -> bool:
    if pathname in _SKIP_EXACT:
        return True
    if any(pathname == prefix or pathname.startswith(prefix + "/") for prefix in _SKIP_PREFIXES):
        return True
    return "." in pathname


def locale_redirect_path(pathname: str, locale: str) -> str:
    if not pathname or pathname == "/":
        return f"/{locale}"
    if not pathname.startswith("/"):
        pathname = "/" + pathname
    return f"/{locale}{pathname}"


def parse_accept_language(header: str | None) -> list[tuple[str, float]]:
    """Parse an Accept-Language header into ``(primary subtag, q)`` pairs, best first."""
    if not header or not isinstance(header, str):
        return []
    parsed: list[tuple[str, float, int]] = []
    for index, item in enumerate(header.split(",")):
        parts = [part.strip() for part in item.split(";")]
        code = parts[0].split("-")[0].lower()
        if not code or code == "*":
            continue
        quality = 1.0
        for param in parts[1:]:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = -1.0
        if quality <= 0:
            continue
        parsed.append((code, quality, index))
    parsed.sort(key=lambda item: (-item[1], item[2]))
    return [(code, quality) for code, quality, _ in parsed]


def resolve_preferred_locale(
    cookie_locale: str | None,
    accept_language: str | None,
    config: LocaleConfig = I18N_CONFIG,
) -> str:
    if is_valid_locale(cookie_locale, config):
        return cookie_locale
    for code, _quality in parse_accept_language(accept_language):
        code = _LOCALE_ALIASES.get(code, code)
        if code in config.locales:
            return code
    return config.default_locale
