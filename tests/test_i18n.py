import pytest

from portfolio.config import ConfigError
from portfolio.i18n import (
    I18N_CONFIG,
    LocaleConfig,
    build_locale_url,
    generate_alternate_urls,
    get_alternate_locale,
    get_locale_direction,
    get_locale_name,
    has_locale_prefix,
    is_valid_locale,
    locale_redirect_path,
    parse_accept_language,
    resolve_preferred_locale,
    should_skip_locale,
    strip_locale_prefix,
)


def test_locale_table_defaults():
    assert I18N_CONFIG.default_locale == "en"
    assert I18N_CONFIG.locales == ("en", "fa")
    assert get_locale_name("fa") == "فارسی"
    assert get_locale_direction("fa") == "rtl"
    assert get_locale_direction("en") == "ltr"


def test_is_valid_locale():
    assert is_valid_locale("en")
    assert is_valid_locale("fa")
    assert not is_valid_locale("de")
    assert not is_valid_locale("")
    assert not is_valid_locale(None)
    assert not is_valid_locale("EN")


def test_get_alternate_locale_swaps_pair():
    assert get_alternate_locale("en") == "fa"
    assert get_alternate_locale("fa") == "en"
    assert get_alternate_locale("de") == "en"


def test_get_alternate_locale_defaults_outside_two_locales():
    config = LocaleConfig(
        default_locale="en",
        locales=("en", "fa", "de"),
        locale_names={"en": "English", "fa": "Farsi", "de": "Deutsch"},
        locale_direction={"en": "ltr", "fa": "rtl", "de": "ltr"},
    )
    assert get_alternate_locale("fa", config) == "en"


def test_locale_config_rejects_unknown_default():
    with pytest.raises(ConfigError):
        LocaleConfig(
            default_locale="de",
            locales=("en",),
            locale_names={"en": "English"},
            locale_direction={"en": "ltr"},
        )


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/en/blog/x", "/blog/x"),
        ("/fa/projects", "/projects"),
        ("/en", ""),
        ("/", "/"),
        ("", ""),
        ("/blog", "/blog"),
        ("/english/page", "/english/page"),
        ("/fa/en/x", "/en/x"),
        ("blog", "/blog"),
        ("fa/blog", "/blog"),
    ],
)
def test_strip_locale_prefix(path, expected):
    assert strip_locale_prefix(path) == expected


def test_strip_locale_prefix_idempotent_on_clean_paths():
    for path in ("/blog", "/blog/post", "/", "/english"):
        assert strip_locale_prefix(strip_locale_prefix(path)) == strip_locale_prefix(path)


def test_build_locale_url():
    assert build_locale_url("fa", "/en/blog") == "https://hasanshiri.online/fa/blog"
    assert build_locale_url("en", "/", "https://example.com/") == "https://example.com/en/"


def test_generate_alternate_urls_root():
    urls = generate_alternate_urls("/en")
    assert urls.canonical == "https://hasanshiri.online/en"
    assert urls.languages == {
        "en": "https://hasanshiri.online/en",
        "fa": "https://hasanshiri.online/fa",
        "x-default": "https://hasanshiri.online/en",
    }


def test_generate_alternate_urls_blog_post():
    urls = generate_alternate_urls("/fa/blog/my-post")
    assert urls.canonical == "https://hasanshiri.online/en/blog/my-post"
    assert urls.languages["fa"] == "https://hasanshiri.online/fa/blog/my-post"
    assert urls.languages["x-default"] == urls.languages["en"]


def test_generate_alternate_urls_custom_base():
    urls = generate_alternate_urls("/blog", "https://example.com")
    assert urls.languages["en"] == "https://example.com/en/blog"
    assert urls.languages["fa"] == "https://example.com/fa/blog"


def test_generate_alternate_urls_same_for_every_locale_prefix():
    plain = generate_alternate_urls("/projects")
    assert generate_alternate_urls("/en/projects") == plain
    assert generate_alternate_urls("/fa/projects") == plain


def test_generate_alternate_urls_as_dict():
    payload = generate_alternate_urls("/blog").as_dict()
    assert set(payload) == {"canonical", "languages"}
    assert set(payload["languages"]) == {"en", "fa", "x-default"}


def test_has_locale_prefix():
    assert has_locale_prefix("/en")
    assert has_locale_prefix("/fa/blog")
    assert not has_locale_prefix("/english")
    assert not has_locale_prefix("/")


def test_should_skip_locale():
    assert should_skip_locale("/api/cron")
    assert should_skip_locale("/admin/projects")
    assert should_skip_locale("/sitemap.xml")
    assert should_skip_locale("/images/logo.png")
    assert not should_skip_locale("/blog")
    assert not should_skip_locale("/")
    assert not should_skip_locale("/apiary")


def test_locale_redirect_path():
    assert locale_redirect_path("/", "fa") == "/fa"
    assert locale_redirect_path("", "en") == "/en"
    assert locale_redirect_path("/blog/x", "fa") == "/fa/blog/x"


def test_parse_accept_language_orders_by_quality():
    parsed = parse_accept_language("en;q=0.5, fa-IR, de;q=0.8, *;q=0.1")
    assert [code for code, _ in parsed] == ["fa", "de", "en"]


def test_parse_accept_language_drops_zero_quality():
    assert parse_accept_language("fa;q=0, en") == [("en", 1.0)]
    assert parse_accept_language(None) == []
    assert parse_accept_language("") == []


def test_resolve_preferred_locale():
    assert resolve_preferred_locale("fa", "en") == "fa"
    assert resolve_preferred_locale("de", "fa-IR,en;q=0.8") == "fa"
    assert resolve_preferred_locale(None, "de, fas;q=0.9") == "fa"
    assert resolve_preferred_locale(None, "de, fr") == "en"
    assert resolve_preferred_locale(None, None) == "en"
