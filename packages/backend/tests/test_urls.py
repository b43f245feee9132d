"""Tests for URL normalization and base URL resolution."""

from types import SimpleNamespace

from livecast.urls import BaseUrlResolver, normalize_url, normalize_urls

BASE = "https://live.example.com"


def test_relative_path_becomes_absolute():
    assert normalize_url("/objects/logo.png", BASE) == f"{BASE}/objects/logo.png"


def test_path_without_leading_slash():
    assert normalize_url("objects/logo.png", BASE + "/") == f"{BASE}/objects/logo.png"


def test_absolute_url_unchanged():
    url = "https://cdn.other.com/img.png"
    assert normalize_url(url, BASE) == url
    assert normalize_url("//cdn.other.com/img.png", BASE) == "//cdn.other.com/img.png"


def test_empty_values_pass_through():
    assert normalize_url(None, BASE) is None
    assert normalize_url("", BASE) == ""


def test_normalize_is_idempotent():
    for value in ("/objects/a.png", "b.png", "https://x.io/c.png", "data:image/png;base64,AA"):
        once = normalize_url(value, BASE)
        assert normalize_url(once, BASE) == once


def test_normalize_urls_rewrites_object_paths_only():
    config = {
        "imageUrl": "/objects/banner.png",
        "ctaLink": "/shop/sale",
        "title": "Sale",
        "slides": [{"src": "/objects/1.png"}, {"src": "https://x.io/2.png"}],
        "displayCount": 5,
    }
    out = normalize_urls(config, BASE)
    assert out["imageUrl"] == f"{BASE}/objects/banner.png"
    assert out["ctaLink"] == "/shop/sale"
    assert out["title"] == "Sale"
    assert out["slides"] == [{"src": f"{BASE}/objects/1.png"}, {"src": "https://x.io/2.png"}]
    assert out["displayCount"] == 5
    assert normalize_urls(out, BASE) == out


def test_resolver_prefers_configured_url():
    resolver = BaseUrlResolver("https://public.example.com/", port=5000)
    assert resolver.resolve("http", "internal:5000") == "https://public.example.com"


def test_resolver_caches_first_derived_url():
    resolver = BaseUrlResolver(port=5000)
    assert resolver.resolve() == "http://localhost:5000"
    assert resolver.resolve("https", "a.example.com") == "https://a.example.com"
    # Background callers (no request) reuse it.
    assert resolver.resolve() == "https://a.example.com"
    assert resolver.resolve("https", "b.example.com") == "https://a.example.com"


def test_resolver_honours_forwarded_headers():
    request = SimpleNamespace(
        headers={"x-forwarded-proto": "https, http", "x-forwarded-host": "viewer.example.com"},
        url=SimpleNamespace(scheme="http"),
    )
    assert BaseUrlResolver().from_request(request) == "https://viewer.example.com"
