from opportunity_crawler.services.crawler.content import (
    compute_content_hash,
    extract_h1,
    extract_links,
    extract_text,
    looks_blocked,
    looks_like_login_wall,
    resolve_url,
)
from opportunity_crawler.services.crawler.policy import (
    get_host,
    is_blacklisted_host,
    same_host,
    strip_fragment,
    url_allowed_for_source,
)


def test_extract_text_strips_scripts_and_normalizes_whitespace():
    html = """
    <html><head><style>body { color: red }</style><script>var x = 1;</script></head>
    <body><p>Funded   PhD</p>
    <noscript>enable js</noscript><svg><text>icon</text></svg><p>in\nBiology</p></body></html>
    """
    assert extract_text(html) == "Funded PhD in Biology"


def test_extract_h1_returns_first_heading():
    assert extract_h1("<h1>  First\n heading </h1><h1>Second</h1>") == "First heading"
    assert extract_h1("<p>no heading</p>") is None
    assert extract_h1("<h1>   </h1>") is None


def test_resolve_url_never_raises():
    assert resolve_url("https://example.edu/programs/", "apply") == "https://example.edu/programs/apply"
    assert resolve_url("https://example.edu", "/apply") == "https://example.edu/apply"
    assert resolve_url("https://example.edu", "mailto:someone@example.edu") is None
    assert resolve_url("https://example.edu", "javascript:void(0)") is None
    assert resolve_url("https://example.edu", "http://[bad") is None


def test_extract_links_resolves_relative_hrefs():
    html = '<a href="/a">A</a><a>no href</a><a href="https://other.org/b">B</a><a href="mailto:x@y.z">m</a>'
    assert extract_links(html, "https://example.edu/") == [
        "https://example.edu/a",
        "https://other.org/b",
    ]


def test_content_hash_ignores_whitespace_differences():
    assert compute_content_hash("Funded PhD  in\nX") == compute_content_hash(" Funded PhD in X ")


def test_content_hash_changes_when_a_word_changes():
    assert compute_content_hash("Funded PhD in X") != compute_content_hash("Funded PhD in Y")


def test_content_hash_only_considers_leading_text():
    prefix = "word " * 5000
    assert compute_content_hash(prefix + "tail one") == compute_content_hash(prefix + "tail two")


def test_looks_blocked_phrases():
    assert looks_blocked("Sorry, you have been blocked")
    assert looks_blocked("Attention Required! | Cloudflare")
    assert looks_blocked("Please verify you are human. Security check.")
    assert not looks_blocked("Please verify you are human")
    assert not looks_blocked("Funded PhD positions")


def test_login_wall_requires_both_signals():
    assert looks_like_login_wall("Sign in to continue. Forgot password?")
    assert looks_like_login_wall("Log in to your account")
    assert not looks_like_login_wall("Sign in")
    assert not looks_like_login_wall("Create an account")


def test_get_host_strips_www():
    assert get_host("https://WWW.Example.edu/path") == "example.edu"
    assert get_host("ftp://example.edu") is None
    assert get_host("not a url") is None


def test_blacklist_covers_subdomains():
    assert is_blacklisted_host("https://www.facebook.com/groups/x")
    assert is_blacklisted_host("https://m.instagram.com/p")
    assert is_blacklisted_host("https://x.com/someone")
    assert not is_blacklisted_host("https://box.com/file")
    assert not is_blacklisted_host("https://example.edu")


def test_same_host_and_fragment():
    assert same_host("https://example.edu/a", "https://example.edu/b#c")
    assert not same_host("https://example.edu/a", "https://other.edu/a")
    assert strip_fragment("https://example.edu/a#section") == "https://example.edu/a"


def test_url_allowed_for_source_paths():
    assert url_allowed_for_source("https://example.edu/anything", [], [])
    assert url_allowed_for_source("https://example.edu/grad/phd", ["/grad"], [])
    assert not url_allowed_for_source("https://example.edu/news", ["/grad"], [])
    assert not url_allowed_for_source("https://example.edu/grad/login", ["/grad"], ["/grad/login"])
