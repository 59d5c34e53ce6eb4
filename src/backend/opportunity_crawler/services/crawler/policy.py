"""
Host-level crawl policy: blacklist, same-host checks and source path filters.
"""

from urllib.parse import urlsplit, urlunsplit

# Social networks never hold opportunity pages worth crawling and aggressively
# block bots; subdomains are covered too.
DOMAIN_BLACKLIST: frozenset[str] = frozenset({
    "instagram.com",
    "facebook.com",
    "twitter.com",
    "x.com",
})


def get_host(url: str) -> str | None:
    """Host key of an absolute http(s) URL (lowercase, leading www. removed), or None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    host = parts.hostname.lower()
    return host[4:] if host.startswith("www.") else host


def is_blacklisted_host(url: str) -> bool:
    host = get_host(url)
    if host is None:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in DOMAIN_BLACKLIST)


def same_host(a: str, b: str) -> bool:
    host_a, host_b = get_host(a), get_host(b)
    return host_a is not None and host_a == host_b


def strip_fragment(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit(parts._replace(fragment=""))


def url_allowed_for_source(url: str, allow_paths: list[str], block_paths: list[str]) -> bool:
    """
    Apply a source's path filters to a URL.

    Any block prefix rejects the URL. With no allow prefixes everything else
    passes; otherwise the path must start with one of them.
    """
    path = urlsplit(url).path or "/"
    if any(path.startswith(prefix) for prefix in block_paths if prefix):
        return False
    allow = [prefix for prefix in allow_paths if prefix]
    if not allow:
        return True
    return any(path.startswith(prefix) for prefix in allow)
