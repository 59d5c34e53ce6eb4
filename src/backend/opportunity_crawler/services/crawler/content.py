"""
HTML content helpers: visible text, headings, links, hashing and
bot-block / login-wall heuristics.
"""

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

CONTENT_HASH_CHARS = 20_000

_WHITESPACE_RE = re.compile(r"\s+")
_STRIPPED_TAGS = ["script", "style", "noscript", "svg"]

BLOCK_PHRASES = (
    "sorry, you have been blocked",
    "access denied",
    "attention required",
    "cloudflare",
    "bot detection",
)


@dataclass(frozen=True)
class Anchor:
    href: str
    text: str


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def extract_text(html: str) -> str:
    """Visible page text with scripts, styles and inline SVG removed."""
    soup = _soup(html)
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    return normalize_whitespace(soup.get_text(" "))


def extract_h1(html: str) -> str | None:
    h1 = _soup(html).find("h1")
    if h1 is None:
        return None
    return normalize_whitespace(h1.get_text(" ")) or None


def resolve_url(base: str, href: str) -> str | None:
    """Resolve href against base; None unless the result is an absolute http(s) URL."""
    try:
        url = urljoin(base, href.strip())
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return url


def extract_anchors(html: str, base_url: str) -> list[Anchor]:
    """Every `<a href>` in document order, resolved to absolute URLs."""
    anchors = []
    for a in _soup(html).find_all("a", href=True):
        href = resolve_url(base_url, a["href"])
        if href is None:
            continue
        anchors.append(Anchor(href=href, text=normalize_whitespace(a.get_text(" "))))
    return anchors


def extract_links(html: str, base_url: str) -> list[str]:
    return [anchor.href for anchor in extract_anchors(html, base_url)]


def compute_content_hash(text: str) -> str:
    """SHA-256 hex digest of the first 20k characters of normalized text."""
    normalized = normalize_whitespace(text)[:CONTENT_HASH_CHARS]
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def looks_blocked(text: str) -> bool:
    t = text.lower()
    if any(phrase in t for phrase in BLOCK_PHRASES):
        return True
    return "verify you are human" in t and "security" in t


def looks_like_login_wall(text: str) -> bool:
    t = text.lower()
    return (
        ("sign in" in t or "log in" in t or "login" in t)
        and ("password" in t or "account" in t)
    )
