"""
URL resolution helpers shared by the traversal and the result sink.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

CRAWLABLE_SCHEMES: frozenset[str] = frozenset(("http", "https"))


def ensure_scheme(url: str) -> str:
    """Prepend http:// to a URL that has no scheme."""
    if "://" in url:
        return url
    return f"http://{url}"


def resolve_url(ref: str, base: str) -> Optional[str]:
    """
    Resolve a (possibly relative) reference against base.

    - Normalizes scheme/host case
    - Removes default ports (:80, :443)
    - Uses "/" for an empty path on http(s) URLs
    - Keeps querystrings and fragments

    Returns None when the reference cannot be parsed.
    """
    try:
        joined = urljoin(base, ref.strip())
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in CRAWLABLE_SCHEMES or not parsed.hostname:
        return joined

    hostname = parsed.hostname.lower()
    if (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        netloc = hostname
    elif port:
        netloc = f"{hostname}:{port}"
    else:
        netloc = hostname
    if parsed.username:
        userinfo = parsed.username
        if parsed.password:
            userinfo = f"{userinfo}:{parsed.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunparse((
        scheme,
        netloc,
        parsed.path or "/",
        parsed.params,
        parsed.query,
        parsed.fragment,
    ))


def is_same_site(hostname: str, host: str) -> bool:
    """Check if hostname equals host or is one of its subdomains."""
    hostname = hostname.lower().rstrip(".")
    return hostname == host or hostname.endswith("." + host)


def admit_link(href: str, base: str, host: str) -> Optional[str]:
    """
    Resolve an anchor href for the frontier of host.

    Only http(s) URLs on host or a subdomain are admitted; the fragment
    is dropped. Returns None for anything else.
    """
    try:
        joined, _ = urldefrag(urljoin(base, href.strip()))
        parsed = urlparse(joined)
    except ValueError:
        return None

    if parsed.scheme.lower() not in CRAWLABLE_SCHEMES or not parsed.hostname:
        return None
    if not is_same_site(parsed.hostname, host):
        return None
    return joined
