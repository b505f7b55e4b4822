"""
HTML parsing: raw image references and outbound link references.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

# background / background-image declarations inside inline style attributes
BACKGROUND_URL_RE = re.compile(r"background(-image)?\s*:\s*url\(([^)]+)\)", re.IGNORECASE)

PRELOAD_RELS: Tuple[str, ...] = ("preload", "prefetch")


def _add(refs: Dict[str, None], value: object) -> None:
    if isinstance(value, str):
        value = value.strip()
        if value:
            refs[value] = None


def parse_srcset(srcset: str) -> List[str]:
    """Return the URL token of every srcset candidate, dropping descriptors."""
    urls = []
    for candidate in srcset.split(","):
        parts = candidate.split()
        if parts:
            urls.append(parts[0])
    return urls


def parse_style_backgrounds(style: str) -> List[str]:
    """Return url(...) values of background declarations in an inline style."""
    urls = []
    for match in BACKGROUND_URL_RE.finditer(style):
        url = match.group(2).strip().strip("'\"").strip()
        if url:
            urls.append(url)
    return urls


def extract_images_and_links(
    html: str, base_url: Optional[str] = None
) -> Tuple[List[str], List[str]]:
    """
    Extract image references and anchor hrefs from HTML.

    Both lists are unresolved and de-duplicated, keeping first-seen order.
    base_url names the page the HTML came from; resolving the references
    against it is left to the caller.
    """
    soup = BeautifulSoup(html, "lxml")
    images: Dict[str, None] = {}
    links: Dict[str, None] = {}

    for img in soup.find_all("img"):
        _add(images, img.get("src"))
        srcset = img.get("srcset")
        if srcset:
            for url in parse_srcset(srcset):
                _add(images, url)

    for tag in soup.find_all(style=True):
        for url in parse_style_backgrounds(tag["style"]):
            _add(images, url)

    for tag in soup.find_all("link", href=True):
        rels = tag.get("rel") or []
        if isinstance(rels, str):
            rels = rels.split()
        if any(rel.lower() in PRELOAD_RELS for rel in rels):
            _add(images, tag["href"])

    for tag in soup.find_all("meta", attrs={"property": "og:image"}):
        _add(images, tag.get("content"))

    for a in soup.find_all("a", href=True):
        _add(links, a["href"])

    return list(images), list(links)
