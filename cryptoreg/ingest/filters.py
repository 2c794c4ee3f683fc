# -*- coding: utf-8 -*-
"""Pure helpers shared by every source: hashing, relevance, URL and date cleanup."""
from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import dateparser

from cryptoreg.common.types import TEXT_LIMIT, RegulatoryUpdate

DATE_RE = re.compile(
    r'\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+\d{4}',
    re.I,
)
WS_RE = re.compile(r'\s+')
SKIP_SCHEMES = ('#', 'mailto:', 'tel:', 'javascript:')

DATEPARSER_SETTINGS = {
    'TIMEZONE': 'UTC',
    'RETURN_AS_TIMEZONE_AWARE': True,
}


def fingerprint(title: str, url: str) -> str:
    return hashlib.sha256(f'{title}|{url}'.encode('utf-8')).hexdigest()


def is_relevant(text: Optional[str], keywords: Iterable[str]) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(kw in lower for kw in keywords)


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ''
    return WS_RE.sub(' ', text).strip()


def truncate(text: Optional[str], limit: int = TEXT_LIMIT) -> str:
    return (text or '')[:limit]


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve a scraped link against the page it came from.
    Root-relative links land on the base domain; anchors and
    non-http schemes are rejected.
    """
    href = (href or '').strip()
    if not href or href.lower().startswith(SKIP_SCHEMES):
        return None
    if href.startswith('//'):
        href = 'https:' + href
    lowered = href.lower()
    if lowered.startswith(('http://', 'https://')):
        return href
    if href.startswith('/'):
        u = urlparse(base_url)
        return f'{u.scheme}://{u.netloc}{href}'
    resolved = urljoin(base_url, href)
    return resolved if resolved.lower().startswith(('http://', 'https://')) else None


def parse_published(text: Optional[str]) -> Optional[datetime]:
    text = clean_text(text)
    if not text:
        return None
    try:
        dt = dateparser.parse(text, settings=DATEPARSER_SETTINGS)
    except (ValueError, OverflowError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def find_date_text(text: Optional[str]) -> Optional[str]:
    m = DATE_RE.search(text or '')
    return m.group(0) if m else None


def dedupe_by_hash(items: Sequence[RegulatoryUpdate]) -> List[RegulatoryUpdate]:
    seen = set()
    out: List[RegulatoryUpdate] = []
    for it in items:
        if it.content_hash in seen:
            continue
        seen.add(it.content_hash)
        out.append(it)
    return out
