# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List, Optional

import feedparser
import httpx
from selectolax.parser import HTMLParser

from cryptoreg.ingest.filters import clean_text


def html_to_text(fragment: Optional[str]) -> str:
    if not fragment:
        return ''
    if '<' not in fragment:
        return clean_text(fragment)
    body = HTMLParser(fragment).body
    return clean_text(body.text(separator=' ') if body else '')


async def fetch_feed(client: httpx.AsyncClient, rss_url: str) -> feedparser.FeedParserDict:
    r = await client.get(rss_url)
    r.raise_for_status()
    # content-location lets feedparser resolve relative entry links
    headers = {**r.headers, 'content-location': str(r.url)}
    feed = feedparser.parse(r.content, response_headers=headers)
    # an empty channel is a valid feed; only reject what isn't a feed at all
    if not feed.entries and not feed.get('version'):
        raise ValueError(f'unparseable feed: {feed.get("bozo_exception")}')
    return feed


def parse_entries(feed: feedparser.FeedParserDict) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for entry in getattr(feed, 'entries', []):
        summary = entry.get('summary') or entry.get('description') or ''
        items.append({
            'title': (entry.get('title') or '').strip(),
            'link': (entry.get('link') or '').strip(),
            'published': entry.get('published') or entry.get('updated'),
            'summary': html_to_text(summary) or None,
        })
    return items


async def parse_rss(client: httpx.AsyncClient, rss_url: str) -> List[Dict[str, Any]]:
    return parse_entries(await fetch_feed(client, rss_url))
