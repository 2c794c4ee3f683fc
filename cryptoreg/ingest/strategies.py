# -*- coding: utf-8 -*-
"""
Interchangeable ways of getting candidate items out of a source.

A strategy returns raw candidate dicts (title, link, published, summary)
and never validates them; that happens once, in the source adapter.
Whole-strategy failures raise and are recorded by the fallback chain.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from cryptoreg.ingest.parsers import browser
from cryptoreg.ingest.parsers.html_list import fetch
from cryptoreg.ingest.parsers.rss_generic import parse_rss

log = logging.getLogger(__name__)

Candidate = Dict[str, Any]
Extractor = Callable[[str, str], List[Candidate]]
Renderer = Callable[..., Awaitable[str]]


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f'HTTP {exc.response.status_code}'
    return f'{type(exc).__name__}: {exc}'


@dataclass
class Attempt:
    candidates: List[Candidate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class Strategy:
    kind = 'base'

    def __init__(self, name: str, keywords: Optional[Sequence[str]] = None):
        self.name = name
        # overrides the source keyword list when the page uses other wording
        self.keywords = keywords

    async def fetch_candidates(self, client: httpx.AsyncClient) -> Attempt:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.name}>'


class FeedStrategy(Strategy):
    kind = 'feed'

    def __init__(self, name: str, feeds: Sequence[Tuple[str, str]],
                 keywords: Optional[Sequence[str]] = None):
        super().__init__(name, keywords)
        self.feeds = list(feeds)

    async def fetch_candidates(self, client: httpx.AsyncClient) -> Attempt:
        attempt = Attempt()
        for feed_name, url in self.feeds:
            try:
                entries = await parse_rss(client, url)
            except Exception as e:  # per-feed
                attempt.errors.append(f'Failed to fetch {feed_name}: {describe_error(e)}')
                continue
            log.info('[%s] Found %d items from %s', self.name, len(entries), feed_name)
            attempt.candidates.extend(entries)
        return attempt


class HtmlStrategy(Strategy):
    kind = 'html'

    def __init__(self, name: str, url: str, extract: Extractor,
                 headers: Optional[Dict[str, str]] = None,
                 keywords: Optional[Sequence[str]] = None):
        super().__init__(name, keywords)
        self.url = url
        self.extract = extract
        self.headers = headers

    async def fetch_candidates(self, client: httpx.AsyncClient) -> Attempt:
        html = await fetch(client, self.url, headers=self.headers)
        return Attempt(candidates=self.extract(html, self.url))


class BrowserStrategy(Strategy):
    kind = 'browser'

    def __init__(self, name: str, url: str, extract: Extractor,
                 wait_selector: Optional[str] = None,
                 wait_required: bool = False,
                 timeout: float = 30.0,
                 renderer: Renderer = browser.render,
                 keywords: Optional[Sequence[str]] = None):
        super().__init__(name, keywords)
        self.url = url
        self.extract = extract
        self.wait_selector = wait_selector
        self.wait_required = wait_required
        self.timeout = timeout
        self.renderer = renderer

    async def fetch_candidates(self, client: httpx.AsyncClient) -> Attempt:
        log.info('[%s] Rendering %s in browser...', self.name, self.url)
        html = await self.renderer(
            self.url,
            self.wait_selector,
            timeout=self.timeout,
            wait_required=self.wait_required,
        )
        return Attempt(candidates=self.extract(html, self.url))
