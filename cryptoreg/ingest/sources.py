# -*- coding: utf-8 -*-
"""
The five regulator sources and the adapter that turns their raw candidates
into validated, hashed, relevance-stamped RegulatoryUpdate records.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from cryptoreg.common.config import Settings
from cryptoreg.common.types import RegulatoryUpdate, ScrapeResult, Source
from cryptoreg.ingest.chain import FallbackChain
from cryptoreg.ingest.filters import (
    absolute_url,
    clean_text,
    dedupe_by_hash,
    fingerprint,
    is_relevant,
    parse_published,
    truncate,
)
from cryptoreg.ingest.parsers import browser
from cryptoreg.ingest.parsers.html_list import (
    CARD_CONTAINERS,
    CARD_TITLES,
    DATE_NODES,
    parse_cards,
    parse_headings,
    parse_links,
)
from cryptoreg.ingest.strategies import (
    BrowserStrategy,
    Candidate,
    FeedStrategy,
    HtmlStrategy,
    Renderer,
    Strategy,
)

log = logging.getLogger(__name__)

# Each regulator words things differently; these lists are tuned per source.
# SEC deliberately leaves out "exchange" on its own.
SEC_KEYWORDS = [
    'crypto', 'cryptocurrency', 'bitcoin', 'ethereum', 'digital asset',
    'blockchain', 'defi', 'stablecoin', 'nft', 'ico',
    'binance', 'coinbase', 'kraken', 'ftx', 'celsius', 'terraform',
    'virtual currency', 'digital currency', 'crypto exchange', 'token offering',
]
ESMA_KEYWORDS = [
    'crypto', 'digital asset', 'mica', 'dlt', 'blockchain', 'token',
    'stablecoin', 'defi', 'virtual asset', 'distributed ledger',
]
MAS_FEED_KEYWORDS = [
    'crypto', 'digital asset', 'digital payment token', 'dpt', 'blockchain',
    'stablecoin', 'defi', 'virtual asset', 'token', 'exchange',
]
MAS_PAGE_KEYWORDS = [
    'crypto', 'digital asset', 'digital payment token', 'dpt', 'blockchain',
    'stablecoin', 'defi', 'virtual asset', 'payment token',
    'cryptocurrency', 'digital currency',
]
JFSA_KEYWORDS = [
    'crypto', 'virtual currency', 'digital asset', 'blockchain', 'token',
    'stablecoin', 'exchange', 'bitcoin', 'ethereum',
]

SEC_FEEDS = [
    ('Press Releases', 'https://www.sec.gov/news/pressreleases.rss'),
    ('Litigation Releases', 'https://www.sec.gov/rss/litigation/litreleases.xml'),
]
ESMA_FEEDS = [('ESMA News', 'https://www.esma.europa.eu/press-news/esma-news/feed')]
ESMA_NEWS_URL = 'https://www.esma.europa.eu/press-news/esma-news'
MAS_FEEDS = [
    ('News', 'https://www.mas.gov.sg/rss/news'),
    ('Media Releases', 'https://www.mas.gov.sg/rss/media-releases'),
]
MAS_NEWS_URL = 'https://www.mas.gov.sg/news'
JFSA_URL = 'https://www.fsa.go.jp/en/news/'
VARA_URL = 'https://www.vara.ae/en/news/'

VARA_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; CryptoRegulatoryTracker/1.0)',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
}


# -------------------------
# Extractors
# -------------------------
def extract_jfsa(html: str, page_url: str) -> List[Candidate]:
    return parse_cards(
        html, page_url,
        container_selector='ul.news-list li, .news-item, article',
        title_selector=None,
        link_selector='a',
        date_selector='.date, time',
        summary_selector=None,
    )


def extract_vara(html: str, page_url: str) -> List[Candidate]:
    items = parse_cards(
        html, page_url,
        container_selector=CARD_CONTAINERS,
        title_selector=CARD_TITLES,
        link_selector='a[href*="/news/"]',
        date_selector=DATE_NODES,
        summary_selector='p',
    )
    if items:
        return items
    return parse_headings(html, page_url, 'h3', link_selector='a[href*="/news/"]')


def extract_vara_rendered(html: str, page_url: str) -> List[Candidate]:
    return parse_headings(html, page_url, 'h3', link_selector='a[href*="/news/"]', min_title=10)


def extract_esma(html: str, page_url: str) -> List[Candidate]:
    items = parse_cards(
        html, page_url,
        container_selector='article, .views-row, [class*="news"], [class*="item"]',
        title_selector=CARD_TITLES,
        link_selector='a[href]',
        date_selector=DATE_NODES,
        summary_selector='p',
    )
    if items:
        return items
    return parse_links(html, page_url, 'a[href*="/press-news/esma-news/"]')


def extract_mas(html: str, page_url: str) -> List[Candidate]:
    return parse_links(html, page_url, 'a[href*="/news/"]', min_title=10)


# -------------------------
# Adapter
# -------------------------
@dataclass
class SourceAdapter:
    source: Source
    base_url: str
    keywords: Sequence[str]
    primary: Strategy
    html: Optional[Strategy] = None
    browser: Optional[Strategy] = None
    always_relevant: bool = False
    force_browser: bool = False

    @property
    def tag(self) -> str:
        return f'[{self.source.value}]'

    def build_update(self, raw: Dict[str, Any],
                     scraped_at: datetime,
                     keywords: Optional[Sequence[str]] = None) -> Optional[RegulatoryUpdate]:
        """Single validation point: returns None for anything that cannot be stored."""
        full_title = clean_text(raw.get('title'))
        link = absolute_url(raw.get('link'), self.base_url)
        if not full_title or not link:
            return None
        full_summary = clean_text(raw.get('summary'))

        if self.always_relevant:
            relevant = True
        else:
            relevant = is_relevant(f'{full_title} {full_summary}', keywords or self.keywords)

        title = truncate(full_title)
        try:
            return RegulatoryUpdate(
                source=self.source,
                title=title,
                summary=truncate(full_summary) or None,
                source_url=link,
                published_at=parse_published(raw.get('published')),
                scraped_at=scraped_at,
                content_hash=fingerprint(title, link),
                is_crypto_related=relevant,
            )
        except ValidationError:
            return None

    def finalize(self, candidates: Sequence[Candidate], strategy: Strategy,
                 scraped_at: datetime) -> List[RegulatoryUpdate]:
        built = [self.build_update(c, scraped_at, strategy.keywords) for c in candidates]
        updates = [u for u in built if u is not None]
        relevant = [u for u in updates if u.is_crypto_related]
        unique = dedupe_by_hash(relevant)
        if candidates:
            log.info('%s %d/%d items are crypto-related (%s)',
                     self.tag, len(unique), len(updates), strategy.kind)
        return unique

    async def scrape(self, client: httpx.AsyncClient) -> ScrapeResult:
        scraped_at = datetime.now(timezone.utc)
        chain = FallbackChain(
            source=self.source,
            primary=self.primary,
            html=self.html,
            browser=self.browser,
            force_browser=self.force_browser,
        )
        try:
            result = await chain.run(client, lambda c, s: self.finalize(c, s, scraped_at))
        except Exception as e:  # nothing escapes an adapter
            log.exception('%s unexpected failure', self.tag)
            return ScrapeResult(source=self.source,
                                errors=[f'Unexpected failure: {type(e).__name__}: {e}'])
        log.info('%s Found %d items, %d errors', self.tag, len(result.items), len(result.errors))
        return result


def build_adapters(settings: Settings, renderer: Renderer = browser.render) -> List[SourceAdapter]:
    """All sources in the order they are scraped."""
    bt = settings.browser_timeout
    return [
        SourceAdapter(
            source=Source.SEC,
            base_url='https://www.sec.gov',
            keywords=SEC_KEYWORDS,
            primary=FeedStrategy('SEC', SEC_FEEDS),
        ),
        SourceAdapter(
            source=Source.ESMA,
            base_url='https://www.esma.europa.eu',
            keywords=ESMA_KEYWORDS,
            primary=FeedStrategy('ESMA', ESMA_FEEDS),
            html=HtmlStrategy('ESMA news page', ESMA_NEWS_URL, extract_esma),
        ),
        SourceAdapter(
            source=Source.MAS,
            base_url='https://www.mas.gov.sg',
            keywords=MAS_FEED_KEYWORDS,
            primary=FeedStrategy('MAS', MAS_FEEDS),
            html=HtmlStrategy('MAS news page', MAS_NEWS_URL, extract_mas,
                              keywords=MAS_PAGE_KEYWORDS),
            browser=BrowserStrategy('MAS news page', MAS_NEWS_URL, extract_mas,
                                    wait_selector='a[href*="/news/"]',
                                    timeout=bt, renderer=renderer,
                                    keywords=MAS_PAGE_KEYWORDS),
            force_browser=settings.use_browser,
        ),
        SourceAdapter(
            source=Source.JFSA,
            base_url='https://www.fsa.go.jp',
            keywords=JFSA_KEYWORDS,
            primary=HtmlStrategy('JFSA', JFSA_URL, extract_jfsa),
        ),
        SourceAdapter(
            source=Source.VARA,
            base_url='https://www.vara.ae',
            keywords=[],
            primary=HtmlStrategy('VARA', VARA_URL, extract_vara, headers=VARA_HEADERS),
            browser=BrowserStrategy('VARA', VARA_URL, extract_vara_rendered,
                                    wait_selector='h3', wait_required=True,
                                    timeout=bt, renderer=renderer),
            always_relevant=True,
            force_browser=settings.use_browser,
        ),
    ]
