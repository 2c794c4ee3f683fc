# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from cryptoreg.common.config import USER_AGENT, Settings
from cryptoreg.common.supa import RegStore
from cryptoreg.common.types import RegulatoryUpdate, ScrapeResult
from cryptoreg.ingest.sources import SourceAdapter, build_adapters

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def make_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        headers={'User-Agent': USER_AGENT},
        timeout=httpx.Timeout(settings.http_timeout, connect=min(settings.http_timeout, 15.0)),
    )


async def run_all(adapters: Sequence[SourceAdapter],
                  client: httpx.AsyncClient,
                  delay: float = 1.0,
                  sleep: Sleep = asyncio.sleep) -> List[ScrapeResult]:
    """Scrape sources one at a time, pausing between them to stay polite."""
    log.info('=== Running All Scrapers ===')
    results: List[ScrapeResult] = []
    for i, adapter in enumerate(adapters):
        if i and delay > 0:
            await sleep(delay)
        results.append(await adapter.scrape(client))
    return results


def flatten(results: Sequence[ScrapeResult]) -> tuple[List[RegulatoryUpdate], List[str]]:
    items: List[RegulatoryUpdate] = []
    errors: List[str] = []
    for r in results:
        items.extend(r.items)
        errors.extend(f'[{r.source.value}] {e}' for e in r.errors)
    return items, errors


def log_summary(results: Sequence[ScrapeResult], items: Sequence[RegulatoryUpdate]) -> None:
    log.info('=== Summary ===')
    for r in results:
        log.info('%s: %d items, %d errors', r.source.value, len(r.items), len(r.errors))
    log.info('Total: %d crypto-related items', len(items))
    for it in items[:5]:
        log.info('  - [%s] %s | %s', it.source.value, it.title[:80], it.source_url)
    if len(items) > 5:
        log.info('  ... and %d more items', len(items) - 5)


async def collect(settings: Settings,
                  adapters: Optional[Sequence[SourceAdapter]] = None,
                  client: Optional[httpx.AsyncClient] = None) -> List[ScrapeResult]:
    adapters = adapters if adapters is not None else build_adapters(settings)
    if client is not None:
        return await run_all(adapters, client, delay=settings.scrape_delay)
    async with make_client(settings) as own:
        return await run_all(adapters, own, delay=settings.scrape_delay)


async def run_scrape(store: RegStore,
                     settings: Settings,
                     adapters: Optional[Sequence[SourceAdapter]] = None,
                     client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    if not store.enabled:
        log.info('[Config] Running in local mode (no persistence)')

    run_id = store.start_run('scrape')
    results = await collect(settings, adapters, client)
    items, errors = flatten(results)
    log_summary(results, items)

    saved = 0
    if items:
        saved = store.upsert(items)
        log.info('Saved: %d items to database', saved)

    store.finish_run(run_id, ok=saved, fail=len(errors),
                     notes='; '.join(errors)[:1000] or None)
    return {'total': len(items), 'saved': saved, 'errors': errors, 'results': results}
