"""Tests for the sequential orchestrator and the scrape run."""

import asyncio

from cryptoreg.common.supa import RegStore
from cryptoreg.common.types import RegulatoryUpdate, ScrapeResult, Source
from cryptoreg.ingest.filters import fingerprint
from cryptoreg.ingest.pipeline import flatten, run_all, run_scrape


def update(source, n):
    title, url = f'{source.value} crypto item {n}', f'https://{source.value.lower()}.example/{n}'
    return RegulatoryUpdate(source=source, title=title, source_url=url,
                            content_hash=fingerprint(title, url), is_crypto_related=True)


class FakeAdapter:
    def __init__(self, source, items=(), errors=(), log=None):
        self.source = source
        self.items = list(items)
        self.errors = list(errors)
        self.log = log if log is not None else []

    async def scrape(self, client):
        self.log.append(('scrape', self.source.value))
        return ScrapeResult(source=self.source, items=self.items, errors=self.errors)


class TestRunAll:
    def test_sequential_with_pacing(self):
        events = []

        async def fake_sleep(delay):
            events.append(('sleep', delay))

        adapters = [FakeAdapter(s, log=events) for s in (Source.SEC, Source.ESMA, Source.MAS)]
        results = asyncio.run(run_all(adapters, client=None, delay=1.0, sleep=fake_sleep))

        assert [r.source for r in results] == [Source.SEC, Source.ESMA, Source.MAS]
        assert events == [
            ('scrape', 'SEC'), ('sleep', 1.0),
            ('scrape', 'ESMA'), ('sleep', 1.0),
            ('scrape', 'MAS'),
        ]

    def test_flatten_keeps_cross_source_items_and_tags_errors(self):
        results = [
            ScrapeResult(source=Source.SEC, items=[update(Source.SEC, 1)], errors=['HTTP 500']),
            ScrapeResult(source=Source.VARA, items=[update(Source.VARA, 1), update(Source.VARA, 2)]),
        ]
        items, errors = flatten(results)
        assert len(items) == 3
        assert errors == ['[SEC] HTTP 500']


class TestRunScrape:
    def test_saves_and_reports(self, supa, settings):
        adapters = [
            FakeAdapter(Source.SEC, [update(Source.SEC, 1)]),
            FakeAdapter(Source.JFSA, errors=['All strategies failed for JFSA: no items extracted']),
            FakeAdapter(Source.VARA, [update(Source.VARA, 1)]),
        ]
        out = asyncio.run(run_scrape(RegStore(supa), settings, adapters=adapters, client=object()))

        assert out['total'] == 2
        assert out['saved'] == 2
        assert out['errors'] == ['[JFSA] All strategies failed for JFSA: no items extracted']
        assert len(supa.tables['regulatory_updates']) == 2

    def test_local_mode(self, settings):
        adapters = [FakeAdapter(Source.SEC, [update(Source.SEC, 1)])]
        out = asyncio.run(run_scrape(RegStore(None), settings, adapters=adapters, client=object()))
        assert out['total'] == 1
        assert out['saved'] == 0
