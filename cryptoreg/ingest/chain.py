# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

import httpx

from cryptoreg.common.types import RegulatoryUpdate, ScrapeResult, Source
from cryptoreg.ingest.strategies import Attempt, Candidate, Strategy, describe_error

log = logging.getLogger(__name__)

Finalize = Callable[[Sequence[Candidate], Strategy], List[RegulatoryUpdate]]


class Stage(str, Enum):
    PRIMARY = 'primary'
    FALLBACK_HTML = 'fallback_html'
    FALLBACK_BROWSER = 'fallback_browser'
    DONE = 'done'


@dataclass
class FallbackChain:
    """
    Cheapest strategy first, escalating only when nothing usable came back.

    PRIMARY -> FALLBACK_HTML when the primary produced no items and a
    distinct static-HTML strategy exists; -> FALLBACK_BROWSER when a browser
    strategy exists and nothing was found yet or ``force_browser`` is set.
    """
    source: Source
    primary: Strategy
    html: Optional[Strategy] = None
    browser: Optional[Strategy] = None
    force_browser: bool = False
    visited: List[Stage] = field(default_factory=list, init=False)

    def _strategy_for(self, stage: Stage) -> Strategy:
        if stage is Stage.FALLBACK_HTML:
            return self.html
        if stage is Stage.FALLBACK_BROWSER:
            return self.browser
        return self.primary

    def _next(self, stage: Stage, found: bool) -> Stage:
        if stage is Stage.PRIMARY and not found and self.html is not None \
                and self.html is not self.primary:
            return Stage.FALLBACK_HTML
        if stage in (Stage.PRIMARY, Stage.FALLBACK_HTML) and self.browser is not None \
                and (not found or self.force_browser):
            return Stage.FALLBACK_BROWSER
        return Stage.DONE

    async def _attempt(self, strategy: Strategy, client: httpx.AsyncClient) -> Attempt:
        try:
            return await strategy.fetch_candidates(client)
        except Exception as e:  # recorded, chain moves on
            msg = f'Failed to fetch {strategy.name} ({strategy.kind}): {describe_error(e)}'
            log.error('[%s] %s', self.source.value, msg)
            return Attempt(errors=[msg])

    async def run(self, client: httpx.AsyncClient, finalize: Finalize) -> ScrapeResult:
        self.visited = []
        errors: List[str] = []
        items: List[RegulatoryUpdate] = []
        extracted_any = False

        stage = Stage.PRIMARY
        while stage is not Stage.DONE:
            self.visited.append(stage)
            strategy = self._strategy_for(stage)
            if stage is not Stage.PRIMARY:
                log.info('[%s] Trying %s strategy...', self.source.value, strategy.kind)

            attempt = await self._attempt(strategy, client)
            errors.extend(attempt.errors)
            if attempt.candidates:
                extracted_any = True

            found = finalize(attempt.candidates, strategy)
            if found:
                items = found
            stage = self._next(stage, bool(items))

        if not extracted_any:
            errors.append(f'All strategies failed for {self.source.value}: no items extracted')

        return ScrapeResult(source=self.source, items=items, errors=errors)
