# -*- coding: utf-8 -*-
# classify.py: LLM verdict (crypto?, category, impact) for stored updates.
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from cryptoreg.common.config import Settings
from cryptoreg.common.supa import RegStore
from cryptoreg.common.types import ClassificationResult, RegulatoryUpdate

log = logging.getLogger(__name__)

RATE_LIMIT_SECONDS = 0.2
JSON_RE = re.compile(r'\{.*\}', re.S)

SYSTEM_PROMPT = """You are a crypto regulatory analyst. Classify regulatory updates.

For each update, determine:
1. is_crypto_related: true if about cryptocurrency, digital assets, blockchain, DeFi, stablecoins, NFTs, or crypto exchanges
2. category: enforcement | guidance | rule_change | announcement | other
3. impact_level: high (major enforcement, new rules) | medium (guidance, updates) | low (routine, minor)

Respond with JSON only:
{"is_crypto_related": boolean, "category": string, "impact_level": string, "reasoning": string}"""


def build_prompt(update: RegulatoryUpdate) -> str:
    return (
        'Classify this regulatory update:\n\n'
        f'Source: {update.source.value}\n'
        f'Title: {update.title}\n'
        f'Summary: {update.summary or "N/A"}\n'
        f'URL: {update.source_url}'
    )


def parse_classification(raw: Optional[str]) -> Optional[ClassificationResult]:
    """Pull the first JSON object out of the reply; None when it is missing or off-schema."""
    m = JSON_RE.search(raw or '')
    if not m:
        log.error('[Classify] No JSON in response')
        return None
    try:
        return ClassificationResult.model_validate_json(m.group(0))
    except ValidationError as ve:
        log.error('[Classify] Invalid JSON: %s', ve)
        return None


def classify_update(oai: OpenAI, model: str, update: RegulatoryUpdate) -> Optional[ClassificationResult]:
    try:
        resp = oai.chat.completions.create(
            model=model,
            temperature=0.0,
            max_tokens=256,
            response_format={'type': 'json_object'},
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': build_prompt(update)},
            ],
        )
    except OpenAIError as e:
        log.error('[Classify] Error: %s', e)
        return None
    return parse_classification(resp.choices[0].message.content)


def classify_unprocessed(store: RegStore,
                         settings: Settings,
                         limit: int = 50,
                         oai: Optional[OpenAI] = None,
                         sleep: Callable[[float], None] = time.sleep) -> int:
    if oai is None:
        if not settings.openai_api_key:
            log.info('[Classify] No API key configured')
            return 0
        oai = OpenAI(api_key=settings.openai_api_key)

    updates = store.fetch_unclassified(limit)
    if not updates:
        log.info('[Classify] No unclassified updates')
        return 0

    log.info('[Classify] Processing %d updates...', len(updates))
    run_id = store.start_run('classify')
    classified = 0
    for update in updates:
        result = classify_update(oai, settings.openai_model, update)
        if result and update.id:
            if store.update_classification(update.id, {
                'is_crypto_related': result.is_crypto_related,
                'category': result.category,
                'impact_level': result.impact_level,
            }):
                classified += 1
                log.info('[Classify] %s: %s - %s...', update.source.value,
                         result.impact_level, update.title[:50])
        sleep(RATE_LIMIT_SECONDS)

    log.info('[Classify] Classified %d/%d updates', classified, len(updates))
    store.finish_run(run_id, ok=classified, fail=len(updates) - classified)
    return classified
