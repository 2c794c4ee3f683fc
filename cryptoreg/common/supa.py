# -*- coding: utf-8 -*-
"""
Supabase-backed storage for regulatory updates, reports and subscribers.

One RegStore is built at process start and handed to every stage that
needs it. Without credentials it runs in local mode: reads return nothing
and writes report zero rows.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError
from supabase import Client, SupabaseException, create_client

from cryptoreg.common.config import Settings
from cryptoreg.common.types import RegulatoryUpdate, Subscriber, WeeklyReport

log = logging.getLogger(__name__)

UPDATES = 'regulatory_updates'
REPORTS = 'weekly_reports'
SUBSCRIBERS = 'subscribers'
RUNS = 'runs_log'

# Written on every ingestion. category, impact_level and the verified
# is_crypto_related belong to the classification pass.
INGEST_FIELDS = ('source', 'title', 'summary', 'source_url',
                 'published_at', 'scraped_at', 'content_hash')
INSERT_ONLY_FIELDS = ('is_crypto_related',)

IMPACT_ORDER = {'high': 0, 'medium': 1, 'low': 2}
LOOKUP_CHUNK = 50

StorageErrors = (APIError, httpx.HTTPError)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_row(item: RegulatoryUpdate, fields: Sequence[str]) -> Dict[str, Any]:
    data = item.model_dump(mode='json')
    if not data.get('scraped_at'):
        data['scraped_at'] = utcnow_iso()
    return {k: data.get(k) for k in fields}


M = TypeVar('M', bound=BaseModel)


def rows_as(model: Type[M], rows: Optional[List[Dict[str, Any]]]) -> List[M]:
    """Validate row by row; off-schema rows are logged and skipped."""
    out: List[M] = []
    for r in rows or []:
        try:
            out.append(model.model_validate(r))
        except ValidationError as ve:
            log.warning('[DB] Skipping invalid %s row %s: %s',
                        model.__name__, r.get('id'), ve.errors()[0].get('msg'))
    return out


class RegStore:
    def __init__(self, client: Optional[Client]):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RegStore':
        if not settings.has_storage:
            return cls(None)
        try:
            return cls(create_client(settings.supabase_url, settings.supabase_key))
        except (SupabaseException, ValueError) as e:
            log.error('[DB] Cannot connect to Supabase, running in local mode: %s', e)
            return cls(None)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    # -------------------------
    # Ingestion
    # -------------------------
    def existing_urls(self, urls: Sequence[str]) -> set:
        found = set()
        # chunked: the filter travels in the query string
        for i in range(0, len(urls), LOOKUP_CHUNK):
            res = (
                self.client.table(UPDATES)
                .select('source_url')
                .in_('source_url', list(urls[i:i + LOOKUP_CHUNK]))
                .execute()
            )
            found.update(r['source_url'] for r in (res.data or []))
        return found

    def upsert(self, items: Sequence[RegulatoryUpdate]) -> int:
        """
        Insert-or-update keyed on source_url. Rows already stored only get
        the ingestion fields refreshed, so a re-run never clobbers what the
        classifier wrote.
        """
        if not self.enabled:
            log.info('[DB] No database configured, skipping upsert')
            return 0
        if not items:
            return 0

        by_url: Dict[str, RegulatoryUpdate] = {}
        for it in items:
            by_url.setdefault(it.source_url, it)

        try:
            known = self.existing_urls(list(by_url))
            fresh = [to_row(it, INGEST_FIELDS + INSERT_ONLY_FIELDS)
                     for url, it in by_url.items() if url not in known]
            stale = [to_row(it, INGEST_FIELDS)
                     for url, it in by_url.items() if url in known]

            affected = 0
            for rows in (fresh, stale):
                if not rows:
                    continue
                res = self.client.table(UPDATES).upsert(rows, on_conflict='source_url').execute()
                affected += len(res.data or [])
            return affected
        except StorageErrors as e:
            log.error('[DB] Upsert error: %s', e)
            return 0

    # -------------------------
    # Classification
    # -------------------------
    def fetch_unclassified(self, limit: int = 50) -> List[RegulatoryUpdate]:
        if not self.enabled:
            return []
        try:
            res = (
                self.client.table(UPDATES)
                .select('*')
                .is_('category', 'null')
                .order('scraped_at', desc=True)
                .limit(limit)
                .execute()
            )
        except StorageErrors as e:
            log.error('[DB] Fetch error: %s', e)
            return []
        return rows_as(RegulatoryUpdate, res.data)

    def update_classification(self, update_id: str, fields: Dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        allowed = {k: fields[k] for k in ('is_crypto_related', 'category', 'impact_level') if k in fields}
        try:
            self.client.table(UPDATES).update(allowed).eq('id', update_id).execute()
        except StorageErrors as e:
            log.error('[DB] Update error: %s', e)
            return False
        return True

    # -------------------------
    # Reports
    # -------------------------
    def fetch_for_report(self, start: datetime, end: datetime) -> List[RegulatoryUpdate]:
        if not self.enabled:
            return []
        try:
            res = (
                self.client.table(UPDATES)
                .select('*')
                .eq('is_crypto_related', True)
                .gte('published_at', start.isoformat())
                .lte('published_at', end.isoformat())
                .order('published_at', desc=True)
                .execute()
            )
        except StorageErrors as e:
            log.error('[DB] Fetch error: %s', e)
            return []
        items = rows_as(RegulatoryUpdate, res.data)
        # stable sort keeps the recency order inside each impact level
        return sorted(items, key=lambda u: IMPACT_ORDER.get(u.impact_level or 'low', 2))

    def create_report(self, report: WeeklyReport) -> Optional[str]:
        if not self.enabled:
            return None
        row = report.model_dump(mode='json', exclude={'id'})
        try:
            res = self.client.table(REPORTS).insert(row).execute()
        except StorageErrors as e:
            log.error('[DB] Insert error: %s', e)
            return None
        return (res.data or [{}])[0].get('id')

    def mark_report_sent(self, report_id: str) -> None:
        if not self.enabled:
            return
        try:
            self.client.table(REPORTS).update({'status': 'sent'}).eq('id', report_id).execute()
        except StorageErrors as e:
            log.error('[DB] Update error: %s', e)

    def active_subscribers(self, tier: Optional[str] = None) -> List[Subscriber]:
        if not self.enabled:
            return []
        q = self.client.table(SUBSCRIBERS).select('*').is_('unsubscribed_at', 'null')
        if tier:
            q = q.eq('tier', tier)
        try:
            res = q.execute()
        except StorageErrors as e:
            log.error('[DB] Fetch error: %s', e)
            return []
        return rows_as(Subscriber, res.data)

    # -------------------------
    # Run log (optional table)
    # -------------------------
    def start_run(self, run_type: str) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            res = self.client.table(RUNS).insert({'run_type': run_type, 'started_at': utcnow_iso()}).execute()
        except StorageErrors:
            return None  # table is optional
        return (res.data or [{}])[0].get('id')

    def finish_run(self, run_id: Optional[str], ok: int, fail: int, notes: Optional[str] = None) -> None:
        if not self.enabled or not run_id:
            return
        try:
            self.client.table(RUNS).update({
                'finished_at': utcnow_iso(),
                'ok_count': ok,
                'fail_count': fail,
                'notes': notes,
            }).eq('id', run_id).execute()
        except StorageErrors as e:
            log.warning('[DB] runs_log update failed: %s', e)
