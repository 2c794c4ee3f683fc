"""Tests for the Supabase store: field-scoped upsert and downstream reads."""

from datetime import datetime, timedelta, timezone

from postgrest.exceptions import APIError
from supabase import SupabaseException

from cryptoreg.common import supa as supa_module
from cryptoreg.common.config import Settings
from cryptoreg.common.supa import RegStore
from cryptoreg.common.types import RegulatoryUpdate, Source, WeeklyReport
from cryptoreg.ingest.filters import fingerprint

NOW = datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc)


def update(n, summary=None, scraped_at=NOW, relevant=True, published_at=None):
    title, url = f'Stablecoin item {n}', f'https://www.mas.gov.sg/news/{n}'
    return RegulatoryUpdate(source=Source.MAS, title=title, summary=summary, source_url=url,
                            content_hash=fingerprint(title, url), scraped_at=scraped_at,
                            published_at=published_at, is_crypto_related=relevant)


class TestUpsert:
    def test_insert(self, supa):
        store = RegStore(supa)
        assert store.upsert([update(1), update(2)]) == 2
        rows = supa.tables['regulatory_updates']
        assert {r['source_url'] for r in rows} == {
            'https://www.mas.gov.sg/news/1', 'https://www.mas.gov.sg/news/2'}
        assert rows[0]['source'] == 'MAS'
        assert rows[0]['is_crypto_related'] is True

    def test_twice_is_idempotent(self, supa):
        store = RegStore(supa)
        store.upsert([update(1), update(2)])
        store.upsert([update(1), update(2)])
        assert len(supa.tables['regulatory_updates']) == 2

    def test_refresh_keeps_classification(self, supa):
        store = RegStore(supa)
        store.upsert([update(1, summary='old')])
        row = supa.tables['regulatory_updates'][0]
        store.update_classification(row['id'], {
            'is_crypto_related': False, 'category': 'guidance', 'impact_level': 'medium'})

        later = NOW + timedelta(hours=6)
        assert store.upsert([update(1, summary='new', scraped_at=later)]) == 1

        row = supa.tables['regulatory_updates'][0]
        assert row['summary'] == 'new'
        assert row['scraped_at'].startswith('2025-06-10T18:00:00')
        assert row['category'] == 'guidance'
        assert row['impact_level'] == 'medium'
        assert row['is_crypto_related'] is False

    def test_payload_never_carries_classifier_fields(self, supa):
        store = RegStore(supa)
        store.upsert([update(1)])
        store.upsert([update(1), update(2)])
        upserts = [payload for table, op, payload in supa.calls if op == 'upsert']
        for rows in upserts:
            for row in rows:
                assert 'category' not in row and 'impact_level' not in row
        # existing row refreshed without the heuristic verdict
        assert 'is_crypto_related' not in upserts[-1][0]

    def test_duplicate_urls_in_batch_collapse(self, supa):
        store = RegStore(supa)
        a = update(1, summary='first')
        b = update(1, summary='second')
        assert store.upsert([a, b]) == 1
        assert supa.tables['regulatory_updates'][0]['summary'] == 'first'

    def test_unconfigured(self):
        assert RegStore(None).upsert([update(1)]) == 0

    def test_storage_error_returns_zero(self, supa):
        supa.fail = APIError({'message': 'relation does not exist', 'code': '42P01'})
        assert RegStore(supa).upsert([update(1)]) == 0

    def test_empty_batch(self, supa):
        assert RegStore(supa).upsert([]) == 0
        assert supa.calls == []


class TestReads:
    def test_fetch_unclassified(self, supa):
        store = RegStore(supa)
        store.upsert([update(1), update(2)])
        first = supa.tables['regulatory_updates'][0]
        store.update_classification(first['id'], {'category': 'other', 'impact_level': 'low'})

        pending = store.fetch_unclassified(limit=10)
        assert [u.source_url for u in pending] == ['https://www.mas.gov.sg/news/2']
        assert pending[0].id is not None

    def test_fetch_for_report_orders_by_impact(self, supa):
        store = RegStore(supa)
        store.upsert([
            update(1, published_at=NOW - timedelta(days=1)),
            update(2, published_at=NOW - timedelta(days=2)),
            update(3, published_at=NOW - timedelta(days=30)),
            update(4, published_at=NOW - timedelta(days=1), relevant=False),
        ])
        rows = {r['source_url'].rsplit('/', 1)[1]: r for r in supa.tables['regulatory_updates']}
        store.update_classification(rows['1']['id'], {'impact_level': 'low', 'category': 'other'})
        store.update_classification(rows['2']['id'], {'impact_level': 'high', 'category': 'enforcement'})

        found = store.fetch_for_report(NOW - timedelta(days=7), NOW)
        assert [u.impact_level for u in found] == ['high', 'low']

    def test_create_report(self, supa):
        store = RegStore(supa)
        report_id = store.create_report(WeeklyReport(
            week_start=NOW.date() - timedelta(days=7), week_end=NOW.date(),
            markdown_content='# hi', update_count=1))
        assert report_id == '1'
        row = supa.tables['weekly_reports'][0]
        assert row['week_start'] == '2025-06-03'
        assert row['status'] == 'draft'
        store.mark_report_sent(report_id)
        assert supa.tables['weekly_reports'][0]['status'] == 'sent'

    def test_active_subscribers(self, supa):
        supa.tables['subscribers'] = [
            {'id': 'a', 'email': 'a@x.io', 'tier': 'pro', 'unsubscribed_at': None},
            {'id': 'b', 'email': 'b@x.io', 'tier': 'free', 'unsubscribed_at': None},
            {'id': 'c', 'email': 'c@x.io', 'tier': 'pro', 'unsubscribed_at': '2025-01-01'},
        ]
        store = RegStore(supa)
        assert [s.email for s in store.active_subscribers()] == ['a@x.io', 'b@x.io']
        assert [s.email for s in store.active_subscribers('pro')] == ['a@x.io']

    def test_local_mode_reads_are_empty(self):
        store = RegStore(None)
        assert store.fetch_unclassified() == []
        assert store.fetch_for_report(NOW, NOW) == []
        assert store.active_subscribers() == []
        assert store.create_report(WeeklyReport(week_start=NOW.date(), week_end=NOW.date())) is None


class TestConnect:
    def test_malformed_url_falls_back_to_local_mode(self):
        store = RegStore.from_settings(Settings(supabase_url='example.supabase.co', supabase_key='key'))
        assert store.enabled is False
        assert store.upsert([update(1)]) == 0

    def test_rejected_key_falls_back_to_local_mode(self, monkeypatch):
        def refuse(url, key):
            raise SupabaseException('Invalid API key')

        monkeypatch.setattr(supa_module, 'create_client', refuse)
        store = RegStore.from_settings(Settings(supabase_url='https://x.supabase.co', supabase_key='nope'))
        assert store.enabled is False

    def test_no_credentials(self):
        assert RegStore.from_settings(Settings()).enabled is False


class TestOffSchemaRows:
    LEGACY = {'id': 'legacy-1', 'source': 'FCA', 'title': 'Legacy row from another source',
              'source_url': 'https://www.fca.org.uk/news/1', 'content_hash': 'x',
              'category': None, 'impact_level': None, 'is_crypto_related': True,
              'published_at': (NOW - timedelta(days=1)).isoformat(),
              'scraped_at': NOW.isoformat()}

    def test_unclassified_skips_bad_rows(self, supa):
        store = RegStore(supa)
        store.upsert([update(1)])
        supa.tables['regulatory_updates'].append(dict(self.LEGACY))

        pending = store.fetch_unclassified()
        assert [u.source_url for u in pending] == ['https://www.mas.gov.sg/news/1']

    def test_report_window_skips_bad_rows(self, supa):
        store = RegStore(supa)
        store.upsert([update(1, published_at=NOW - timedelta(days=2))])
        supa.tables['regulatory_updates'].append(dict(self.LEGACY))

        found = store.fetch_for_report(NOW - timedelta(days=7), NOW)
        assert [u.source_url for u in found] == ['https://www.mas.gov.sg/news/1']

    def test_subscriber_without_email_skipped(self, supa):
        supa.tables['subscribers'] = [
            {'id': 'a', 'email': 'a@x.io', 'tier': 'free', 'unsubscribed_at': None},
            {'id': 'b', 'email': None, 'tier': 'free', 'unsubscribed_at': None},
        ]
        assert [s.id for s in RegStore(supa).active_subscribers()] == ['a']
