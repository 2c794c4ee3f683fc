"""Shared fixtures: an in-memory Supabase stand-in, RSS builders, mocked HTTP."""

import itertools
from datetime import datetime
from types import SimpleNamespace

import httpx
import pytest

from cryptoreg.common.config import Settings


# -------------------------
# Supabase stand-in
# -------------------------
def _as_dt(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = 'select'
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.ordering = []
        self.max_rows = None

    # --- verbs
    def select(self, cols='*', count=None):
        self.op = 'select'
        return self

    def insert(self, rows):
        self.op = 'insert'
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def upsert(self, rows, on_conflict=None):
        self.op = 'upsert'
        self.payload = rows if isinstance(rows, list) else [rows]
        self.on_conflict = on_conflict
        return self

    def update(self, fields):
        self.op = 'update'
        self.payload = fields
        return self

    # --- filters
    def eq(self, col, val):
        self.filters.append(lambda r: r.get(col) == val)
        return self

    def in_(self, col, vals):
        vals = list(vals)
        self.filters.append(lambda r: r.get(col) in vals)
        return self

    def is_(self, col, val):
        assert val in (None, 'null')
        self.filters.append(lambda r: r.get(col) is None)
        return self

    def gte(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and _as_dt(r[col]) >= _as_dt(val))
        return self

    def lte(self, col, val):
        self.filters.append(lambda r: r.get(col) is not None and _as_dt(r[col]) <= _as_dt(val))
        return self

    def order(self, col, desc=False):
        self.ordering.append((col, desc))
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    # --- run
    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.op, self.payload))
        if self.db.fail:
            raise self.db.fail
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == 'select':
            out = self._matching()
            for col, desc in reversed(self.ordering):
                out.sort(key=lambda r: (r.get(col) is None, r.get(col) or ''), reverse=desc)
            if self.max_rows is not None:
                out = out[:self.max_rows]
            return SimpleNamespace(data=[dict(r) for r in out], count=len(out))

        if self.op == 'insert':
            out = []
            for row in self.payload:
                new = dict(row, id=self.db.next_id())
                rows.append(new)
                out.append(dict(new))
            return SimpleNamespace(data=out, count=len(out))

        if self.op == 'upsert':
            out = []
            for row in self.payload:
                existing = next((r for r in rows if r.get(self.on_conflict) == row[self.on_conflict]), None)
                if existing is None:
                    existing = {'id': self.db.next_id(), 'category': None, 'impact_level': None,
                                'is_crypto_related': None}
                    rows.append(existing)
                existing.update(row)
                out.append(dict(existing))
            return SimpleNamespace(data=out, count=len(out))

        if self.op == 'update':
            out = []
            for r in self._matching():
                r.update(self.payload)
                out.append(dict(r))
            return SimpleNamespace(data=out, count=len(out))

        raise AssertionError(f'unsupported op {self.op}')


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail = None
        self._ids = itertools.count(1)

    def next_id(self):
        return str(next(self._ids))

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def supa():
    return FakeSupabase()


@pytest.fixture
def settings():
    return Settings(
        supabase_url='https://example.supabase.co',
        supabase_key='key',
        openai_api_key='sk-test',
        mailgun_api_key='mg-key',
        mailgun_domain='mg.example.com',
        scrape_delay=0,
    )


# -------------------------
# HTTP helpers
# -------------------------
def rss(*entries):
    items = []
    for e in entries:
        parts = [f'<title>{e["title"]}</title>', f'<link>{e["link"]}</link>']
        if e.get('description'):
            parts.append(f'<description>{e["description"]}</description>')
        if e.get('pubDate'):
            parts.append(f'<pubDate>{e["pubDate"]}</pubDate>')
        items.append('<item>' + ''.join(parts) + '</item>')
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Feed</title><link>https://example.org/</link>'
        '<description>Test feed</description>'
        + ''.join(items)
        + '</channel></rss>'
    )


def content_type_for(body):
    if body.lstrip().startswith('<?xml'):
        return 'application/rss+xml; charset=utf-8'
    return 'text/html; charset=utf-8'


def routed_client(routes):
    """
    AsyncClient answering from a {url: (status, body[, content_type])} map;
    unknown URLs get 404. XML bodies are served as RSS, the rest as HTML.
    """
    seen = []

    def handler(request):
        url = str(request.url)
        seen.append(url)
        status, body, *rest = routes.get(url, (404, 'not found'))
        ctype = rest[0] if rest else content_type_for(body)
        return httpx.Response(status, text=body, headers={'content-type': ctype})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.seen = seen
    return client
