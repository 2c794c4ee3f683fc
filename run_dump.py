# run_dump.py
# Scrape every source without touching the database and dump the result to CSV.
import argparse
import asyncio
import csv
import logging
from datetime import datetime, timezone
from pathlib import Path

from cryptoreg.common.config import load_settings
from cryptoreg.common.log import setup_logging
from cryptoreg.common.types import Source
from cryptoreg.ingest.pipeline import collect, flatten
from cryptoreg.ingest.sources import build_adapters

log = logging.getLogger('run_dump')

COLUMNS = [
    'source',
    'title',
    'source_url',
    'published_at',
    'summary',
    'content_hash',
]


def ts():
    return datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def build_out_path(out_arg):
    if out_arg:
        return Path(out_arg)
    return Path(f'updates_dump_{ts()}_excel.csv')


def clean_field(val):
    if val is None:
        return ''
    # one line per row
    return ' '.join(str(val).replace('\r', ' ').replace('\n', ' ').split())


def parse_sources(raw):
    if not raw:
        return None
    return {Source(s.strip().upper()) for s in raw.split(',') if s.strip()}


def write_csv(items, out_path: Path) -> Path:
    out_path = out_path.resolve()
    with out_path.open('w', encoding='utf-8', newline='') as f:
        # ; delimiter for spreadsheet locales that use , as decimal separator
        w = csv.DictWriter(f, fieldnames=COLUMNS, delimiter=';', quoting=csv.QUOTE_MINIMAL)
        w.writeheader()
        for it in items:
            data = it.model_dump(mode='json')
            w.writerow({k: clean_field(data.get(k)) for k in COLUMNS})
    return out_path


async def main():
    parser = argparse.ArgumentParser(description='Local scrape dump to CSV (no database)')
    parser.add_argument('--sources', type=str, default=None, help='comma-separated subset, e.g. SEC,VARA')
    parser.add_argument('--out', type=str, default=None, help='output CSV path')
    args = parser.parse_args()

    setup_logging()
    settings = load_settings()
    wanted = parse_sources(args.sources)
    adapters = [a for a in build_adapters(settings) if wanted is None or a.source in wanted]

    results = await collect(settings, adapters)
    items, errors = flatten(results)
    log.info('[run_dump] Items collected: %d (%d errors)', len(items), len(errors))
    out_path = write_csv(items, build_out_path(args.out))
    log.info('[run_dump] CSV written: %s', out_path)


if __name__ == '__main__':
    asyncio.run(main())
