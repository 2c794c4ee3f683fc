# pipeline.py
# Crypto Regulatory Radar: scrape -> classify -> report -> send
import argparse
import asyncio
import logging
import sys

from cryptoreg.common.config import load_settings, missing_settings
from cryptoreg.common.log import setup_logging
from cryptoreg.common.supa import RegStore
from cryptoreg.digest.report import generate_weekly_report
from cryptoreg.digest.send import send_report, send_test_email
from cryptoreg.enrich.classify import classify_unprocessed
from cryptoreg.ingest.pipeline import run_scrape

log = logging.getLogger('pipeline')

SUBJECT = '🔒 Crypto Regulatory Brief'


def cmd_scrape(store, settings, args) -> int:
    out = asyncio.run(run_scrape(store, settings))
    log.info('✓ Done: %d items found, %d saved, %d errors',
             out['total'], out['saved'], len(out['errors']))
    for e in out['errors']:
        log.info('  ! %s', e)
    return 1 if out['errors'] else 0


def cmd_classify(store, settings, args) -> int:
    if not settings.openai_api_key:
        log.error('Error: OPENAI_API_KEY required for classification')
        return 1
    classify_unprocessed(store, settings, limit=args.limit)
    return 0


def cmd_report(store, settings, args) -> int:
    result = generate_weekly_report(store)
    if result:
        log.info('=== Report Preview ===\n%s', result['markdown'])
        log.info('✓ Report generated with %d updates', result['count'])
    return 0


def cmd_send(store, settings, args) -> int:
    report = generate_weekly_report(store)
    if not report:
        return 0
    if args.email:
        ok = send_test_email(settings, args.email, report['html'], f'{SUBJECT} — Test')
        return 0 if ok else 1
    out = send_report(store, settings, report['html'], SUBJECT, tier=args.tier)
    if out['sent'] and report['id']:
        store.mark_report_sent(report['id'])
    return 1 if out['errors'] else 0


def cmd_pipeline(store, settings, args) -> int:
    log.info('=== Step 1: Scrape ===')
    out = asyncio.run(run_scrape(store, settings))

    log.info('=== Step 2: Classify ===')
    classify_unprocessed(store, settings, limit=args.limit)

    log.info('=== Step 3: Generate Report ===')
    report = generate_weekly_report(store)
    if report:
        log.info('✓ Report ready with %d updates', report['count'])
    return 1 if out['errors'] else 0


COMMANDS = {
    'scrape': cmd_scrape,
    'classify': cmd_classify,
    'report': cmd_report,
    'send': cmd_send,
    'pipeline': cmd_pipeline,
}


def parse_args(argv=None):
    p = argparse.ArgumentParser(description='Crypto Regulatory Radar - SEC, ESMA, MAS, JFSA, VARA')
    sub = p.add_subparsers(dest='command', required=True)

    sub.add_parser('scrape', help='fetch updates from all sources')
    c = sub.add_parser('classify', help='classify unprocessed updates with the LLM')
    c.add_argument('--limit', type=int, default=50, help='max updates to classify')
    sub.add_parser('report', help='generate the weekly report')
    s = sub.add_parser('send', help='email the report (test address, or every subscriber)')
    s.add_argument('email', nargs='?', default=None, help='send a test email to this address only')
    s.add_argument('--tier', choices=['free', 'pro', 'enterprise'], default=None)
    pl = sub.add_parser('pipeline', help='scrape -> classify -> report')
    pl.add_argument('--limit', type=int, default=50, help='max updates to classify')
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    log.info('🔒 Crypto Regulatory Tracker')

    settings = load_settings()
    missing = missing_settings(settings)
    if missing:
        log.info('[Config] Missing: %s', ', '.join(missing))

    store = RegStore.from_settings(settings)
    return COMMANDS[args.command](store, settings, args)


if __name__ == '__main__':
    sys.exit(main())
