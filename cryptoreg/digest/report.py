# -*- coding: utf-8 -*-
from __future__ import annotations

import html
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from cryptoreg.common.supa import RegStore
from cryptoreg.common.types import RegulatoryUpdate, WeeklyReport

log = logging.getLogger(__name__)

IMPACT_EMOJI = {'high': '🔴', 'medium': '🟡', 'low': '🟢'}

SOURCE_NAMES = {
    'SEC': 'SEC (US)',
    'ESMA': 'ESMA (EU)',
    'MAS': 'MAS (Singapore)',
    'JFSA': 'JFSA (Japan)',
    'VARA': 'VARA (Dubai)',
}

MD_SPECIAL = re.compile(r'([*\[\]])')

HTML_RULES = [
    # escaped markdown characters from scraped text stay literal
    (re.compile(r'\\([*\[\]])'), lambda m: f'&#{ord(m.group(1))};'),
    (re.compile(r'^### (.+)$', re.M), r'<h3>\1</h3>'),
    (re.compile(r'^## (.+)$', re.M), r'<h2>\1</h2>'),
    (re.compile(r'^# (.+)$', re.M), r'<h1>\1</h1>'),
    (re.compile(r'\*\*(.+?)\*\*'), r'<strong>\1</strong>'),
    (re.compile(r'\*(.+?)\*'), r'<em>\1</em>'),
    (re.compile(r'\[(.+?)\]\((.+?)\)'), r'<a href="\2">\1</a>'),
    (re.compile(r'^- (.+)$', re.M), r'<li>\1</li>'),
    (re.compile(r'^---$', re.M), '<hr>'),
    (re.compile(r'\n\n'), '</p><p>'),
    (re.compile(r'\n'), '<br>'),
]

HTML_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 680px; margin: 0 auto; padding: 20px; line-height: 1.6; }}
    h2 {{ border-bottom: 1px solid #eee; padding-bottom: 8px; }}
    a {{ color: #0066cc; }}
    hr {{ border: none; border-top: 1px solid #eee; margin: 24px 0; }}
  </style>
</head>
<body>
<p>{body}</p>
</body>
</html>"""


def fmt_date(dt) -> str:
    return f'{dt:%b} {dt.day}, {dt.year}'


def md_escape(text: str) -> str:
    """Scraped text goes into markdown literally."""
    return MD_SPECIAL.sub(r'\\\1', text.strip())


def group_by_impact(updates: Sequence[RegulatoryUpdate]) -> Dict[str, List[RegulatoryUpdate]]:
    groups: Dict[str, List[RegulatoryUpdate]] = {'high': [], 'medium': [], 'low': []}
    for u in updates:
        groups[u.impact_level or 'low'].append(u)
    return groups


def format_update(update: RegulatoryUpdate) -> str:
    source = SOURCE_NAMES.get(update.source.value, update.source.value)
    date = fmt_date(update.published_at) if update.published_at else 'Recent'
    md = f'### {md_escape(update.title)}\n'
    md += f'**Source:** {source} | **Date:** {date}\n\n'
    if update.summary:
        md += f'{md_escape(update.summary)}\n\n'
    md += f'[Read full announcement →]({update.source_url})\n\n'
    return md


def generate_markdown(updates: Sequence[RegulatoryUpdate], week_start: datetime, week_end: datetime) -> str:
    groups = group_by_impact(updates)
    md = f'# 🔒 Crypto Regulatory Brief — Week of {fmt_date(week_start)} - {fmt_date(week_end)}\n\n'
    md += f'*{len(updates)} regulatory updates across 5 jurisdictions*\n\n'
    md += '---\n\n'

    if groups['high']:
        md += f"## {IMPACT_EMOJI['high']} High Impact\n\n"
        md += ''.join(format_update(u) for u in groups['high'])
        md += '---\n\n'

    if groups['medium']:
        md += f"## {IMPACT_EMOJI['medium']} Medium Impact\n\n"
        md += ''.join(format_update(u) for u in groups['medium'])
        md += '---\n\n'

    if groups['low']:
        md += f"## {IMPACT_EMOJI['low']} Low Impact / Monitoring\n\n"
        for u in groups['low']:
            source = SOURCE_NAMES.get(u.source.value, u.source.value)
            md += f'- **{source}:** {md_escape(u.title)}\n'
        md += '\n---\n\n'

    md += "*You're receiving this because you subscribed to Crypto Compliance Weekly.*\n"
    md += '*[Unsubscribe](#) | [Upgrade to Pro](#)*\n'
    return md


def markdown_to_html(markdown: str) -> str:
    out = html.escape(markdown, quote=False)
    for pattern, repl in HTML_RULES:
        out = pattern.sub(repl, out)
    return HTML_PAGE.format(body=out)


def generate_weekly_report(store: RegStore,
                           week_start: Optional[datetime] = None,
                           week_end: Optional[datetime] = None) -> Optional[dict]:
    """Build the digest for the window (last 7 days by default) and save it as a draft."""
    end = week_end or datetime.now(timezone.utc)
    start = week_start or end - timedelta(days=7)
    log.info('[Report] Generating report for %s - %s', fmt_date(start), fmt_date(end))

    updates = store.fetch_for_report(start, end)
    if not updates:
        log.info('[Report] No crypto-related updates found for this period')
        return None
    log.info('[Report] Found %d updates', len(updates))

    markdown = generate_markdown(updates, start, end)
    html = markdown_to_html(markdown)
    report_id = store.create_report(WeeklyReport(
        week_start=start.date(),
        week_end=end.date(),
        status='draft',
        markdown_content=markdown,
        html_content=html,
        update_count=len(updates),
    ))
    return {'id': report_id, 'markdown': markdown, 'html': html, 'count': len(updates)}
