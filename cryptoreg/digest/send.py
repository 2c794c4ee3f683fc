# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

import httpx

from cryptoreg.common.config import Settings
from cryptoreg.common.supa import RegStore

log = logging.getLogger(__name__)

RATE_LIMIT_SECONDS = 0.1


def mailgun_url(settings: Settings) -> str:
    # EU domains live on a separate API host
    base = 'https://api.mailgun.net/v3' if settings.mailgun_region == 'US' else 'https://api.eu.mailgun.net/v3'
    return f'{base}/{settings.mailgun_domain}/messages'


def send_mail(client: httpx.Client, settings: Settings, to_email: str, subject: str,
              html: str, text: Optional[str] = None) -> None:
    data = {
        'from': f'Crypto Regulatory Brief <{settings.from_email}>',
        'to': [to_email],
        'subject': subject,
        'html': html,
    }
    if text:
        data['text'] = text
    resp = client.post(mailgun_url(settings), auth=('api', settings.mailgun_api_key), data=data)
    resp.raise_for_status()


def _configured(settings: Settings) -> bool:
    if not settings.mailgun_api_key or not settings.mailgun_domain:
        log.info('[Send] No Mailgun API key/domain configured')
        return False
    return True


def send_report(store: RegStore,
                settings: Settings,
                html: str,
                subject: str,
                tier: Optional[str] = None,
                client: Optional[httpx.Client] = None,
                sleep: Callable[[float], None] = time.sleep) -> Dict[str, object]:
    if not _configured(settings):
        return {'sent': 0, 'errors': ['No API key']}

    subscribers = store.active_subscribers(tier)
    if not subscribers:
        log.info('[Send] No active subscribers')
        return {'sent': 0, 'errors': []}

    log.info('[Send] Sending to %d subscribers...', len(subscribers))
    sent = 0
    errors: List[str] = []
    own = client is None
    client = client or httpx.Client(timeout=20.0)
    try:
        for sub in subscribers:
            try:
                send_mail(client, settings, sub.email, subject, html)
                sent += 1
                log.info('[Send] ✓ %s', sub.email)
            except httpx.HTTPError as e:
                msg = f'Failed to send to {sub.email}: {e}'
                log.error('[Send] ✗ %s', msg)
                errors.append(msg)
            sleep(RATE_LIMIT_SECONDS)
    finally:
        if own:
            client.close()

    log.info('[Send] Sent %d/%d emails', sent, len(subscribers))
    return {'sent': sent, 'errors': errors}


def send_test_email(settings: Settings, to_email: str, html: str, subject: str,
                    client: Optional[httpx.Client] = None) -> bool:
    if not _configured(settings):
        return False
    own = client is None
    client = client or httpx.Client(timeout=20.0)
    try:
        send_mail(client, settings, to_email, subject, html)
    except httpx.HTTPError as e:
        log.error('[Send] Error: %s', e)
        return False
    finally:
        if own:
            client.close()
    log.info('[Send] Test email sent to %s', to_email)
    return True
