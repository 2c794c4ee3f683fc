# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

USER_AGENT = 'CryptoRegulatoryTracker/1.0 (compliance research)'
BROWSER_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'


def _flag(name: str) -> bool:
    return (os.getenv(name) or '').strip().lower() in ('1', 'true', 'yes')


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ''
    supabase_key: str = ''
    openai_api_key: str = ''
    openai_model: str = 'gpt-4o-mini'
    mailgun_api_key: str = ''
    mailgun_domain: str = ''
    mailgun_region: str = 'US'
    from_email: str = 'updates@cryptoregtracker.com'
    use_browser: bool = False
    scrape_delay: float = 1.0
    http_timeout: float = 10.0
    browser_timeout: float = 30.0

    @property
    def has_storage(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file)
    return Settings(
        supabase_url=os.getenv('SUPABASE_URL', ''),
        supabase_key=os.getenv('SUPABASE_KEY') or os.getenv('SUPABASE_ANON_KEY', ''),
        openai_api_key=os.getenv('OPENAI_API_KEY', ''),
        openai_model=os.getenv('OPENAI_MODEL', 'gpt-4o-mini'),
        mailgun_api_key=os.getenv('MAILGUN_API_KEY', ''),
        mailgun_domain=os.getenv('MAILGUN_DOMAIN', ''),
        mailgun_region=(os.getenv('MAILGUN_REGION') or 'US').upper(),
        from_email=os.getenv('FROM_EMAIL', 'updates@cryptoregtracker.com'),
        use_browser=_flag('USE_BROWSER'),
        scrape_delay=_float('SCRAPE_DELAY_SECONDS', 1.0),
        http_timeout=_float('HTTP_TIMEOUT', 10.0),
        browser_timeout=_float('BROWSER_TIMEOUT', 30.0),
    )


def missing_settings(settings: Settings) -> List[str]:
    missing = []
    if not settings.supabase_url:
        missing.append('SUPABASE_URL')
    if not settings.supabase_key:
        missing.append('SUPABASE_KEY')
    if not settings.openai_api_key:
        missing.append('OPENAI_API_KEY')
    if not settings.mailgun_api_key:
        missing.append('MAILGUN_API_KEY')
    if not settings.mailgun_domain:
        missing.append('MAILGUN_DOMAIN')
    return missing
