# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from cryptoreg.common.config import BROWSER_USER_AGENT

log = logging.getLogger(__name__)


async def render(url: str,
                 wait_selector: Optional[str] = None,
                 *,
                 timeout: float = 30.0,
                 wait_timeout: float = 10.0,
                 wait_required: bool = False,
                 user_agent: str = BROWSER_USER_AGENT) -> str:
    """
    Load a JS-hydrated page in headless Chromium and return the final DOM.

    The browser lives for exactly one navigation and is closed even when
    navigation fails. A selector wait that times out only raises when
    ``wait_required`` is set.
    """
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=True,
            args=['--no-sandbox', '--disable-setuid-sandbox'],
        )
        try:
            page = await browser.new_page(user_agent=user_agent)
            await page.goto(url, wait_until='networkidle', timeout=timeout * 1000)
            if wait_selector:
                try:
                    await page.wait_for_selector(wait_selector, timeout=wait_timeout * 1000)
                except PlaywrightTimeoutError:
                    if wait_required:
                        raise
                    log.info('no %s found on %s after %.0fs', wait_selector, url, wait_timeout)
            return await page.content()
        finally:
            await browser.close()
