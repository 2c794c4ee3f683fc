# -*- coding: utf-8 -*-
"""
Markup heuristics for regulator news listings.

Regulator sites get redesigned without notice, so every extractor probes
several selector patterns and quietly skips nodes where a title or a link
cannot be resolved.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from selectolax.parser import HTMLParser, Node

from cryptoreg.ingest.filters import absolute_url, clean_text, find_date_text

CARD_CONTAINERS = '[class*="card"], [class*="news"], [class*="item"], article'
CARD_TITLES = 'h2, h3, h4, [class*="title"]'
DATE_NODES = 'time, [class*="date"], [datetime], .date'
SUMMARY_NODES = 'p, .excerpt, .summary'
LINK_PARENTS = 'article, .card, [class*="news"], [class*="item"], div'


async def fetch(client: httpx.AsyncClient, url: str,
                headers: Optional[Dict[str, str]] = None) -> str:
    r = await client.get(url, headers=headers)
    r.raise_for_status()
    return r.text


def node_text(node: Optional[Node]) -> str:
    if node is None:
        return ''
    return clean_text(node.text(separator=' '))


def _date_of(node: Node, date_selector: Optional[str]) -> Optional[str]:
    if date_selector:
        date_node = node.css_first(date_selector)
        if date_node is not None:
            stamp = date_node.attributes.get('datetime')
            if stamp:
                return stamp.strip()
            text = node_text(date_node)
            if text:
                return text
    return find_date_text(node_text(node))


def _first_text(node: Node, selector: Optional[str]) -> str:
    if not selector:
        return ''
    return node_text(node.css_first(selector))


def _closest(node: Node, selector: str) -> Optional[Node]:
    cur = node.parent
    while cur is not None and cur.tag not in ('html', 'body'):
        if cur.css_matches(selector):
            return cur
        cur = cur.parent
    return None


def _prev_element(node: Node) -> Optional[Node]:
    cur = node.prev
    # text and comment nodes have pseudo tags like "-text"
    while cur is not None and not (cur.tag or '-')[:1].isalpha():
        cur = cur.prev
    return cur


def _inner_first(node: Node, selector: str) -> Optional[Node]:
    # strictly below node, never node itself
    for child in node.iter():
        found = child.css_first(selector)
        if found is not None:
            return found
    return None


def _cards(doc: HTMLParser,
           container_selector: str,
           title_selector: Optional[str],
           link_selector: str) -> List[Node]:
    """
    Container matches that hold a link, minus wrappers. A match is a wrapper
    when another card-shaped match (link plus its own title) sits inside it.
    """
    linked: Dict[int, Node] = {}
    for node in doc.css(container_selector):
        # comma selectors can return the same node once per alternative
        if node.mem_id not in linked and node.css_first(link_selector) is not None:
            linked[node.mem_id] = node

    wrappers = set()
    for node in linked.values():
        if title_selector and _inner_first(node, title_selector) is None:
            continue
        cur = node.parent
        while cur is not None:
            if cur.mem_id in linked:
                wrappers.add(cur.mem_id)
            cur = cur.parent

    return [n for key, n in linked.items() if key not in wrappers]


def parse_cards(html: str,
                page_url: str,
                container_selector: str = CARD_CONTAINERS,
                title_selector: Optional[str] = CARD_TITLES,
                link_selector: str = 'a',
                date_selector: Optional[str] = DATE_NODES,
                summary_selector: Optional[str] = 'p') -> List[Dict[str, Any]]:
    """
    One candidate per container node. Without a title selector the link
    text is used, then the first 200 characters of the container.
    """
    doc = HTMLParser(html)
    items: List[Dict[str, Any]] = []

    for node in _cards(doc, container_selector, title_selector, link_selector):
        link_node = node.css_first(link_selector)
        link = absolute_url(link_node.attributes.get('href'), page_url)

        if title_selector:
            title = _first_text(node, title_selector)
        else:
            title = node_text(link_node) or node_text(node)[:200]

        if not title or not link:
            continue

        items.append({
            'title': title,
            'link': link,
            'published': _date_of(node, date_selector),
            'summary': _first_text(node, summary_selector) or None,
        })

    return items


def parse_headings(html: str,
                   page_url: str,
                   heading_selector: str = 'h3',
                   link_selector: str = 'a[href*="/news/"]',
                   min_title: int = 1) -> List[Dict[str, Any]]:
    """
    Listings without card markup: headings carry the title and the link
    lives inside the heading or somewhere in its parent or grandparent.
    Dates sit right before the heading or anywhere in the enclosing block.
    """
    doc = HTMLParser(html)
    items: List[Dict[str, Any]] = []
    seen = set()

    for h in doc.css(heading_selector):
        title = node_text(h)
        if len(title) < min_title:
            continue

        link_node = h.css_first('a')
        parent = h.parent
        grandparent = parent.parent if parent is not None else None
        for scope in (parent, grandparent):
            if link_node is None and scope is not None:
                link_node = scope.css_first(link_selector)
        if link_node is None and parent is not None:
            link_node = parent.css_first('a[href*="news"]')
        if link_node is None:
            continue

        link = absolute_url(link_node.attributes.get('href'), page_url)
        if not link or link in seen:
            continue
        seen.add(link)

        container = _closest(h, 'div') or parent
        prev = _prev_element(h)
        published = find_date_text(node_text(prev)) if prev is not None else None
        if not published and container is not None:
            published = find_date_text(node_text(container))

        summary = _first_text(container, 'p') if container is not None else ''

        items.append({
            'title': title,
            'link': link,
            'published': published,
            'summary': summary or None,
        })

    return items


def parse_links(html: str,
                page_url: str,
                link_selector: str = 'a[href*="/news/"]',
                min_title: int = 10) -> List[Dict[str, Any]]:
    """Every matching anchor is a candidate; context comes from its nearest card-like ancestor."""
    doc = HTMLParser(html)
    items: List[Dict[str, Any]] = []
    seen = set()

    for a in doc.css(link_selector):
        href = (a.attributes.get('href') or '').strip()
        title = node_text(a)
        if not href or len(title) < min_title or href in seen:
            continue
        seen.add(href)

        link = absolute_url(href, page_url)
        if not link:
            continue

        parent = _closest(a, LINK_PARENTS)
        published = None
        summary = ''
        if parent is not None:
            date_node = parent.css_first(DATE_NODES)
            published = node_text(date_node) or None
            summary = _first_text(parent, SUMMARY_NODES)

        items.append({
            'title': title,
            'link': link,
            'published': published,
            'summary': summary or None,
        })

    return items
