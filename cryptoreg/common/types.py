# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TEXT_LIMIT = 500


class Source(str, Enum):
    SEC = 'SEC'
    ESMA = 'ESMA'
    MAS = 'MAS'
    JFSA = 'JFSA'
    VARA = 'VARA'


Category = Literal['enforcement', 'guidance', 'rule_change', 'announcement', 'other']
ImpactLevel = Literal['high', 'medium', 'low']


class RegulatoryUpdate(BaseModel):
    id: Optional[str] = None
    source: Source
    title: str = Field(..., min_length=1, max_length=TEXT_LIMIT)
    summary: Optional[str] = Field(default=None, max_length=TEXT_LIMIT)
    source_url: str
    published_at: Optional[datetime] = None
    scraped_at: Optional[datetime] = None
    content_hash: str
    is_crypto_related: Optional[bool] = None
    category: Optional[Category] = None
    impact_level: Optional[ImpactLevel] = None
    included_in_report_id: Optional[str] = None

    @field_validator('source_url')
    @classmethod
    def _absolute_http(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(('http://', 'https://')):
            raise ValueError(f'not an absolute http(s) url: {v!r}')
        return v


class ScrapeResult(BaseModel):
    source: Source
    items: List[RegulatoryUpdate] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ClassificationResult(BaseModel):
    is_crypto_related: bool
    category: Category
    impact_level: ImpactLevel
    reasoning: str = ''


class WeeklyReport(BaseModel):
    id: Optional[str] = None
    week_start: date
    week_end: date
    status: Literal['draft', 'review', 'published', 'sent'] = 'draft'
    markdown_content: Optional[str] = None
    html_content: Optional[str] = None
    update_count: int = 0


class Subscriber(BaseModel):
    id: str
    email: str
    company: Optional[str] = None
    tier: Literal['free', 'pro', 'enterprise'] = 'free'
