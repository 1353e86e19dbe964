from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping, Optional

DEFAULT_RANGE = '1y'
RANGE_TOKENS = ('1d', '5d', '1mo', '3mo', '6mo', '1y', '5y')
INTRADAY_RANGES = frozenset({'1d', '5d'})


@dataclass(frozen=True)
class RangeRule:
    interval: str
    intraday: bool
    days: int = 0
    months: int = 0


@dataclass(frozen=True)
class RangeConfig:
    token: str
    lookback_start: datetime
    interval: str
    intraday: bool


# 1d looks back six days so a weekend or holiday still leaves one session to trim to.
RANGE_RULES: Mapping[str, RangeRule] = MappingProxyType({
    '1d': RangeRule(interval='5m', intraday=True, days=6),
    '5d': RangeRule(interval='30m', intraday=True, days=10),
    '1mo': RangeRule(interval='1d', intraday=False, months=1),
    '3mo': RangeRule(interval='1d', intraday=False, months=3),
    '6mo': RangeRule(interval='1d', intraday=False, months=6),
    '1y': RangeRule(interval='1d', intraday=False, months=12),
    '5y': RangeRule(interval='1wk', intraday=False, months=60),
})


def coerce_range(token: Optional[str]) -> str:
    if not token:
        return DEFAULT_RANGE
    value = str(token).strip().lower()
    if value in RANGE_RULES:
        return value
    return DEFAULT_RANGE


def months_back(now: datetime, months: int) -> datetime:
    """
    Same day-of-month `months` calendar months before `now`, at midnight.

    Days past the end of the target month are clamped (Mar 31 -> Feb 28/29).
    """
    total = now.year * 12 + (now.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day, hour=0, minute=0, second=0, microsecond=0)


def resolve_range(token: Optional[str], now: Optional[datetime] = None) -> RangeConfig:
    key = coerce_range(token)
    rule = RANGE_RULES[key]
    if now is None:
        now = datetime.now(timezone.utc)
    if rule.days:
        start = now - timedelta(days=rule.days)
    else:
        start = months_back(now, rule.months)
    return RangeConfig(token=key, lookback_start=start, interval=rule.interval, intraday=rule.intraday)
