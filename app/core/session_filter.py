import logging
from datetime import date, timezone
from typing import Dict, Iterable, List

from core.models import RawBar

logger = logging.getLogger(__name__)


def utc_day(bar: RawBar) -> date:
    ts = bar.date
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).date()


def filter_last_session(bars: Iterable[RawBar]) -> List[RawBar]:
    """
    Keep only the bars of the most recent UTC day that traded any volume.

    Weekend, holiday and after-hours bars carry zero volume and never win. When no
    day has volume at all the input is returned unfiltered rather than emptied.
    """
    bars = list(bars)
    if not bars:
        return bars
    volume_by_day: Dict[date, float] = {}
    for bar in bars:
        day = utc_day(bar)
        volume_by_day[day] = volume_by_day.get(day, 0.0) + float(bar.volume or 0)
    trading_days = sorted(day for day, vol in volume_by_day.items() if vol > 0)
    if not trading_days:
        logger.debug('No positive-volume day in %d bars; keeping all of them', len(bars))
        return bars
    last_day = trading_days[-1]
    return [bar for bar in bars if utc_day(bar) == last_day]
