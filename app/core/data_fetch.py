import logging
from datetime import datetime
from typing import Callable, List, Optional

from core.data_providers import yahoo
from core.models import ChartResult, RawBar
from core.normalize import drop_malformed, normalize_bars
from core.ranges import coerce_range, resolve_range
from core.session_filter import filter_last_session

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, datetime, str], List[RawBar]]


def normalize_symbol(symbol: Optional[str]) -> str:
    return str(symbol or '').strip().upper()


def load_chart_points(
    symbol: str,
    range_token: Optional[str],
    now: Optional[datetime] = None,
    fetcher: Optional[Fetcher] = None,
) -> ChartResult:
    """
    Fetch and normalize the price series for one (symbol, range) pair.

    Never raises: provider or network failures come back as a failed result with no
    points, so the caller only has to deal with "data" or "no data".
    """
    symbol = normalize_symbol(symbol)
    token = coerce_range(range_token)
    if not symbol:
        return ChartResult(symbol=symbol, range_token=token, ok=False, error='No symbol given')
    cfg = resolve_range(token, now=now)
    fetch = fetcher or yahoo.fetch_chart
    try:
        bars = fetch(symbol, cfg.lookback_start, cfg.interval)
    except Exception as exc:
        logger.warning('Chart fetch failed for %s %s: %s', symbol, token, exc)
        return ChartResult(symbol=symbol, range_token=token, ok=False, error=str(exc))
    bars = drop_malformed(bars)
    if token == '1d':
        bars = filter_last_session(bars)
    points = normalize_bars(bars, cfg.intraday)
    logger.info('Loaded %d points for %s %s (%s bars)', len(points), symbol, token, cfg.interval)
    return ChartResult(symbol=symbol, range_token=token, points=points)
