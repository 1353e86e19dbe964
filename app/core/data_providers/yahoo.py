import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from core.config import get_settings
from core.models import RawBar

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    pass


def _pick(values: Optional[List[Any]], idx: int) -> Optional[float]:
    if not values or idx >= len(values):
        return None
    val = values[idx]
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def parse_chart_payload(payload: Dict[str, Any]) -> List[RawBar]:
    try:
        chart = payload['chart']
    except (KeyError, TypeError) as exc:
        raise ProviderError('Malformed chart payload: missing "chart"') from exc
    error = chart.get('error')
    if error:
        if isinstance(error, dict):
            message = error.get('description') or error.get('code') or str(error)
        else:
            message = str(error)
        raise ProviderError(f'Provider error: {message}')
    results = chart.get('result') or []
    if not results:
        return []
    result = results[0] or {}
    timestamps = result.get('timestamp') or []
    quotes = (result.get('indicators') or {}).get('quote') or [{}]
    quote = quotes[0] or {}
    opens = quote.get('open')
    highs = quote.get('high')
    lows = quote.get('low')
    closes = quote.get('close')
    volumes = quote.get('volume')
    bars: List[RawBar] = []
    for idx, ts in enumerate(timestamps):
        if ts is None:
            continue
        bars.append(
            RawBar(
                date=datetime.fromtimestamp(int(ts), tz=timezone.utc),
                open=_pick(opens, idx),
                high=_pick(highs, idx),
                low=_pick(lows, idx),
                close=_pick(closes, idx),
                volume=_pick(volumes, idx),
            )
        )
    return bars


def fetch_chart(
    symbol: str,
    start: datetime,
    interval: str,
    end: Optional[datetime] = None,
    session: Optional[requests.Session] = None,
) -> List[RawBar]:
    settings = get_settings()
    if end is None:
        end = datetime.now(timezone.utc)
    params = {
        'period1': int(start.timestamp()),
        'period2': int(end.timestamp()),
        'interval': interval,
        'includePrePost': 'false',
        'events': 'div|split',
    }
    url = f'{settings.provider_url}/{requests.utils.quote(symbol, safe="")}'
    http = session or requests
    logger.debug('GET %s %s', url, params)
    try:
        resp = http.get(
            url,
            params=params,
            headers={'User-Agent': settings.user_agent},
            timeout=settings.request_timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as exc:
        raise ProviderError(f'Chart request failed for {symbol}: {exc}') from exc
    except ValueError as exc:
        raise ProviderError(f'Chart response for {symbol} is not JSON') from exc
    return parse_chart_payload(payload)
