import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from core.models import CanonicalPoint, RawBar

_CENT = Decimal('0.01')


def _finite(value: Optional[float]) -> bool:
    if value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def is_complete(bar: RawBar) -> bool:
    return all(_finite(v) for v in (bar.open, bar.high, bar.low, bar.close))


def drop_malformed(bars: Iterable[RawBar]) -> List[RawBar]:
    return [bar for bar in bars if is_complete(bar)]


def round_price(value: float) -> float:
    # Go through str() so 1.005 rounds like the printed value, not its binary neighbour.
    try:
        return float(Decimal(str(float(value))).quantize(_CENT, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return float(value)


def _volume(value: Optional[float]) -> int:
    if not _finite(value):
        return 0
    vol = int(float(value))
    return vol if vol > 0 else 0


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def normalize_bars(bars: Iterable[RawBar], intraday: bool) -> Tuple[CanonicalPoint, ...]:
    """
    Convert provider bars into chart points.

    Bars missing any OHLC value are skipped; the rest keep their input order.
    """
    points = []
    for bar in bars:
        if not is_complete(bar):
            continue
        ts = _utc(bar.date)
        if intraday:
            time_val = int(ts.timestamp())
        else:
            time_val = ts.date().isoformat()
        points.append(
            CanonicalPoint(
                time=time_val,
                open=round_price(bar.open),
                high=round_price(bar.high),
                low=round_price(bar.low),
                close=round_price(bar.close),
                volume=_volume(bar.volume),
            )
        )
    return tuple(points)


def point_x(point: CanonicalPoint) -> float:
    if isinstance(point.time, str):
        day = datetime.strptime(point.time, '%Y-%m-%d').replace(tzinfo=timezone.utc)
        return day.timestamp()
    return float(point.time)
