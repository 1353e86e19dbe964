from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class RawBar:
    date: datetime
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class CanonicalPoint:
    # Epoch seconds for intraday ranges, ISO calendar date otherwise.
    time: Union[int, str]
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class ChartResult:
    symbol: str
    range_token: str
    points: Tuple[CanonicalPoint, ...] = ()
    ok: bool = True
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.points
