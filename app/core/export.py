import csv
import io
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Union

from core.models import CanonicalPoint

EXPORT_FORMATS = ('csv', 'json')
CSV_HEADER = ['Date', 'Open', 'High', 'Low', 'Close', 'Volume']
_MIME_TYPES = {'csv': 'text/csv', 'json': 'application/json'}


@dataclass(frozen=True)
class ExportPayload:
    data: bytes
    filename: str
    mime_type: str


def format_time(value: Union[int, str]) -> str:
    if isinstance(value, str):
        return value
    dt = datetime.fromtimestamp(int(value), tz=timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.000Z')


def export_filename(symbol: str, range_token: str, fmt: str) -> str:
    return f'{symbol}_{range_token}.{fmt}'


def _to_csv(points: Sequence[CanonicalPoint]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for p in points:
        writer.writerow([format_time(p.time), repr(p.open), repr(p.high), repr(p.low), repr(p.close), p.volume])
    return buf.getvalue().encode('utf-8')


def _to_json(points: Sequence[CanonicalPoint]) -> bytes:
    records = [
        {
            'date': format_time(p.time),
            'open': p.open,
            'high': p.high,
            'low': p.low,
            'close': p.close,
            'volume': p.volume,
        }
        for p in points
    ]
    return json.dumps(records, indent=2).encode('utf-8')


def export_points(
    points: Sequence[CanonicalPoint],
    fmt: str,
    symbol: str,
    range_token: str,
) -> Optional[ExportPayload]:
    fmt = (fmt or '').lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f'Unknown export format: {fmt!r}')
    if not points:
        return None
    data = _to_csv(points) if fmt == 'csv' else _to_json(points)
    return ExportPayload(data=data, filename=export_filename(symbol, range_token, fmt), mime_type=_MIME_TYPES[fmt])


def parse_csv(data: bytes) -> List[Dict[str, object]]:
    reader = csv.DictReader(io.StringIO(data.decode('utf-8')))
    rows: List[Dict[str, object]] = []
    for row in reader:
        rows.append(
            {
                'date': row['Date'],
                'open': float(row['Open']),
                'high': float(row['High']),
                'low': float(row['Low']),
                'close': float(row['Close']),
                'volume': int(row['Volume']),
            }
        )
    return rows
