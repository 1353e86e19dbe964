from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, Optional

from pydantic import ValidationError

from core.config import get_settings
from core.data_fetch import load_chart_points
from core.export import EXPORT_FORMATS, export_points
from core.models import ChartResult
from core.ranges import DEFAULT_RANGE, RANGE_TOKENS

EXIT_OK = 0
EXIT_PROVIDER_FAILURE = 1
EXIT_NO_DATA = 2
EXIT_WRITE_FAILURE = 3
EXIT_BAD_CONFIG = 4


def main(
    argv: Optional[list[str]] = None,
    loader: Callable[[str, str], ChartResult] = load_chart_points,
) -> int:
    ap = argparse.ArgumentParser(description="Fetch a price series and export it without the UI.")
    ap.add_argument("--symbol", required=True, help="Instrument symbol, e.g. AAPL")
    ap.add_argument(
        "--range",
        dest="range_token",
        default=DEFAULT_RANGE,
        help=f"One of {', '.join(RANGE_TOKENS)} (unknown values fall back to {DEFAULT_RANGE})",
    )
    ap.add_argument("--format", dest="fmt", choices=EXPORT_FORMATS, default="csv")
    ap.add_argument("--out", default=None, help="Output path, '-' for stdout (default: SYMBOL_RANGE.FORMAT)")
    ap.add_argument("--log-level", default=None, help="Overrides CHART_LOG_LEVEL")
    args = ap.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_BAD_CONFIG

    logging.basicConfig(
        level=getattr(logging, str(args.log_level or settings.log_level).upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )

    result = loader(args.symbol, args.range_token)
    if not result.ok:
        print(f"error: {result.error}", file=sys.stderr)
        return EXIT_PROVIDER_FAILURE
    payload = export_points(result.points, args.fmt, result.symbol, result.range_token)
    if payload is None:
        print(f"no data for {result.symbol} {result.range_token}", file=sys.stderr)
        return EXIT_NO_DATA

    if args.out == "-":
        sys.stdout.write(payload.data.decode("utf-8"))
        sys.stdout.write("\n")
        return EXIT_OK
    out_path = os.path.abspath(args.out or payload.filename)
    try:
        with open(out_path, "wb") as handle:
            handle.write(payload.data)
    except OSError as exc:
        print(f"error: cannot write {out_path}: {exc.strerror or exc}", file=sys.stderr)
        return EXIT_WRITE_FAILURE
    print(f"wrote {len(result.points)} points to {out_path}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
