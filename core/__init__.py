"""
Root-level alias for `app/core`.

The GUI runs as `python app/main.py`, which puts `app/` on `sys.path`. The
headless exporter is usually started from the repository root instead
(`python -m core.cli --symbol AAPL --range 1y`), so this package adds
`app/core` to its own search path to make the same `core.*` imports resolve.
"""

from __future__ import annotations

import os

_APP_CORE = os.path.normpath(os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "app", "core"))

if os.path.isdir(_APP_CORE):
    __path__.append(_APP_CORE)  # type: ignore[name-defined]
