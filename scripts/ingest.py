#!/usr/bin/env python3
"""Run one Congreso ingestion from a checkout (same flags as ``congreso-ingest``).

Usage::

    python scripts/ingest.py                         # settings from .env
    python scripts/ingest.py --source downloads      # explicit source dir
    python scripts/ingest.py --dry-run --export processed
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project is importable
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from congreso_graph.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
