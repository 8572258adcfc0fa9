#!/usr/bin/env python3
"""Embed chunks that were left ``pending``.

Lists all pending chunk ids oldest-first, enqueues them in embedding jobs
of 50 at low priority, runs the embedding worker until the queue drains,
and exits 0 (or 1 if any job failed).

Usage:
    python scripts/reprocess_pending_chunks.py
    python scripts/reprocess_pending_chunks.py --include-failed --batch-size 100
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from rfpsearch.cli import main

if __name__ == "__main__":
    sys.exit(main(["reprocess", *sys.argv[1:]]))
