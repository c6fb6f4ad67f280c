"""
In-memory concurrency guard for workflow runs.

Encoding is CPU- and disk-heavy, so the worker caps how many runs execute at
once. Requests beyond the cap are turned away with 503 instead of queueing.
"""

import os
import threading
from typing import Optional

# ── Configuration ─────────────────────────────────────────────────────────────
MAX_CONCURRENT_RUNS = int(os.getenv("MAX_CONCURRENT_RUNS", "3"))

# ── State ─────────────────────────────────────────────────────────────────────
_lock = threading.Lock()
_active_runs = 0


def acquire_run_slot(limit: Optional[int] = None) -> bool:
    """
    Try to acquire a slot for a run.
    Returns True if a slot is available, False if at capacity.
    """
    global _active_runs
    cap = MAX_CONCURRENT_RUNS if limit is None else limit
    with _lock:
        if _active_runs >= cap:
            return False
        _active_runs += 1
        return True


def release_run_slot():
    """Release a run slot after completion."""
    global _active_runs
    with _lock:
        _active_runs = max(0, _active_runs - 1)


def get_active_runs() -> int:
    with _lock:
        return _active_runs
