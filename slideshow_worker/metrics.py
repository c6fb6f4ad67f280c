"""
Thread-safe in-memory run metrics for the slideshow worker.

Shaped around the pipeline rather than generic endpoints:
  - requests: accepted vs. turned away at capacity
  - runs: started / completed / aborted, plus the abort rate and active runs
  - storage: Drive outcome per run (succeeded / failed / skipped)
  - publish: per-target outcome per run
  - stages: latency of normalize, render, storage, distribute and the whole run
  - recent_aborts: the last few fatal errors with their stage and code

All data is ephemeral and resets on restart.
"""

import time
import threading
from typing import Dict
from collections import defaultdict, deque

OUTCOMES = ("succeeded", "failed", "skipped")
MAX_SAMPLES = 100
MAX_ABORTS = 50

_lock = threading.Lock()

_requests: Dict[str, int] = defaultdict(int)
_runs: Dict[str, int] = defaultdict(int)
_storage: Dict[str, int] = defaultdict(int)
_publish: Dict[str, Dict[str, int]] = defaultdict(lambda: dict.fromkeys(OUTCOMES, 0))
_stage_samples: Dict[str, deque] = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))
_aborts: deque = deque(maxlen=MAX_ABORTS)
_state = {"started_at": time.time(), "active_runs": 0}


def _outcome(success) -> str:
    if success is None:
        return "skipped"
    return "succeeded" if success else "failed"


# ── Recording ─────────────────────────────────────────────────────────────────

def mark_started():
    with _lock:
        _state["started_at"] = time.time()


def count_request(kind: str = "accepted"):
    """'accepted' or 'rejected_capacity'."""
    with _lock:
        _requests[kind] += 1


def set_active_runs(count: int):
    with _lock:
        _state["active_runs"] = count


def run_started():
    with _lock:
        _runs["started"] += 1


def run_completed():
    with _lock:
        _runs["completed"] += 1


def run_aborted(stage: str, error_code: str, message: str, run_id: str = ""):
    with _lock:
        _runs["aborted"] += 1
        _aborts.append({
            "timestamp": time.time(),
            "run_id": run_id,
            "stage": stage,
            "error_code": error_code,
            "message": message[:300],
        })


def stage_timing(stage: str, duration_ms: float):
    with _lock:
        _stage_samples[stage].append(duration_ms)


def storage_outcome(success):
    """success=None means the Drive step was skipped."""
    with _lock:
        _storage[_outcome(success)] += 1


def publish_outcome(target: str, success):
    """success=None means the target was disabled."""
    with _lock:
        _publish[target][_outcome(success)] += 1


# ── Reading ───────────────────────────────────────────────────────────────────

def _latency(samples) -> dict:
    ordered = sorted(samples)
    n = len(ordered)
    return {
        "p50": ordered[n // 2],
        "p95": ordered[int(n * 0.95)] if n >= 20 else ordered[-1],
        "avg": sum(ordered) / n,
        "count": n,
    }


def get_snapshot() -> dict:
    """Complete metrics snapshot for the /metrics endpoint."""
    now = time.time()

    with _lock:
        started = _runs["started"]
        aborted = _runs["aborted"]
        return {
            "timestamp": now,
            "uptime_seconds": now - _state["started_at"],
            "requests": dict(_requests),
            "runs": {
                "started": started,
                "completed": _runs["completed"],
                "aborted": aborted,
                "active": _state["active_runs"],
                "abort_rate": round(aborted / started * 100, 2) if started else 0,
            },
            "storage": {outcome: _storage[outcome] for outcome in OUTCOMES},
            "publish": {target: dict(counts) for target, counts in _publish.items()},
            "stages": {stage: _latency(s) for stage, s in _stage_samples.items() if s},
            "recent_aborts": list(_aborts)[-10:],
        }


def reset():
    """Clear everything (used by tests)."""
    with _lock:
        _requests.clear()
        _runs.clear()
        _storage.clear()
        _publish.clear()
        _stage_samples.clear()
        _aborts.clear()
        _state.update(started_at=time.time(), active_runs=0)
