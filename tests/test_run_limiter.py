"""
Concurrent-run cap.
"""
from slideshow_worker import run_limiter


def test_explicit_limit_caps_slots():
    assert run_limiter.get_active_runs() == 0
    try:
        assert run_limiter.acquire_run_slot(limit=1)
        assert not run_limiter.acquire_run_slot(limit=1)
        assert run_limiter.get_active_runs() == 1
    finally:
        run_limiter.release_run_slot()
    assert run_limiter.get_active_runs() == 0


def test_default_limit_comes_from_config(monkeypatch):
    monkeypatch.setattr(run_limiter, "MAX_CONCURRENT_RUNS", 2)
    try:
        assert run_limiter.acquire_run_slot(limit=None)
        assert run_limiter.acquire_run_slot()
        assert not run_limiter.acquire_run_slot()
    finally:
        run_limiter.release_run_slot()
        run_limiter.release_run_slot()


def test_release_never_goes_negative():
    run_limiter.release_run_slot()
    assert run_limiter.get_active_runs() == 0
