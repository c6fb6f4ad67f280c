"""
Run reporting: the caller-visible activity log and the per-run workspace.

Every line appended to a RunLog is also written to the module logger so the
server-side log and the returned log tell the same story.
"""

import os
import shutil
import logging
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

WORKFLOW_TMP_DIR = os.getenv("WORKFLOW_TMP_DIR") or None
WORKSPACE_PREFIX = "workflow-"


def _timestamp() -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RunLog:
    """Append-only, timestamped log for a single run."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._lines: list[str] = []

    def append(self, message: str, level: int = logging.INFO) -> str:
        line = f"{_timestamp()} - {message}"
        self._lines.append(line)
        logger.log(level, f"[{self.run_id}] {message}")
        return line

    def error(self, message: str) -> str:
        return self.append(f"Error: {message}", level=logging.ERROR)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)


@contextmanager
def run_workspace(root: Optional[str] = None) -> Iterator[Path]:
    """
    Create an isolated temporary directory for one run and always remove it.

    Layout:
        <workspace>/frames/frame-000.png ...
        <workspace>/video-<uuid>.mp4
    """
    base = root or WORKFLOW_TMP_DIR
    path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=base))
    logger.debug(f"Workspace created: {path}")
    try:
        (path / "frames").mkdir()
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning(f"Workspace cleanup incomplete: {path}")
        else:
            logger.debug(f"Workspace removed: {path}")
