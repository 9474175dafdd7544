"""
Per-job scratch files.

Each job gets one private directory (transcode-{resourceId}-XXXXXXXX) so concurrent
worker processes on the same host never collide. Every local file of the job lives
inside it and is removed on release, whatever the job's outcome.
"""

from __future__ import annotations

import logging
import re
import secrets
import shutil
import tempfile
import time
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_MAX_PREFIX_ID_LENGTH = 48


class ScratchSpace:
    """Owns the scratch directory of one job; use as a context manager."""

    def __init__(self, resource_id: str, *, base_dir: str | Path | None = None) -> None:
        safe_id = _UNSAFE_CHARS.sub("_", resource_id)[:_MAX_PREFIX_ID_LENGTH] or "job"
        if base_dir:
            Path(base_dir).mkdir(parents=True, exist_ok=True)
        self._dir = Path(
            tempfile.mkdtemp(prefix=f"transcode-{safe_id}-", dir=str(base_dir) if base_dir else None)
        )
        self._released = False
        logger.debug("scratch: created %s", self._dir)

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def released(self) -> bool:
        return self._released

    def path_for(self, role: str, extension: str) -> Path:
        """Return a fresh, unique, time-stamped path (e.g. converted-<ns>-<hex>.mp4)."""
        if self._released:
            raise RuntimeError(f"scratch space {self._dir} already released")
        name = f"{role}-{time.time_ns()}-{secrets.token_hex(3)}.{extension.lstrip('.')}"
        return self._dir / name

    def release(self) -> None:
        """Remove the directory and everything in it. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        try:
            shutil.rmtree(self._dir)
            logger.debug("scratch: removed %s", self._dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("scratch: failed to remove %s: %s", self._dir, e)

    def __enter__(self) -> ScratchSpace:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
