"""
Keep an in-flight message hidden while its job runs.

A job that outlives the queue's visibility timeout would be redelivered to another
worker mid-flight. The heartbeat re-extends the timeout on a background thread
every `interval_sec` until the job finishes.
"""

from __future__ import annotations

import logging
import threading

from resource_media_shared.interfaces import QueueReceiver

logger = logging.getLogger(__name__)


class VisibilityHeartbeat:
    """Context manager: periodically calls receiver.change_visibility for one message."""

    def __init__(
        self,
        receiver: QueueReceiver,
        receipt_handle: str,
        *,
        timeout_sec: int,
        interval_sec: float,
        resource_id: str = "?",
    ) -> None:
        self._receiver = receiver
        self._receipt_handle = receipt_handle
        self._timeout_sec = timeout_sec
        self._interval_sec = interval_sec
        self._resource_id = resource_id
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.extensions = 0

    @property
    def enabled(self) -> bool:
        return self._interval_sec > 0 and self._timeout_sec > 0

    def _run(self) -> None:
        while not self._stop.wait(self._interval_sec):
            try:
                self._receiver.change_visibility(self._receipt_handle, self._timeout_sec)
                self.extensions += 1
                logger.debug(
                    "visibility: resource_id=%s extended by %ss",
                    self._resource_id,
                    self._timeout_sec,
                )
            except Exception as e:
                logger.warning(
                    "visibility: resource_id=%s extension failed: %s", self._resource_id, e
                )

    def start(self) -> None:
        if not self.enabled or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"visibility-{self._resource_id}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def __enter__(self) -> VisibilityHeartbeat:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
