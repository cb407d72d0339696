from __future__ import annotations

import logging
import queue
import threading

from .errors import BackendError
from .models import SRVRecordSpec
from .records import RecordManager
from .runtime import RuntimeState

logger = logging.getLogger(__name__)


class Reconciler:
    """Applies health transitions to the SRV record set.

    ``last_known`` is the state last applied to DNS successfully. Repeated
    identical signals are no-ops. A failed add/remove leaves ``last_known``
    untouched, so the same call is retried on the next signal with that value.
    """

    def __init__(
        self,
        manager: RecordManager,
        spec: SRVRecordSpec,
        record_name: str = "",
        runtime: RuntimeState | None = None,
        poll_s: float = 0.1,
    ):
        self.manager = manager
        self.spec = spec
        self.record_name = record_name or "the SRV record set"
        self.runtime = runtime or RuntimeState()
        self.poll_s = poll_s
        self.last_known: bool | None = None

    def run(self, stop: threading.Event, signals: "queue.Queue[bool]") -> None:
        """Consume signals until ``stop`` is set.

        Returns on cancellation. ConfigError from the record manager propagates.
        """
        self.runtime.set_running(True)
        self.runtime.log_event("INFO", f"Reconciler started for '{self.spec}' in {self.record_name}", logger)
        try:
            while not stop.is_set():
                try:
                    healthy = signals.get(timeout=self.poll_s)
                except queue.Empty:
                    continue
                if stop.is_set():
                    return
                self.handle(healthy)
        finally:
            self.runtime.set_running(False)
            logger.info("Reconciler stopped")

    def handle(self, healthy: bool) -> bool:
        """Process one signal. Returns True if the record manager was called."""
        healthy = bool(healthy)
        prev_observed = self.runtime.mark_observation(healthy)

        if self.last_known is not None and self.last_known == healthy:
            logger.debug("Still %s, nothing to do", "healthy" if healthy else "unhealthy")
            return False

        if healthy:
            op_name, op = "add", self.manager.add_record
            what = f"Target {self.spec.target} is healthy, adding '{self.spec}' to {self.record_name}"
        else:
            op_name, op = "remove", self.manager.remove_record
            what = f"Target {self.spec.target} is unhealthy, removing '{self.spec}' from {self.record_name}"

        if prev_observed == healthy:
            self.runtime.log_event("INFO", f"Retrying: {what}", logger)
        else:
            self.runtime.log_event("INFO", what, logger)

        try:
            op(self.spec)
        except BackendError as e:
            failures = self.runtime.mark_backend_failure()
            self.runtime.log_event(
                "WARN",
                f"Failed to {op_name} SRV record '{self.spec}' ({failures} backend failures so far), "
                f"will retry on next health check: {e}",
                logger,
            )
            return True

        self.last_known = healthy
        self.runtime.mark_applied(healthy)
        return True
