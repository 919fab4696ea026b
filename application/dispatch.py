from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class DispatchLoop:
    """
    Single-consumer worker that drains one inbound event source.

    Events are handled strictly in the order they were submitted. A failing
    event is logged and skipped; the loop only exits once `stop_event` is
    set, after the event currently being handled has finished.
    """

    def __init__(
        self,
        name: str,
        handler: Callable[[Any], None],
        stop_event: threading.Event,
        poll_interval: float = 0.5,
    ) -> None:
        self.name = name
        self._handler = handler
        self._stop_event = stop_event
        self._poll_interval = poll_interval
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def submit(self, event: Any) -> None:
        self._queue.put(event)

    def drain(self) -> None:
        """Block until every submitted event has been handled."""

        self._queue.join()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            try:
                self._handler(event)
            except Exception:
                log.exception("cointip: %s loop failed handling %r", self.name, event)
            finally:
                self._queue.task_done()

        log.info("cointip: stopping %s loop", self.name)

    def start(self) -> threading.Thread:
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(
                target=self.run,
                name=f"cointip-{self.name}",
                daemon=True,
            )
            self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
