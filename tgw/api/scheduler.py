"""Single-flight FIFO scheduler for every outbound upstream call."""

import logging
import queue
import threading
import time
from concurrent.futures import Future

import requests

from tgw.core.constants import APIConstants, SchedulerConstants
from tgw.models.request import RequestSpec

logger = logging.getLogger(__name__)

_STOP = object()


class RequestScheduler:
    """Serializes upstream HTTP calls through one worker thread.

    Each request is dispatched only after the previous one finished and
    ``min_delay`` has elapsed. Failures resolve that request's future and the
    queue moves on. Nothing is retried here.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        min_delay: float = SchedulerConstants.REQUEST_DELAY_MS / 1000,
        timeout: float = APIConstants.REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the scheduler.

        Args:
            session: Transport session, a new ``requests.Session`` by default
            min_delay: Seconds to wait before each dispatch
            timeout: Transport timeout in seconds

        """
        self.session = session or requests.Session()
        self.min_delay = float(min_delay)
        self.timeout = float(timeout)
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    def __enter__(self) -> "RequestScheduler":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.shutdown()

    def start(self) -> None:
        """Start the worker thread if it is not running."""
        with self._lock:
            self._start_locked()

    def _start_locked(self) -> None:
        if self._closed:
            raise RuntimeError("Scheduler has been shut down")
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._run, name="tgw-request-scheduler", daemon=True)
            self._worker.start()
            logger.debug(f"Request scheduler started (min delay: {self.min_delay * 1000:.0f}ms)")

    def enqueue(self, spec: RequestSpec) -> "Future[requests.Response]":
        """Queue a request and return a future for its response.

        Raises:
            RuntimeError: If the scheduler has been shut down

        """
        future: Future[requests.Response] = Future()
        with self._lock:
            self._start_locked()
            self._queue.put((spec, future))
        return future

    def submit(self, spec: RequestSpec) -> requests.Response:
        """Queue a request and block until it completes.

        Raises:
            requests.RequestException: If the transport failed

        """
        return self.enqueue(spec).result()

    @property
    def pending(self) -> int:
        """Requests waiting for dispatch."""
        return self._queue.qsize()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting requests; queued ones are still dispatched."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._queue.put(_STOP)

        if worker is not None and wait:
            worker.join()
        self.session.close()
        logger.debug("Request scheduler stopped")

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                break

            spec, future = job
            if not future.set_running_or_notify_cancel():
                continue

            time.sleep(self.min_delay)
            logger.debug(f"Dispatching {spec.label}")
            try:
                response = self.session.request(
                    spec.method,
                    spec.url,
                    params=spec.params or None,
                    headers=spec.headers or None,
                    data=spec.data,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.debug(f"{spec.label} failed: {e}")
                future.set_exception(e)
            else:
                future.set_result(response)
