import logging
import threading

from app.services.deadline import DeadlineScanResult, check_deadlines

logger = logging.getLogger(__name__)


class DeadlineMonitor:
    """Runs ``check_deadlines`` on a background ticker.

    The first scan fires ``initial_delay_seconds`` after ``start()`` and then
    every ``interval_seconds``. ``stop()`` only prevents future ticks; a scan
    that is already running finishes normally.
    """

    def __init__(
        self,
        session_factory,
        dispatcher,
        interval_seconds: float = 60 * 60,
        initial_delay_seconds: float = 5,
    ) -> None:
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "DeadlineMonitor":
        with self._lock:
            if self.is_running:
                return self
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="deadline-monitor",
                daemon=True,
            )
            self._thread.start()
        logger.info(
            "Started deadline monitoring (every %ss)", self.interval_seconds
        )
        return self

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            thread = self._thread
            self._stop_event = None
            self._thread = None
        if thread is not None and timeout is not None:
            thread.join(timeout)
        logger.info("Deadline monitoring stopped")

    def run_once(self) -> DeadlineScanResult:
        db = self.session_factory()
        try:
            return check_deadlines(db, self.dispatcher)
        finally:
            db.close()

    def _run(self, stop_event: threading.Event) -> None:
        delay = self.initial_delay_seconds
        while not stop_event.wait(delay):
            try:
                self.run_once()
            except Exception as e:
                logger.exception("Deadline monitoring error: %s", e)
            delay = self.interval_seconds
