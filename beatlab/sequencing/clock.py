import logging
import threading, time
from typing import Callable, Optional

from beatlab.config import SCHEDULER_CONFIG

logger = logging.getLogger(__name__)


class PollClock:
    """
    Coarse control-rate timer. Calls `tick_fn` every `interval` seconds on a
    daemon thread, against a perf_counter deadline so the period does not drift.
    Timing precision comes from the schedulers' lookahead, not from this thread.
    """

    def __init__(self, interval: float = SCHEDULER_CONFIG.poll_interval):
        self.interval = float(interval)
        self.running = False
        self._th: Optional[threading.Thread] = None

    def start(self, tick_fn: Callable[[], None]):
        if self.running:
            return
        self.running = True

        def run():
            next_t = time.perf_counter()
            while self.running:
                try:
                    tick_fn()
                except Exception:
                    logger.exception("control tick failed")
                next_t += self.interval
                sleep = next_t - time.perf_counter()
                if sleep > 0:
                    time.sleep(sleep)
                elif sleep < -self.interval:
                    # fell behind by more than a period: skip ahead
                    next_t = time.perf_counter()

        self._th = threading.Thread(target=run, name="PollClockThread", daemon=True)
        self._th.start()

    def stop(self):
        self.running = False
        th = self._th
        if th is not None and th is not threading.current_thread():
            th.join(timeout=1.0)
        self._th = None
