"""
Rebuild scheduler.

Coalesces "something changed" signals into the smallest sequence of builds
that still ends with a build started after the last signal:

    idle               --signal-->  building          (start a cycle)
    building           --signal-->  building+pending  (remember, don't start)
    building+pending   --signal-->  building+pending  (already remembered)
    building           --done---->  idle
    building+pending   --done---->  building          (clear pending, run again)

Signals come from the watcher thread and only flip flags; cycles run on a
single worker thread, so two builds never overlap.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import SitepressError


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerState:
    building: bool = False
    pending: bool = False

    @property
    def label(self) -> str:
        if not self.building:
            return 'idle'
        return 'building+pending' if self.pending else 'building'


class Scheduler:
    """Serializes builds and collapses bursts of change signals.

    build is called with no arguments and runs one full generate + publish
    cycle. In watch mode its failures are logged and never stop the
    scheduler; run_once() lets them propagate instead.
    """

    def __init__(self, build: Callable[[], None], name: str = 'sitepress-build'):
        self._build = build
        self._name = name
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._building = False
        self._pending = False

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return SchedulerState(self._building, self._pending)

    def request(self) -> bool:
        """Signal that inputs changed. Never blocks behind a running build.

        Returns True if this signal started a new cycle, False if it was
        folded into the pending rerun.
        """
        with self._lock:
            if self._building:
                if not self._pending:
                    LOGGER.debug('Build in progress, rebuild queued')
                self._pending = True
                return False
            self._building = True
            self._start_worker()
            return True

    def run_once(self) -> None:
        """Run a single cycle synchronously, raising whatever it raises."""
        with self._lock:
            if self._building:
                raise RuntimeError('a build is already in progress')
            self._building = True
        try:
            self._build()
        finally:
            with self._lock:
                if self._pending:
                    self._pending = False
                    self._start_worker()
                else:
                    self._building = False
                    self._idle.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no build is running or queued. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._building, timeout)

    # Called with self._lock held
    def _start_worker(self) -> None:
        worker = threading.Thread(target=self._drain, name=self._name, daemon=True)
        worker.start()

    def _drain(self) -> None:
        while True:
            self._run_cycle()
            with self._lock:
                if self._pending:
                    self._pending = False
                    continue
                self._building = False
                self._idle.notify_all()
                return

    def _run_cycle(self) -> None:
        try:
            self._build()
        except SitepressError as e:
            LOGGER.error('Build failed: %s', e)
        except Exception:
            LOGGER.exception('Rebuild failed')
