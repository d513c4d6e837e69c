"""
File system watcher.

Every event under a watched root is one change signal for the scheduler.
What counts as an event is decided here, by configuration: editor scratch
files matching ignore_patterns and the pipeline's own output directories
are dropped, as are the read-only access notifications (opened, closed)
newer watchdog releases report on Linux, since the generator itself opens
every source file.
"""

import logging
import os
from pathlib import Path

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .config import SiteConfig
from .errors import WatcherError
from .scheduler import Scheduler


LOGGER = logging.getLogger(__name__)

ACCESS_EVENT_TYPES = {'opened', 'closed', 'closed_no_write'}


class ChangeHandler(PatternMatchingEventHandler):
    """Forwards file system events to the scheduler as change signals."""

    def __init__(self, scheduler: Scheduler, ignore_patterns=None, ignore_dirs=()):
        super().__init__(ignore_patterns=list(ignore_patterns or []), case_sensitive=True)
        self.scheduler = scheduler
        self.ignore_dirs = [Path(d) for d in ignore_dirs]

    def _ignored(self, path) -> bool:
        if not path:
            return False
        path = Path(os.fsdecode(path))
        return any(path == d or path.is_relative_to(d) for d in self.ignore_dirs)

    def on_any_event(self, event: FileSystemEvent):
        if event.event_type in ACCESS_EVENT_TYPES:
            return
        dest_path = getattr(event, 'dest_path', '')
        if self._ignored(event.src_path) and (not dest_path or self._ignored(dest_path)):
            return
        LOGGER.debug('%s %s', event.event_type, os.fsdecode(event.src_path))
        self.scheduler.request()


class SourceWatcher:
    """Runs a watchdog observer over the source (and templates) directories."""

    def __init__(self, config: SiteConfig, scheduler: Scheduler):
        self.config = config
        self.scheduler = scheduler
        self.observer = None

    def roots(self) -> list:
        roots = [self.config.source_dir]
        if self.config.templates_dir.is_dir():
            roots.append(self.config.templates_dir)
        return roots

    def create_handler(self) -> ChangeHandler:
        return ChangeHandler(
            self.scheduler,
            ignore_patterns=self.config.ignore_patterns,
            ignore_dirs=[p.resolve() for p in self.config.paths],
        )

    def start(self) -> None:
        if not self.config.source_dir.is_dir():
            raise WatcherError(f'cannot watch {self.config.source_dir}: not a directory')

        observer = PollingObserver() if self.config.poll else Observer()
        handler = self.create_handler()
        try:
            for root in self.roots():
                observer.schedule(handler, str(root.resolve()), recursive=True)
                LOGGER.info('Watching: %s/', root)
            observer.start()
        except OSError as e:
            raise WatcherError(f'could not start file watcher: {e}') from e
        self.observer = observer

    def check(self) -> None:
        """Raise WatcherError if the observer thread has died."""
        if self.observer is None or not self.observer.is_alive():
            raise WatcherError('file watcher stopped unexpectedly')

    def stop(self) -> None:
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc_info):
        self.stop()
