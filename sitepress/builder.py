"""One generate + publish cycle."""

import logging
import shutil
import time
from pathlib import Path
from typing import Callable

from .config import SiteConfig
from .errors import GenerationError, SitepressError
from .generator import SiteGenerator
from .publisher import Publisher


LOGGER = logging.getLogger(__name__)


class Builder:
    """Clears staging, runs the generator into it and publishes the result.

    The generator is any callable taking the staging path; it signals failure
    by raising GenerationError. A failed generation is never published, so
    live keeps the previous good build.
    """

    def __init__(self, generate: Callable[[Path], None], publisher: Publisher):
        self.generate = generate
        self.publisher = publisher
        self.cycles = 0

    @classmethod
    def from_config(cls, config: SiteConfig) -> 'Builder':
        return cls(SiteGenerator(config), Publisher(config.paths))

    @property
    def staging(self) -> Path:
        return self.publisher.paths.staging

    def clear_staging(self) -> None:
        if not self.staging.exists():
            return
        try:
            shutil.rmtree(self.staging)
        except OSError as e:
            raise GenerationError(f'could not clear {self.staging}: {e}') from e

    def run(self) -> None:
        """Run one full cycle; GenerationError and PublishError propagate."""
        self.cycles += 1
        number = self.cycles
        LOGGER.info('Build #%d started', number)
        started = time.monotonic()

        try:
            self.clear_staging()
            self.generate(self.staging)
            self.publisher.publish()
        except SitepressError:
            LOGGER.info('Build #%d failed after %.2fs', number, time.monotonic() - started)
            raise

        LOGGER.info('Build #%d done in %.2fs', number, time.monotonic() - started)
