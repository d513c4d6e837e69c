"""
Atomic publish of a generated staging tree.

The live directory is replaced, never written into:

    1. live    -> holding   (skipped on the very first publish)
    2. staging -> live      (the publish point)
    3. rm -r holding        (best effort)

Each step is a single rename(2) on one volume, so a reader of live sees the
old complete tree or the new complete tree. POSIX cannot rename a directory
over a non-empty one, which leaves a short window between steps 1 and 2 in
which live does not exist.
"""

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .config import SitePaths
from .errors import ConfigError, PublishError


LOGGER = logging.getLogger(__name__)


def _rename(src: Path, dst: Path) -> None:
    try:
        os.rename(src, dst)
    except OSError as e:
        if e.errno == errno.EXDEV:
            raise ConfigError(
                f'cannot rename {src} to {dst} across filesystems; '
                f'keep staging, live and holding on one volume'
            ) from e
        raise


class Publisher:
    """Swaps a freshly generated staging directory into place as live."""

    def __init__(self, paths: SitePaths):
        self.paths = paths

    def publish(self) -> None:
        """Make staging the new live tree.

        Raises PublishError if staging is missing or a rename fails, and
        ConfigError if the directories turn out to be on different volumes.
        When step 2 fails after step 1 succeeded, the previous site is left
        under holding for recover() or an operator to restore.
        """
        staging, live, holding = self.paths

        if not staging.is_dir():
            raise PublishError(f'nothing to publish: {staging} is not a directory')

        # A holding tree next to a live one is stale and must never be re-published
        if holding.exists() and live.exists():
            LOGGER.warning('Removing stale %s left by an earlier publish', holding)
            try:
                shutil.rmtree(holding)
            except OSError as e:
                raise PublishError(f'could not remove stale {holding}: {e}') from e

        # Step 1: move the current site aside
        moved_aside = False
        try:
            _rename(live, holding)
            moved_aside = True
        except FileNotFoundError:
            LOGGER.debug('No existing %s, first publish', live)
        except OSError as e:
            raise PublishError(f'could not move {live} to {holding}: {e}') from e

        # Step 2: publish point
        try:
            _rename(staging, live)
        except OSError as e:
            if moved_aside:
                raise PublishError(
                    f'could not move {staging} to {live}: {e}; '
                    f'previous site preserved in {holding}'
                ) from e
            raise PublishError(f'could not move {staging} to {live}: {e}') from e

        # Step 3: drop the previous generation
        if holding.exists():
            try:
                shutil.rmtree(holding)
            except OSError as e:
                LOGGER.warning('Could not remove %s (%s); it will be cleaned up later', holding, e)

        LOGGER.debug('Published %s', live)

    def recover(self) -> Optional[str]:
        """Repair the directory triple after a publish was interrupted.

        Returns 'restored' when the previous site was moved back from holding
        to live, 'discarded' when a stale holding tree was removed, and None
        when there was nothing to do.
        """
        _, live, holding = self.paths

        if not holding.exists():
            return None

        if live.exists():
            LOGGER.warning('Discarding stale %s', holding)
            try:
                shutil.rmtree(holding)
            except OSError as e:
                raise PublishError(f'could not remove stale {holding}: {e}') from e
            return 'discarded'

        LOGGER.warning('Restoring %s from %s after an interrupted publish', live, holding)
        try:
            _rename(holding, live)
        except OSError as e:
            raise PublishError(f'could not restore {live} from {holding}: {e}') from e
        return 'restored'
