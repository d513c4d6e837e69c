"""Static site build pipeline with coalesced watch rebuilds and atomic publish."""

from .builder import Builder
from .config import SiteConfig, SitePaths, load_config
from .errors import ConfigError, GenerationError, PublishError, SitepressError, WatcherError
from .generator import SiteGenerator
from .publisher import Publisher
from .scheduler import Scheduler, SchedulerState

__version__ = '0.3.0'

__all__ = [
    'Builder',
    'ConfigError',
    'GenerationError',
    'Publisher',
    'PublishError',
    'Scheduler',
    'SchedulerState',
    'SiteConfig',
    'SiteGenerator',
    'SitePaths',
    'SitepressError',
    'WatcherError',
    'load_config',
]
