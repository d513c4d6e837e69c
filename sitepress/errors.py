"""Exception taxonomy for the build pipeline."""


class SitepressError(Exception):
    """Base class for every error raised by sitepress."""


class ConfigError(SitepressError):
    """Invalid project configuration (bad site.json, directories on different volumes)."""


class GenerationError(SitepressError):
    """The generator could not produce a complete staging tree."""


class PublishError(SitepressError):
    """A rename or removal step of the publish protocol failed."""


class WatcherError(SitepressError):
    """The file system watcher failed to start or stopped unexpectedly."""
