"""
Project configuration.

Settings are read from site.json in the project root and fall back to
DEFAULTS; command line flags override both. Every path is resolved against
the project root so a build never depends on the current working directory.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError


CONFIG_FILE = 'site.json'

DEFAULTS = {
    'site_title': 'Untitled Site',
    'source_dir': 'src',
    'templates_dir': 'templates',
    'staging_dir': 'out',
    'live_dir': 'dist',
    'holding_dir': 'tmp',
    'poll': False,
    # Editor scratch files (vim writes a probe file called 4913)
    'ignore_patterns': ['*.swp', '*.swx', '*~', '.#*', '*/4913'],
}


@dataclass(frozen=True)
class SitePaths:
    """The staging / live / holding directory triple owned by one pipeline."""

    staging: Path
    live: Path
    holding: Path

    def __iter__(self):
        return iter((self.staging, self.live, self.holding))

    def validate(self) -> None:
        """Reject layouts the publish protocol cannot swap atomically."""
        if len({p.resolve() for p in self}) != 3:
            raise ConfigError(
                f'staging, live and holding must be distinct directories '
                f'(got {self.staging}, {self.live}, {self.holding})'
            )
        roles = {'staging': self.staging, 'live': self.live, 'holding': self.holding}
        for name, path in roles.items():
            for other_name, other in roles.items():
                if name != other_name and path.resolve().is_relative_to(other.resolve()):
                    raise ConfigError(
                        f'{name} directory {path} must not be inside '
                        f'the {other_name} directory {other}'
                    )
        devices = {_device_of(p) for p in self}
        if len(devices) > 1:
            raise ConfigError(
                'staging, live and holding must be on the same filesystem volume '
                'so that publishing is a rename'
            )


@dataclass(frozen=True)
class SiteConfig:
    project_dir: Path
    site_title: str
    source_dir: Path
    templates_dir: Path
    paths: SitePaths
    poll: bool = False
    ignore_patterns: list = field(default_factory=list)


def _device_of(path: Path) -> int:
    """st_dev of the path, or of its nearest existing ancestor."""
    path = path.resolve()
    for candidate in (path, *path.parents):
        try:
            return os.stat(candidate).st_dev
        except FileNotFoundError:
            continue
    raise ConfigError(f'no existing ancestor for {path}')


def _read_config_file(config_path: Path) -> dict:
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f'{config_path}: invalid JSON: {e}') from e
    except OSError as e:
        raise ConfigError(f'{config_path}: {e}') from e

    if not isinstance(data, dict):
        raise ConfigError(f'{config_path}: expected a JSON object')
    unknown = sorted(set(data) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f'{config_path}: unknown keys: {", ".join(unknown)}')
    return data


def load_config(project_dir='.', config_path=None, **overrides) -> SiteConfig:
    """Load site configuration from site.json, applying keyword overrides.

    Overrides whose value is None are ignored, so argparse namespaces can be
    passed straight through.
    """
    project_dir = Path(project_dir).resolve()
    if not project_dir.is_dir():
        raise ConfigError(f'project directory not found: {project_dir}')

    settings = dict(DEFAULTS)
    if config_path is not None:
        settings.update(_read_config_file(project_dir / config_path))
    elif (project_dir / CONFIG_FILE).exists():
        settings.update(_read_config_file(project_dir / CONFIG_FILE))

    for key, value in overrides.items():
        if key not in DEFAULTS:
            raise ConfigError(f'unknown setting: {key}')
        if value is not None:
            settings[key] = value

    if not isinstance(settings['ignore_patterns'], list):
        raise ConfigError('ignore_patterns must be a list of glob patterns')
    if not isinstance(settings['poll'], bool):
        raise ConfigError('poll must be true or false')

    paths = SitePaths(
        staging=project_dir / settings['staging_dir'],
        live=project_dir / settings['live_dir'],
        holding=project_dir / settings['holding_dir'],
    )
    paths.validate()

    source_dir = project_dir / settings['source_dir']
    for role in paths:
        if role.resolve().is_relative_to(source_dir.resolve()):
            raise ConfigError(f'{role} must not be inside the source directory {source_dir}')

    return SiteConfig(
        project_dir=project_dir,
        site_title=str(settings['site_title']),
        source_dir=source_dir,
        templates_dir=project_dir / settings['templates_dir'],
        paths=paths,
        poll=settings['poll'],
        ignore_patterns=list(settings['ignore_patterns']),
    )
