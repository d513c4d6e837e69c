"""
Command line interface.

Usage:
    sitepress build              # Build src/ and publish to dist/
    sitepress watch              # Build, then rebuild on every change
    sitepress watch --serve      # ... and serve dist/ on localhost:8000
    sitepress init               # Seed src/index.md and src/index.css
"""

import argparse
import logging
import sys
import time

import frontmatter

from . import __version__
from .builder import Builder
from .config import SiteConfig, load_config
from .errors import ConfigError, SitepressError, WatcherError
from .scheduler import Scheduler
from .server import PreviewServer
from .watcher import SourceWatcher


LOGGER = logging.getLogger('sitepress')

LOG_FORMAT = '%(asctime)s %(levelname)-7s %(message)s'
WATCH_POLL_SECS = 0.5

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

INDEX_CSS = '''body {
  font-family: system-ui, sans-serif;
  line-height: 1.5;
  margin: 0 auto;
  max-width: 40rem;
  padding: 1rem;
}
'''


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


# --- Commands ---

def cmd_build(config: SiteConfig, args: argparse.Namespace) -> int:
    """Run one generate + publish cycle."""
    builder = Builder.from_config(config)
    scheduler = Scheduler(builder.run)
    try:
        builder.publisher.recover()
        scheduler.run_once()
    except ConfigError as e:
        LOGGER.error('Configuration error: %s', e)
        return EXIT_CONFIG
    except SitepressError as e:
        LOGGER.error('Build failed: %s', e)
        return EXIT_FAILED

    LOGGER.info('Site built to %s/', config.paths.live)
    return EXIT_OK


def cmd_watch(config: SiteConfig, args: argparse.Namespace) -> int:
    """Build, then rebuild whenever the sources change, until interrupted."""
    builder = Builder.from_config(config)
    scheduler = Scheduler(builder.run)
    watcher = SourceWatcher(config, scheduler)
    server = PreviewServer(config.paths.live, port=args.port) if args.serve else None

    try:
        builder.publisher.recover()
    except ConfigError as e:
        LOGGER.error('Configuration error: %s', e)
        return EXIT_CONFIG
    except SitepressError as e:
        LOGGER.error('Could not recover previous publish: %s', e)
        return EXIT_FAILED

    try:
        watcher.start()
    except WatcherError as e:
        LOGGER.error('%s', e)
        return EXIT_FAILED

    try:
        scheduler.request()
        if server is not None:
            server.start()
        LOGGER.info('Press Ctrl+C to stop')
        while True:
            time.sleep(WATCH_POLL_SECS)
            watcher.check()
    except WatcherError as e:
        LOGGER.error('%s', e)
        return EXIT_FAILED
    except OSError as e:
        LOGGER.error('Could not start preview server: %s', e)
        return EXIT_FAILED
    except KeyboardInterrupt:
        LOGGER.info('Stopping...')
    finally:
        watcher.stop()
        if server is not None:
            server.stop()
        if scheduler.state.building:
            LOGGER.info('Waiting for the current build to finish')
        scheduler.wait_idle()
    return EXIT_OK


def cmd_init(config: SiteConfig, args: argparse.Namespace) -> int:
    """Seed a minimal source tree, leaving existing files alone."""
    source_dir = config.source_dir
    source_dir.mkdir(parents=True, exist_ok=True)

    index_path = source_dir / 'index.md'
    if not index_path.exists() or index_path.stat().st_size == 0:
        post = frontmatter.Post(
            content=f'# {config.site_title}\n\nEdit this page in {index_path.name}.\n',
            title=config.site_title,
        )
        index_path.write_text(frontmatter.dumps(post) + '\n', encoding='utf-8')
        LOGGER.info('Created %s', index_path)

    css_path = source_dir / 'index.css'
    if not css_path.exists():
        css_path.write_text(INDEX_CSS, encoding='utf-8')
        LOGGER.info('Created %s', css_path)
    return EXIT_OK


# --- Main ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='sitepress', description='Build a static site from markdown sources')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--project-dir', '-C', default='.', help='Project root (default: current directory)')
    parser.add_argument('--config', '-c', help='Config file relative to the project root (default: site.json)')
    parser.add_argument('--source', '-s', dest='source_dir', help='Source directory (default: src)')
    parser.add_argument('--output', '-o', dest='live_dir', help='Published output directory (default: dist)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log every file event and output file')

    commands = parser.add_subparsers(dest='command', required=True)

    build = commands.add_parser('build', help='Build the site once and exit')
    build.set_defaults(func=cmd_build)

    watch = commands.add_parser('watch', help='Rebuild the site whenever a source file changes')
    watch.add_argument('--poll', action='store_const', const=True, default=None,
                       help='Poll for changes instead of using native file system events')
    watch.add_argument('--serve', action='store_true', help='Serve the published site while watching')
    watch.add_argument('--port', '-p', type=int, default=8000, help='Port for the preview server')
    watch.set_defaults(func=cmd_watch)

    init = commands.add_parser('init', help='Create a starter src/ directory')
    init.set_defaults(func=cmd_init)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(
            args.project_dir,
            args.config,
            source_dir=args.source_dir,
            live_dir=args.live_dir,
            poll=getattr(args, 'poll', None),
        )
    except ConfigError as e:
        LOGGER.error('Configuration error: %s', e)
        return EXIT_CONFIG

    return args.func(config, args)


if __name__ == '__main__':
    raise SystemExit(main())
