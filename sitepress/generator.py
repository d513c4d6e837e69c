"""
Site generator.

Renders the source tree into a target directory:

    src/index.md        ->  index.html
    src/notes/a.md      ->  notes/a.html
    src/index.css       ->  index.css   (copied verbatim)

Markdown pages may start with YAML front matter; its keys are available to
the page template. The generator always produces the full tree, it has no
knowledge of what changed since the previous build.
"""

import logging
import re
import shutil
from pathlib import Path

import frontmatter
import markdown
import yaml
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, TemplateError

from .config import SiteConfig
from .errors import GenerationError


LOGGER = logging.getLogger(__name__)

PAGE_SUFFIX = '.md'
DEFAULT_TEMPLATE = 'page.html'

_HEADING_RE = re.compile(r'^#\s+(.+?)\s*#*\s*$', re.MULTILINE)


# --- Utility Functions ---

def render_markdown(text: str) -> str:
    """Render markdown text to HTML."""
    return markdown.markdown(text, extensions=['extra'])


def page_title(metadata: dict, body: str, fallback: str) -> str:
    """Title from front matter, else the first level-one heading, else the fallback."""
    if metadata.get('title'):
        return str(metadata['title'])
    match = _HEADING_RE.search(body)
    if match:
        return match.group(1)
    return fallback


def output_name(relative: Path) -> Path:
    """Output path of a source file, relative to the site root."""
    if relative.suffix == PAGE_SUFFIX:
        return relative.with_suffix('.html')
    return relative


def is_hidden(relative: Path) -> bool:
    return any(part.startswith('.') for part in relative.parts)


def create_jinja_env(templates_dir: Path) -> Environment:
    """Project templates take precedence over the packaged defaults."""
    return Environment(
        loader=ChoiceLoader([
            FileSystemLoader(str(templates_dir)),
            PackageLoader('sitepress', 'templates'),
        ]),
        autoescape=True,
        keep_trailing_newline=True,
    )


# --- Generator ---

class SiteGenerator:
    """Renders the whole site from config.source_dir into a target directory."""

    def __init__(self, config: SiteConfig):
        self.config = config

    def __call__(self, target_dir: Path) -> None:
        self.generate(target_dir)

    def _source_files(self) -> list:
        source_dir = self.config.source_dir
        if not source_dir.is_dir():
            raise GenerationError(f'source directory not found: {source_dir}')
        files = []
        for path in sorted(source_dir.rglob('*')):
            relative = path.relative_to(source_dir)
            if is_hidden(relative) or not path.is_file():
                continue
            files.append(relative)
        return files

    def _load_page(self, source: Path) -> tuple[dict, str]:
        try:
            post = frontmatter.load(source)
        except yaml.YAMLError as e:
            raise GenerationError(f'{source}: malformed front matter: {e}') from e
        return dict(post.metadata), post.content

    def render_page(self, env: Environment, relative: Path, stylesheets: list) -> str:
        """Render one markdown source file to a complete HTML document."""
        metadata, body = self._load_page(self.config.source_dir / relative)
        depth = len(relative.parts) - 1
        template = env.get_template(str(metadata.get('template', DEFAULT_TEMPLATE)))
        return template.render(
            site_title=self.config.site_title,
            title=page_title(metadata, body, relative.stem),
            content=render_markdown(body),
            page=metadata,
            path=output_name(relative).as_posix(),
            root='../' * depth,
            stylesheets=stylesheets,
        )

    def generate(self, target_dir: Path) -> None:
        """Populate target_dir with the complete output tree.

        target_dir must be empty or absent. Raises GenerationError on any
        failure, in which case target_dir may hold a partial tree.
        """
        target_dir = Path(target_dir)
        try:
            files = self._source_files()
            stylesheets = [
                f.as_posix() for f in files
                if f.suffix == '.css' and len(f.parts) == 1
            ]
            env = create_jinja_env(self.config.templates_dir)
            target_dir.mkdir(parents=True, exist_ok=True)

            for relative in files:
                dest = target_dir / output_name(relative)
                dest.parent.mkdir(parents=True, exist_ok=True)
                if relative.suffix == PAGE_SUFFIX:
                    try:
                        html = self.render_page(env, relative, stylesheets)
                    except UnicodeDecodeError as e:
                        raise GenerationError(f'{relative}: source is not valid UTF-8: {e}') from e
                    except (TypeError, ValueError, ArithmeticError, LookupError, AttributeError) as e:
                        # Template expressions raise whatever the values they touch raise
                        raise GenerationError(f'{relative}: {e}') from e
                    dest.write_text(html, encoding='utf-8')
                else:
                    shutil.copy2(self.config.source_dir / relative, dest)
                LOGGER.debug('Built: %s', dest.relative_to(target_dir).as_posix())
        except TemplateError as e:
            raise GenerationError(f'template error: {e}') from e
        except OSError as e:
            raise GenerationError(str(e)) from e

        LOGGER.debug('Generated %d files into %s', len(files), target_dir)
