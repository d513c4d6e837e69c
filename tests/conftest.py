import threading
from pathlib import Path

import pytest

from sitepress.config import load_config
from sitepress.errors import GenerationError


INDEX_MD = '''---
title: Home
---
# Welcome

Some *markdown* text.
'''


def tree_snapshot(root: Path) -> dict:
    """Map each file under root (relative posix path) to its bytes."""
    root = Path(root)
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob('*'))
        if p.is_file()
    }


@pytest.fixture
def snapshot():
    return tree_snapshot


@pytest.fixture
def project(tmp_path):
    """A project root with a small source tree."""
    src = tmp_path / 'src'
    (src / 'notes').mkdir(parents=True)
    (src / 'index.md').write_text(INDEX_MD, encoding='utf-8')
    (src / 'index.css').write_text('body { color: black; }\n', encoding='utf-8')
    (src / 'notes' / 'first.md').write_text('# First note\n\nHello.\n', encoding='utf-8')
    return tmp_path


@pytest.fixture
def config(project):
    return load_config(project)


@pytest.fixture
def paths(config):
    return config.paths


class RecordingBuild:
    """Build callable that counts calls and tracks overlap.

    If gate is given, every call blocks until the gate is set.
    """

    def __init__(self, gate=None, fail_on=()):
        self.gate = gate
        self.fail_on = set(fail_on)
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.started = threading.Event()
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            number = self.calls
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            if self.gate is not None:
                assert self.gate.wait(10), 'gate never opened'
            if number in self.fail_on:
                raise GenerationError(f'build {number} failed')
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def recording_build():
    return RecordingBuild
