import errno
import os
import shutil

import pytest

from sitepress.errors import ConfigError, PublishError
from sitepress.publisher import Publisher


def make_tree(root, **files):
    root.mkdir(parents=True)
    for name, text in files.items():
        (root / name).write_text(text, encoding='utf-8')


@pytest.fixture
def publisher(paths):
    return Publisher(paths)


def test_first_publish_moves_staging_into_place(publisher, paths, snapshot):
    make_tree(paths.staging, **{'index.html': 'new'})

    publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'new'}
    assert not paths.staging.exists()
    assert not paths.holding.exists()


def test_publish_replaces_previous_site(publisher, paths, snapshot):
    make_tree(paths.live, **{'index.html': 'old', 'gone.html': 'old'})
    make_tree(paths.staging, **{'index.html': 'new'})

    publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'new'}
    assert not paths.holding.exists()


def test_missing_staging_touches_nothing(publisher, paths, snapshot):
    make_tree(paths.live, **{'index.html': 'old'})

    with pytest.raises(PublishError, match='nothing to publish'):
        publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'old'}
    assert not paths.holding.exists()


def test_stale_holding_is_removed_not_republished(publisher, paths, snapshot):
    make_tree(paths.live, **{'index.html': 'current'})
    make_tree(paths.holding, **{'index.html': 'ancient'})
    make_tree(paths.staging, **{'index.html': 'new'})

    publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'new'}
    assert not paths.holding.exists()


def test_publish_after_interrupted_swap_uses_new_tree(publisher, paths, snapshot):
    # live missing, previous site parked in holding
    make_tree(paths.holding, **{'index.html': 'old'})
    make_tree(paths.staging, **{'index.html': 'new'})

    publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'new'}
    assert not paths.holding.exists()


def failing_rename(monkeypatch, failing_src, error):
    real_rename = os.rename

    def rename(src, dst, *args, **kwargs):
        if os.fspath(src) == os.fspath(failing_src):
            raise error
        return real_rename(src, dst, *args, **kwargs)

    monkeypatch.setattr(os, 'rename', rename)


def test_move_aside_failure_aborts_publish(publisher, paths, snapshot, monkeypatch):
    make_tree(paths.live, **{'index.html': 'old'})
    make_tree(paths.staging, **{'index.html': 'new'})
    failing_rename(monkeypatch, paths.live, PermissionError(errno.EACCES, 'Permission denied'))

    with pytest.raises(PublishError, match='could not move'):
        publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'old'}
    assert snapshot(paths.staging) == {'index.html': b'new'}
    assert not paths.holding.exists()


def test_publish_point_failure_preserves_previous_site(publisher, paths, snapshot, monkeypatch):
    make_tree(paths.live, **{'index.html': 'old'})
    make_tree(paths.staging, **{'index.html': 'new'})
    failing_rename(monkeypatch, paths.staging, OSError(errno.ENOSPC, 'No space left on device'))

    with pytest.raises(PublishError, match='preserved'):
        publisher.publish()

    assert not paths.live.exists()
    assert snapshot(paths.holding) == {'index.html': b'old'}

    monkeypatch.undo()
    assert publisher.recover() == 'restored'
    assert snapshot(paths.live) == {'index.html': b'old'}
    assert not paths.holding.exists()


def test_cleanup_failure_is_not_fatal(publisher, paths, snapshot, monkeypatch, caplog):
    make_tree(paths.live, **{'index.html': 'old'})
    make_tree(paths.staging, **{'index.html': 'new'})

    def rmtree(path, *args, **kwargs):
        raise PermissionError(errno.EACCES, 'Permission denied', str(path))

    monkeypatch.setattr(shutil, 'rmtree', rmtree)
    publisher.publish()

    assert snapshot(paths.live) == {'index.html': b'new'}
    assert paths.holding.exists()
    assert 'Could not remove' in caplog.text

    # The leftover is discarded by the next publish
    monkeypatch.undo()
    make_tree(paths.staging, **{'index.html': 'newer'})
    publisher.publish()
    assert snapshot(paths.live) == {'index.html': b'newer'}
    assert not paths.holding.exists()


def test_cross_device_rename_is_a_config_error(publisher, paths, monkeypatch):
    make_tree(paths.staging, **{'index.html': 'new'})
    failing_rename(monkeypatch, paths.staging, OSError(errno.EXDEV, 'Invalid cross-device link'))

    with pytest.raises(ConfigError, match='one volume'):
        publisher.publish()


def test_recover_without_holding_is_a_noop(publisher, paths):
    make_tree(paths.live, **{'index.html': 'old'})
    assert publisher.recover() is None
    assert paths.live.exists()


def test_recover_discards_stale_holding(publisher, paths, snapshot):
    make_tree(paths.live, **{'index.html': 'current'})
    make_tree(paths.holding, **{'index.html': 'ancient'})

    assert publisher.recover() == 'discarded'
    assert snapshot(paths.live) == {'index.html': b'current'}
    assert not paths.holding.exists()
