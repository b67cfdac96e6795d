import os

import pytest

from procfixture.process.datadir import TempDirManager

pytestmark = pytest.mark.unit


def test_create_makes_a_unique_empty_directory(tmp_path):
    first = TempDirManager("etcd", root=str(tmp_path))
    second = TempDirManager("etcd", root=str(tmp_path))

    path_a = first.create()
    path_b = second.create()

    assert path_a != path_b
    for path in (path_a, path_b):
        assert os.path.isdir(path)
        assert os.listdir(path) == []
        assert os.path.basename(path).startswith("procfixture_etcd_")
        assert os.path.dirname(path) == str(tmp_path)


def test_destroy_removes_the_tree(tmp_path):
    manager = TempDirManager("etcd", root=str(tmp_path))
    path = manager.create()
    os.makedirs(os.path.join(path, "member", "wal"))
    with open(os.path.join(path, "member", "wal", "0.wal"), "w") as f:
        f.write("data")

    manager.destroy()

    assert not os.path.exists(path)
    assert manager.path is None
    assert list(tmp_path.iterdir()) == []


def test_destroy_without_a_directory_is_a_noop(tmp_path):
    manager = TempDirManager(root=str(tmp_path))

    manager.destroy()
    manager.create()
    manager.destroy()
    manager.destroy()

    assert list(tmp_path.iterdir()) == []


def test_destroy_of_a_vanished_directory_raises(tmp_path):
    manager = TempDirManager(root=str(tmp_path))
    path = manager.create()
    os.rmdir(path)

    with pytest.raises(FileNotFoundError):
        manager.destroy()
