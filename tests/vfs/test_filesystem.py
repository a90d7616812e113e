"""Tests for the in-memory source tree."""

import pytest

from evos.exceptions import InvalidPathError
from evos.vfs.filesystem import VirtualFileSystem


def test_write_creates_and_updates():
    vfs = VirtualFileSystem()
    assert vfs.write("/a.py", "x = 1") is True
    assert vfs.write("/a.py", "x = 1") is False  # same content, no change
    assert vfs.write("/a.py", "x = 2") is True
    assert vfs["/a.py"] == "x = 2"
    assert len(vfs) == 1


def test_update_leaves_other_paths_untouched():
    vfs = VirtualFileSystem({"/a.py": "a", "/b.py": "b", "/c.py": "c"})
    before = vfs.snapshot()
    vfs.write("/b.py", "B")
    after = vfs.snapshot()
    assert {p for p in after if after[p] != before.get(p)} == {"/b.py"}


def test_remove_is_noop_for_absent_path():
    vfs = VirtualFileSystem({"/a.py": "a"})
    assert vfs.remove("/missing.py") is False
    assert vfs.snapshot() == {"/a.py": "a"}
    assert vfs.remove("/a.py") is True
    assert "/a.py" not in vfs


def test_write_many_touches_only_listed_paths():
    vfs = VirtualFileSystem({"/a.py": "a", "/b.py": "b", "/c.py": "c"})
    changed = vfs.write_many({"/a.py": "a", "/b.py": "B", "/d.py": "d"})
    assert sorted(changed) == ["/b.py", "/d.py"]
    assert vfs.snapshot() == {"/a.py": "a", "/b.py": "B", "/c.py": "c", "/d.py": "d"}


def test_write_many_validates_before_writing():
    vfs = VirtualFileSystem({"/a.py": "a"})
    with pytest.raises(InvalidPathError):
        vfs.write_many({"/b.py": "b", "relative.py": "x"})
    assert vfs.snapshot() == {"/a.py": "a"}


@pytest.mark.parametrize("path", ["a.py", "", "components/x.py"])
def test_relative_paths_rejected(path):
    with pytest.raises(InvalidPathError):
        VirtualFileSystem().write(path, "x")


def test_view_is_live_and_read_only():
    vfs = VirtualFileSystem()
    view = vfs.view()
    vfs.write("/a.py", "x")
    assert view["/a.py"] == "x"
    with pytest.raises(TypeError):
        view["/b.py"] = "y"


def test_snapshot_is_detached():
    vfs = VirtualFileSystem({"/a.py": "a"})
    snap = vfs.snapshot()
    vfs.write("/a.py", "changed")
    assert snap["/a.py"] == "a"


def test_boot_critical_prefix():
    vfs = VirtualFileSystem(boot_prefix="/system/")
    assert vfs.is_boot_critical("/system/init.py")
    assert not vfs.is_boot_critical("/boot/kernel.py")


def test_replace_swaps_whole_tree():
    vfs = VirtualFileSystem({"/old.py": "x"})
    vfs.replace({"/new.py": "y"})
    assert vfs.paths() == ["/new.py"]
