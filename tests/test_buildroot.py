"""Unit tests for build-root lifecycle (modbuild.buildroot).

Tests cover:
- ensure creates missing parents and returns an absolute path
- ensure idempotence, sequential and concurrent
- ensure failures (file in the way, unwritable)
- clean removes the whole tree, tolerates absence, reports I/O errors
- clean followed by ensure recreates an empty root
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from modbuild.buildroot import BuildRootError, BuildRootManager


@pytest.fixture
def manager() -> BuildRootManager:
    return BuildRootManager()


class TestEnsure:
    @pytest.mark.unit
    def test_creates_missing_parents(self, manager: BuildRootManager, tmp_path: Path):
        root = tmp_path / "a" / "b" / "build"
        result = manager.ensure(root)
        assert root.is_dir()
        assert result == root.resolve()
        assert result.is_absolute()

    @pytest.mark.unit
    def test_relative_path_resolved(self, manager: BuildRootManager, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = manager.ensure("build")
        assert result == (tmp_path / "build").resolve()

    @pytest.mark.unit
    def test_second_call_is_noop(self, manager: BuildRootManager, tmp_path: Path):
        root = tmp_path / "build"
        manager.ensure(root)
        (root / "artifact").write_text("kept", encoding="utf-8")

        manager.ensure(root)

        assert (root / "artifact").read_text(encoding="utf-8") == "kept"
        assert sorted(p.name for p in root.iterdir()) == ["artifact"]

    @pytest.mark.unit
    def test_concurrent_calls_all_succeed(self, manager: BuildRootManager, tmp_path: Path):
        root = tmp_path / "deep" / "shared" / "build"
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(manager.ensure, [root] * 32))
        assert all(result == root.resolve() for result in results)
        assert root.is_dir()

    @pytest.mark.unit
    def test_file_in_the_way(self, manager: BuildRootManager, tmp_path: Path):
        blocker = tmp_path / "build"
        blocker.write_text("not a dir", encoding="utf-8")
        with pytest.raises(BuildRootError, match="not a directory"):
            manager.ensure(blocker)

    @pytest.mark.unit
    def test_parent_is_a_file(self, manager: BuildRootManager, tmp_path: Path):
        (tmp_path / "file").write_text("x", encoding="utf-8")
        with pytest.raises(BuildRootError, match="Cannot create build root"):
            manager.ensure(tmp_path / "file" / "build")

    @pytest.mark.unit
    def test_not_writable(self, manager: BuildRootManager, tmp_path: Path):
        root = tmp_path / "build"
        with patch("modbuild.buildroot.os.access", return_value=False):
            with pytest.raises(BuildRootError, match="not writable") as info:
                manager.ensure(root)
        assert info.value.path == root.resolve()

    @pytest.mark.unit
    def test_error_is_an_oserror(self):
        assert issubclass(BuildRootError, OSError)


class TestClean:
    @pytest.mark.unit
    def test_removes_whole_tree(self, manager: BuildRootManager, tmp_path: Path):
        root = tmp_path / "build"
        (root / "core" / "target").mkdir(parents=True)
        (root / "core" / "target" / "lib.rlib").write_bytes(b"\0")

        assert manager.clean(root) is True
        assert not root.exists()

    @pytest.mark.unit
    def test_absent_root_is_success(self, manager: BuildRootManager, tmp_path: Path):
        assert manager.clean(tmp_path / "never-created") is False

    @pytest.mark.unit
    def test_clean_twice(self, manager: BuildRootManager, tmp_path: Path):
        root = manager.ensure(tmp_path / "build")
        assert manager.clean(root) is True
        assert manager.clean(root) is False

    @pytest.mark.unit
    def test_io_error_raised(self, manager: BuildRootManager, tmp_path: Path):
        root = manager.ensure(tmp_path / "build")
        with patch("modbuild.buildroot.shutil.rmtree", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(BuildRootError, match="Permission denied"):
                manager.clean(root)
        assert root.exists()

    @pytest.mark.unit
    def test_clean_then_ensure_recreates_empty(self, manager: BuildRootManager, tmp_path: Path):
        root = manager.ensure(tmp_path / "build")
        (root / "stale").mkdir()

        manager.clean(root)
        assert not root.exists()

        manager.ensure(root)
        assert root.is_dir()
        assert list(root.iterdir()) == []

    @pytest.mark.unit
    def test_clean_does_not_touch_siblings(self, manager: BuildRootManager, tmp_path: Path):
        root = manager.ensure(tmp_path / "build")
        sibling = tmp_path / "src"
        sibling.mkdir()
        manager.clean(root)
        assert sibling.is_dir()
        assert os.listdir(tmp_path) == ["src"]
