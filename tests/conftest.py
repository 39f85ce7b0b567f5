"""Shared pytest fixtures for the modbuild test suite.

Provides reusable fixtures for:
- Mock subprocess helpers
- Recording build units (fake adapters that log every call)
- Real on-disk workspaces whose leaf commands run the current Python
"""

from __future__ import annotations

import asyncio
import shlex
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from modbuild.adapters.base import BuildUnit

# ---------------------------------------------------------------------------
# Subprocess mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


# ---------------------------------------------------------------------------
# Recording build units
# ---------------------------------------------------------------------------


class RecordingUnit(BuildUnit):
    """A build unit that records calls instead of running a toolchain.

    Every call appends ``(label, action, module_id, build_root)`` to the
    shared *log* list, so tests can assert on ordering across units.
    """

    kind = "recording"

    def __init__(
        self,
        label: str,
        log: list[tuple[Any, ...]],
        *,
        exit_code: int = 0,
        delay: float = 0.0,
        error: BaseException | None = None,
    ) -> None:
        self.label = label
        self.log = log
        self.exit_code = exit_code
        self.delay = delay
        self.error = error

    async def _record(self, action: str, module_id: str, build_root: Path | None) -> int:
        self.log.append((self.label, action, module_id, build_root))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.exit_code

    async def build(self, module_id, build_root=None):
        return await self._record("build", module_id, build_root)

    async def test(self, module_id, build_root=None):
        return await self._record("test", module_id, build_root)

    async def clean(self, module_id, build_root=None):
        return await self._record("clean", module_id, build_root)

    async def fmt(self, module_id):
        return await self._record("fmt", module_id, None)

    async def fmt_check(self, module_id):
        return await self._record("fmt-check", module_id, None)


@pytest.fixture
def call_log() -> list[tuple[Any, ...]]:
    """Shared call log for recording units."""
    return []


@pytest.fixture
def recording_unit(call_log) -> Callable[..., RecordingUnit]:
    """Factory for :class:`RecordingUnit` instances sharing ``call_log``."""
    def factory(label: str, **kwargs: Any) -> RecordingUnit:
        return RecordingUnit(label, call_log, **kwargs)

    return factory


@pytest.fixture
def unit_loader(recording_unit) -> Callable[..., Any]:
    """Build a loader mapping directory names to recording units.

    Usage:
        loader, units = unit_loader(["libs", "core"], failing={"core"})
        orchestrator = Orchestrator(config, tmp_path, loader=loader)
    """
    def factory(
        names: list[str],
        *,
        failing: set[str] | None = None,
        delay: float = 0.0,
    ):
        failing = failing or set()
        units = {
            name: recording_unit(name, exit_code=2 if name in failing else 0, delay=delay)
            for name in names
        }

        def loader(path: Path) -> BuildUnit:
            return units[path.name]

        return loader, units

    return factory


# ---------------------------------------------------------------------------
# Real workspaces
# ---------------------------------------------------------------------------

EMIT_SCRIPT = textwrap.dedent(
    """\
    import pathlib
    import sys

    build_dir = pathlib.Path(sys.argv[1])
    build_dir.mkdir(parents=True, exist_ok=True)
    (build_dir / sys.argv[2]).write_text(sys.argv[3], encoding="utf-8")
    sys.exit(int(sys.argv[4]) if len(sys.argv) > 4 else 0)
    """
)


@pytest.fixture
def emit_script(tmp_path: Path) -> Path:
    """A tiny script that writes ``<build_dir>/<name>`` and exits with a code."""
    script = tmp_path / "emit.py"
    script.write_text(EMIT_SCRIPT, encoding="utf-8")
    return script


@pytest.fixture
def leaf_commands(emit_script: Path) -> Callable[..., dict[str, str]]:
    """Command-adapter templates that write an artifact per action.

    ``leaf_commands(exit_code=3)`` makes build and test fail after writing.
    """
    python = shlex.quote(sys.executable)
    script = shlex.quote(str(emit_script))

    def factory(exit_code: int = 0) -> dict[str, str]:
        return {
            "build": f"{python} {script} {{build_dir}} build.out {{module}} {exit_code}",
            "test": f"{python} {script} {{build_dir}} test.out {{module}} {exit_code}",
        }

    return factory


@pytest.fixture
def make_workspace(tmp_path: Path, leaf_commands) -> Callable[..., Path]:
    """Create a project tree with a root manifest and command-adapter leaves.

    Usage:
        root = make_workspace(modules=["core", "net"], libs_dir="libs", failing={"net"})
    """
    def factory(
        modules: list[str],
        *,
        libs_dir: str | None = "libs",
        failing: set[str] | None = None,
        name: str = "workspace",
        jobs: int = 1,
    ) -> Path:
        failing = failing or set()
        project = tmp_path / name
        project.mkdir()

        leaves = list(modules) + ([libs_dir] if libs_dir else [])
        for leaf in leaves:
            leaf_dir = project / leaf
            leaf_dir.mkdir()
            manifest = {
                "name": leaf,
                "adapter": {
                    "kind": "command",
                    "commands": leaf_commands(exit_code=3 if leaf in failing else 0),
                },
            }
            (leaf_dir / "modbuild.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")

        root_manifest: dict[str, Any] = {
            "name": name,
            "modules": [{"name": module} for module in modules],
            "jobs": jobs,
        }
        if libs_dir:
            root_manifest["libs_dir"] = libs_dir
        (project / "modbuild.yaml").write_text(yaml.safe_dump(root_manifest), encoding="utf-8")
        return project

    return factory
