"""The build contract shared by leaf adapters and orchestrators.

Every unit that can be built exposes the same five actions.  A unit may be
a leaf adapter wrapping a language toolchain or another orchestrator, so
delegation can nest to any depth without special cases.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from modbuild.buildroot import BuildRootManager
from modbuild.utils import format_command, run_command

console = Console()


class Action(str, Enum):
    """Actions understood by every build unit."""

    BUILD = "build"
    TEST = "test"
    CLEAN = "clean"
    FMT = "fmt"
    FMT_CHECK = "fmt-check"
    ALL = "all"

    def normalized(self) -> "Action":
        """``all`` is an alias for ``build``."""
        return Action.BUILD if self is Action.ALL else self

    @property
    def uses_build_root(self) -> bool:
        """Formatting acts on sources, so it never takes a build root."""
        return self.normalized() in (Action.BUILD, Action.TEST, Action.CLEAN)


def resolve_module_build_dir(
    module_id: str,
    build_root: str | Path | None,
    subpath: str,
    cwd: str | Path,
) -> Path:
    """Compute where a module's artifacts go.

    With a build root the directory is ``<abs build_root>/<module_id>/<subpath>``;
    without one it is ``<cwd>/<subpath>``, the standalone local default.
    """
    if build_root is not None:
        return Path(build_root).resolve() / module_id / subpath
    return Path(cwd).resolve() / subpath


class BuildUnit(ABC):
    """Anything that can build, test, clean and format one module."""

    kind = "unit"

    @abstractmethod
    async def build(self, module_id: str, build_root: Path | None = None) -> int:
        """Build the module, writing artifacts under its module build dir."""

    @abstractmethod
    async def test(self, module_id: str, build_root: Path | None = None) -> int:
        """Test the module with the same directory isolation as ``build``."""

    @abstractmethod
    async def clean(self, module_id: str, build_root: Path | None = None) -> int:
        """Remove this module's build dir only."""

    @abstractmethod
    async def fmt(self, module_id: str) -> int:
        """Format the module sources in place."""

    @abstractmethod
    async def fmt_check(self, module_id: str) -> int:
        """Check formatting without changing anything."""

    async def run(
        self,
        action: Action | str,
        module_id: str,
        build_root: Path | None = None,
    ) -> int:
        """Dispatch *action* to the matching method and return its exit status."""
        action = Action(action).normalized()
        if action is Action.BUILD:
            return await self.build(module_id, build_root)
        if action is Action.TEST:
            return await self.test(module_id, build_root)
        if action is Action.CLEAN:
            return await self.clean(module_id, build_root)
        if action is Action.FMT:
            return await self.fmt(module_id)
        return await self.fmt_check(module_id)

    def describe(self) -> str:
        return self.kind


class SubprocessAdapter(BuildUnit):
    """Base for leaf adapters that shell out to a toolchain.

    Subclasses provide the command for each action; this class resolves the
    module build dir, makes sure it exists before ``build`` and ``test``, runs
    the command from the module source directory and reports its output.

    Parameters
    ----------
    source_dir:
        Module source directory.  Commands run here, and it is the base of
        the standalone build dir.
    subpath:
        Directory below ``<root>/<module>`` that the toolchain writes to.
    manager:
        Build-root manager used to create and remove module build dirs.
    verbose:
        Echo command output even when the command succeeds.
    """

    kind = "subprocess"

    def __init__(
        self,
        source_dir: str | Path,
        *,
        subpath: str = "target",
        manager: BuildRootManager | None = None,
        verbose: bool = False,
    ) -> None:
        self.source_dir = Path(source_dir).resolve()
        self.subpath = subpath
        self.manager = manager or BuildRootManager()
        self.verbose = verbose

    def module_build_dir(self, module_id: str, build_root: Path | None = None) -> Path:
        return resolve_module_build_dir(module_id, build_root, self.subpath, self.source_dir)

    # -- Commands (overridden per toolchain) ---------------------------------

    @abstractmethod
    def build_command(self, build_dir: Path, module_id: str) -> str | list[str]:
        ...

    @abstractmethod
    def test_command(self, build_dir: Path, module_id: str) -> str | list[str]:
        ...

    @abstractmethod
    def fmt_command(self, module_id: str, check: bool = False) -> str | list[str] | None:
        ...

    # -- Contract -----------------------------------------------------------

    async def build(self, module_id: str, build_root: Path | None = None) -> int:
        build_dir = self.manager.ensure(self.module_build_dir(module_id, build_root))
        return await self._execute(module_id, self.build_command(build_dir, module_id))

    async def test(self, module_id: str, build_root: Path | None = None) -> int:
        build_dir = self.manager.ensure(self.module_build_dir(module_id, build_root))
        return await self._execute(module_id, self.test_command(build_dir, module_id))

    async def clean(self, module_id: str, build_root: Path | None = None) -> int:
        self.manager.clean(self.module_build_dir(module_id, build_root))
        return 0

    async def fmt(self, module_id: str) -> int:
        return await self._execute(module_id, self.fmt_command(module_id))

    async def fmt_check(self, module_id: str) -> int:
        return await self._execute(module_id, self.fmt_command(module_id, check=True))

    # -- Helpers ------------------------------------------------------------

    async def _execute(self, module_id: str, cmd: str | list[str] | None) -> int:
        """Run one leaf command; ``None`` means there is nothing to do."""
        if cmd is None:
            console.print(f"[dim]{escape(module_id)}: nothing to do[/dim]")
            return 0

        console.print(
            f"[cyan]{escape(module_id)}[/cyan] [dim]$ {escape(format_command(cmd))}[/dim]"
        )
        returncode, stdout, stderr = await run_command(cmd, cwd=self.source_dir)

        if returncode != 0 or self.verbose:
            for stream in (stdout, stderr):
                if stream:
                    console.print(escape(stream), style="dim", highlight=False)
        if returncode != 0:
            console.print(
                f"[red]{escape(module_id)}: command exited with status {returncode}[/red]"
            )
        return returncode
