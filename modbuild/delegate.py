"""Orchestrator-side proxies for declared modules.

A delegate binds a module name to its directory and build unit.  When run
it resolves the absolute build root, makes sure it exists (every delegate
does this itself, so parallel delegates never wait on one another) and
hands the action to the unit under the module's own name.
"""

from __future__ import annotations

import time
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from modbuild.adapters.base import Action, BuildUnit
from modbuild.buildroot import BuildRootManager
from modbuild.results import DelegateResult
from modbuild.utils import format_duration

console = Console()

TARGET_ACTIONS = (Action.BUILD, Action.TEST, Action.CLEAN, Action.FMT, Action.FMT_CHECK)


class ModuleDelegate:
    """Runs actions for one declared module.

    Parameters
    ----------
    name:
        Declared module name; also the module's subdirectory of the build root.
    path:
        Module directory.
    unit:
        The build unit found in *path* (a leaf adapter or an orchestrator).
    manager:
        Build-root manager used to ensure the shared root.
    """

    kind = "module"

    def __init__(
        self,
        name: str,
        path: str | Path,
        unit: BuildUnit,
        manager: BuildRootManager | None = None,
    ) -> None:
        self.name = name
        self.path = Path(path).resolve()
        self.unit = unit
        self.manager = manager or BuildRootManager()

    def target(self, action: Action | str) -> str:
        """Target name for *action*, e.g. ``core.build``."""
        return f"{self.name}.{Action(action).normalized().value}"

    def targets(self) -> list[str]:
        return [self.target(action) for action in TARGET_ACTIONS]

    async def run(self, action: Action | str, build_root: Path | None = None) -> DelegateResult:
        """Delegate *action* to the unit and record the outcome.

        I/O failures are fatal for this delegate only: they are recorded on
        the result and never retried.
        """
        action = Action(action).normalized()
        target = self.target(action)
        start = time.monotonic()
        exit_code = 0
        error: str | None = None

        try:
            root: Path | None = None
            if action.uses_build_root and build_root is not None:
                root = Path(build_root).resolve()
                if action is not Action.CLEAN:
                    root = self.manager.ensure(root)
            exit_code = await self.unit.run(action, self.name, root)
        except OSError as exc:
            exit_code = 1
            error = str(exc)

        result = DelegateResult(
            target=target,
            module=self.name,
            action=action.value,
            exit_code=exit_code,
            duration_seconds=round(time.monotonic() - start, 3),
            error=error,
        )
        self._report(result)
        return result

    @staticmethod
    def _report(result: DelegateResult) -> None:
        duration = format_duration(result.duration_seconds)
        if result.success:
            console.print(f"[green]ok[/green]   {escape(result.target)} [dim]({duration})[/dim]")
        elif result.error:
            console.print(f"[red]FAIL[/red] {escape(result.target)}: {escape(result.error)}")
        else:
            console.print(
                f"[red]FAIL[/red] {escape(result.target)} "
                f"[dim](exit {result.exit_code}, {duration})[/dim]"
            )


class LibraryDelegate(ModuleDelegate):
    """Delegate for the single auxiliary library directory.

    Its identity is the directory name itself, so its targets are always
    ``<libs_dir>.build``, ``<libs_dir>.test`` and so on.
    """

    kind = "library"

    def __init__(
        self,
        libs_dir: str,
        project_dir: str | Path,
        unit: BuildUnit,
        manager: BuildRootManager | None = None,
    ) -> None:
        super().__init__(libs_dir, Path(project_dir) / libs_dir, unit, manager)
