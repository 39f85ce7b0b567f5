"""modbuild root orchestrator.

Turns a project manifest into delegates and drives them:

    build / all -- library dir, then every module, under the shared build root
    test        -- same order, test action
    clean       -- removes the whole build root (no per-module delegation)
    fmt         -- forwarded to every delegate, no build root

Delegates may run concurrently (``jobs`` > 1).  A failing delegate marks the
run failed but never cancels its siblings.  An orchestrator is itself a
:class:`BuildUnit`, so a module directory may hold another orchestrator.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from functools import partial
from pathlib import Path

from modbuild.adapters.base import Action, BuildUnit
from modbuild.adapters.cargo import CargoAdapter
from modbuild.adapters.factory import create_adapter
from modbuild.adapters.make import MakeAdapter
from modbuild.buildroot import BuildRootManager
from modbuild.config import MANIFEST_NAME, ConfigurationError, ProjectConfig
from modbuild.delegate import LibraryDelegate, ModuleDelegate
from modbuild.results import DelegateResult, RunReport
from modbuild.utils import console, format_duration, print_action_header, print_summary_table

UnitLoader = Callable[[Path], BuildUnit]


def load_unit(
    path: str | Path,
    *,
    manager: BuildRootManager | None = None,
    verbose: bool = False,
) -> BuildUnit:
    """Find the build unit a directory provides.

    Lookup order: a ``modbuild.yaml`` manifest (leaf adapter or nested
    orchestrator), then ``Cargo.toml``, then ``Makefile``.

    Raises:
        ConfigurationError: If the directory is missing or provides none of
            these.
    """
    directory = Path(path).resolve()
    if not directory.is_dir():
        raise ConfigurationError(f"Module path does not exist: {directory}", path=directory)

    if (directory / MANIFEST_NAME).is_file():
        config = ProjectConfig.load(directory / MANIFEST_NAME)
        if config.adapter is not None:
            return create_adapter(config.adapter, directory, manager=manager, verbose=verbose)
        return Orchestrator(config, directory, manager=manager, verbose=verbose)
    if (directory / "Cargo.toml").is_file():
        return CargoAdapter(directory, manager=manager, verbose=verbose)
    if (directory / "Makefile").is_file():
        return MakeAdapter(directory, manager=manager, verbose=verbose)

    raise ConfigurationError(
        f"{directory} does not implement the build contract "
        f"(no {MANIFEST_NAME}, Cargo.toml or Makefile)",
        path=directory,
    )


class Orchestrator(BuildUnit):
    """Delegates actions to every declared module of a project.

    Attributes:
        config: The project manifest (immutable).
        project_dir: Directory the manifest's relative paths are based on.
        jobs: Maximum number of delegates running at once.
    """

    kind = "orchestrator"

    def __init__(
        self,
        config: ProjectConfig,
        project_dir: str | Path,
        *,
        manager: BuildRootManager | None = None,
        loader: UnitLoader | None = None,
        jobs: int | None = None,
        verbose: bool = False,
    ) -> None:
        if not config.is_orchestrator:
            raise ConfigurationError(f"{project_dir} declares an adapter, not modules")
        self.config = config
        self.project_dir = Path(project_dir).resolve()
        self.manager = manager or BuildRootManager()
        self.jobs = jobs or config.jobs
        self._loader = loader or partial(load_unit, manager=self.manager, verbose=verbose)
        self._delegates: list[ModuleDelegate] | None = None

    @property
    def default_build_root(self) -> Path:
        return self.config.resolved_build_root(self.project_dir)

    @property
    def title(self) -> str:
        if self.config.name != "default":
            return self.config.name
        return self.project_dir.name

    # ------------------------------------------------------------------
    # Delegate resolution
    # ------------------------------------------------------------------

    def delegates(self) -> list[ModuleDelegate]:
        """Resolve every declared unit, library dir first.

        Nested orchestrators are resolved too, down to their leaves, so a
        bad declaration anywhere in the tree aborts the run before anything
        is dispatched.
        """
        return self.resolve()

    def resolve(self, ancestors: frozenset[Path] = frozenset()) -> list[ModuleDelegate]:
        """Resolve the whole delegate tree below this orchestrator.

        Args:
            ancestors: Project directories of the orchestrators that led
                here; reaching one of them again is a module cycle.

        Raises:
            ConfigurationError: If a module is missing, misdeclared, or
                part of a cycle.
        """
        if self.project_dir in ancestors:
            raise ConfigurationError(
                f"Module cycle: {self.project_dir} is reached again through its own modules",
                path=self.project_dir,
            )
        if self._delegates is None:
            chain = ancestors | {self.project_dir}
            delegates: list[ModuleDelegate] = []
            if self.config.libs_dir:
                path = self._checked_path(self.config.libs_dir)
                unit = self._load(path, chain)
                if isinstance(unit, MakeAdapter):
                    # The library makefile is driven through its default goal.
                    unit = unit.with_build_goal(None)
                delegates.append(LibraryDelegate(self.config.libs_dir, self.project_dir, unit, self.manager))
            for module in self.config.modules:
                path = self._checked_path(module.directory)
                delegates.append(ModuleDelegate(module.name, path, self._load(path, chain), self.manager))
            self._delegates = delegates
        return self._delegates

    def _load(self, path: Path, chain: frozenset[Path]) -> BuildUnit:
        unit = self._loader(path)
        if isinstance(unit, Orchestrator):
            unit.resolve(chain)
        return unit

    def _checked_path(self, relative: str) -> Path:
        path = (self.project_dir / relative).resolve()
        if self.project_dir == path or self.project_dir.is_relative_to(path):
            raise ConfigurationError(
                f"Module path {relative!r} points back at {self.project_dir}",
                path=path,
            )
        return path

    def find_delegate(self, name: str) -> ModuleDelegate:
        for delegate in self.delegates():
            if delegate.name == name:
                return delegate
        raise ConfigurationError(
            f"Unknown module {name!r}; declared: {', '.join(self.config.unit_names)}"
        )

    # ------------------------------------------------------------------
    # Top-level surface
    # ------------------------------------------------------------------

    async def execute(self, action: Action | str, build_root: str | Path | None = None) -> RunReport:
        """Run a top-level action across the whole project.

        Args:
            action: ``build``, ``test``, ``clean``, ``fmt``, ``fmt-check`` or ``all``.
            build_root: Overrides the manifest's build root.

        Raises:
            ConfigurationError: If any declared module cannot be resolved.
            BuildRootError: If ``clean`` cannot remove the build root.
        """
        action = Action(action).normalized()
        root = Path(build_root).resolve() if build_root is not None else self.default_build_root
        start = time.monotonic()
        print_action_header(action.value, self.title)

        if action is Action.CLEAN:
            self.manager.clean(root)
            return RunReport(
                action=action.value,
                build_root=root,
                duration_seconds=round(time.monotonic() - start, 3),
            )

        jobs = [(delegate, action) for delegate in self.delegates()]
        results = await self._dispatch(jobs, root)
        report = RunReport(
            action=action.value,
            build_root=root if action.uses_build_root else None,
            results=results,
            duration_seconds=round(time.monotonic() - start, 3),
        )
        self._print_report(report)
        return report

    async def run_targets(
        self,
        targets: list[str],
        build_root: str | Path | None = None,
    ) -> RunReport:
        """Run explicit delegate targets such as ``core.build`` or ``libs.test``.

        ``<name>.clean`` here is module-scoped: it removes only that
        module's subtree, unlike the root-wide top-level ``clean``.
        """
        jobs: list[tuple[ModuleDelegate, Action]] = []
        for target in targets:
            name, _, action_name = target.rpartition(".")
            try:
                action = Action(action_name).normalized()
            except ValueError:
                action = None
            if not name or action is None:
                raise ConfigurationError(
                    f"Invalid target {target!r}; expected <module>.<action>, "
                    f"e.g. {', '.join(self.available_targets()[:3])}"
                )
            jobs.append((self.find_delegate(name), action))

        root = Path(build_root).resolve() if build_root is not None else self.default_build_root
        start = time.monotonic()
        print_action_header("run", ", ".join(targets))
        results = await self._dispatch(jobs, root)
        report = RunReport(
            action="run",
            build_root=root,
            results=results,
            duration_seconds=round(time.monotonic() - start, 3),
        )
        self._print_report(report)
        return report

    def available_targets(self) -> list[str]:
        targets: list[str] = []
        for delegate in self.delegates():
            targets.extend(delegate.targets())
        return targets

    # ------------------------------------------------------------------
    # BuildUnit contract (nested use)
    # ------------------------------------------------------------------

    async def build(self, module_id: str, build_root: Path | None = None) -> int:
        return await self._run_nested(Action.BUILD, self._scoped_root(module_id, build_root))

    async def test(self, module_id: str, build_root: Path | None = None) -> int:
        return await self._run_nested(Action.TEST, self._scoped_root(module_id, build_root))

    async def clean(self, module_id: str, build_root: Path | None = None) -> int:
        if build_root is None:
            return await self._run_nested(Action.CLEAN, None)
        self.manager.clean(self._scoped_root(module_id, build_root))
        return 0

    async def fmt(self, module_id: str) -> int:
        return await self._run_nested(Action.FMT, None)

    async def fmt_check(self, module_id: str) -> int:
        return await self._run_nested(Action.FMT_CHECK, None)

    def describe(self) -> str:
        return f"orchestrator ({len(self.config.unit_names)} units)"

    @staticmethod
    def _scoped_root(module_id: str, build_root: Path | None) -> Path | None:
        """Nested units live entirely inside the parent's subtree for *module_id*."""
        if build_root is None:
            return None
        return Path(build_root).resolve() / module_id

    async def _run_nested(self, action: Action, build_root: Path | None) -> int:
        results = await self._dispatch([(d, action) for d in self.delegates()], build_root)
        return 0 if all(result.success for result in results) else 1

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        jobs: list[tuple[ModuleDelegate, Action]],
        build_root: Path | None,
    ) -> list[DelegateResult]:
        """Run delegates with at most ``self.jobs`` in flight.

        Every job runs to completion regardless of sibling failures.
        Results come back in job order.
        """
        semaphore = asyncio.Semaphore(self.jobs)

        async def _run_with_semaphore(delegate: ModuleDelegate, action: Action) -> DelegateResult:
            async with semaphore:
                return await delegate.run(action, build_root if action.uses_build_root else None)

        outcomes = await asyncio.gather(
            *(_run_with_semaphore(delegate, action) for delegate, action in jobs),
            return_exceptions=True,
        )

        results: list[DelegateResult] = []
        for (delegate, action), outcome in zip(jobs, outcomes):
            if isinstance(outcome, ConfigurationError):
                raise outcome
            if isinstance(outcome, Exception):
                results.append(
                    DelegateResult(
                        target=delegate.target(action),
                        module=delegate.name,
                        action=action.value,
                        exit_code=1,
                        error=f"Unexpected error: {outcome!r}",
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

    @staticmethod
    def _print_report(report: RunReport) -> None:
        rows = [
            (
                result.target,
                "[green]PASS[/green]" if result.success else "[red]FAIL[/red]",
                str(result.exit_code),
                format_duration(result.duration_seconds),
            )
            for result in report.results
        ]
        if rows:
            print_summary_table(rows, ["Target", "Status", "Exit", "Duration"], title="Summary")
        color = "green" if report.success else "red"
        console.print(report.summary_text(), style=f"bold {color}", markup=False, highlight=False)
