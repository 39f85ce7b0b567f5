"""Make adapter for directories driven by a Makefile.

Hands the action to ``make`` as a goal and passes the absolute build root
as ``BUILD_DIR``.  The makefile decides its own module subdirectory, so this
adapter creates the shared root but never a module build dir.
"""

from __future__ import annotations

from pathlib import Path

from modbuild.buildroot import BuildRootManager

from .base import SubprocessAdapter


class MakeAdapter(SubprocessAdapter):
    """Runs ``make <action> BUILD_DIR=<root>`` in the module directory.

    ``build_goal`` is the goal used for ``build``; ``None`` runs the
    makefile's default goal, which is how a library directory is built.
    """

    kind = "make"

    def __init__(
        self,
        source_dir: str | Path,
        *,
        executable: str | None = None,
        build_goal: str | None = "build",
        manager: BuildRootManager | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(source_dir, subpath=".", manager=manager, verbose=verbose)
        self.make = executable or "make"
        self.build_goal = build_goal

    def with_build_goal(self, goal: str | None) -> "MakeAdapter":
        """Return a copy of this adapter that builds through *goal*."""
        return MakeAdapter(
            self.source_dir,
            executable=self.make,
            build_goal=goal,
            manager=self.manager,
            verbose=self.verbose,
        )

    def _goal(self, goal: str | None, build_root: Path | None = None) -> list[str]:
        cmd = [self.make]
        if goal is not None:
            cmd.append(goal)
        if build_root is not None:
            cmd.append(f"BUILD_DIR={build_root}")
        return cmd

    def build_command(self, build_dir: Path | None, module_id: str) -> list[str]:
        return self._goal(self.build_goal, build_dir)

    def test_command(self, build_dir: Path | None, module_id: str) -> list[str]:
        return self._goal("test", build_dir)

    def fmt_command(self, module_id: str, check: bool = False) -> list[str]:
        return self._goal("fmt-check" if check else "fmt")

    async def build(self, module_id: str, build_root: Path | None = None) -> int:
        return await self._execute(module_id, self.build_command(self._root(build_root), module_id))

    async def test(self, module_id: str, build_root: Path | None = None) -> int:
        return await self._execute(module_id, self.test_command(self._root(build_root), module_id))

    async def clean(self, module_id: str, build_root: Path | None = None) -> int:
        root = Path(build_root).resolve() if build_root is not None else None
        return await self._execute(module_id, self._goal("clean", root))

    def describe(self) -> str:
        return f"make ({self.build_goal or 'default goal'})"

    def _root(self, build_root: Path | None) -> Path | None:
        if build_root is None:
            return None
        return self.manager.ensure(build_root)
