"""Adapter for toolchains described by plain shell commands.

Each action maps to a shell template.  Templates may use ``{build_dir}``,
``{module}`` and ``{source_dir}``; values are shell-quoted before
substitution.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from modbuild.buildroot import BuildRootManager
from modbuild.config import ConfigurationError

from .base import SubprocessAdapter


class CommandAdapter(SubprocessAdapter):
    """Runs user-declared shell commands for each action.

    ``build`` and ``test`` must be declared.  Formatting commands are
    optional and default to doing nothing.  Without a ``clean`` command the
    module build dir is removed directly.  Every template is rendered once
    on construction, so a bad placeholder is a configuration error before
    anything runs.
    """

    kind = "command"

    def __init__(
        self,
        source_dir: str | Path,
        commands: dict[str, str],
        *,
        subpath: str = "target",
        manager: BuildRootManager | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(source_dir, subpath=subpath, manager=manager, verbose=verbose)
        missing = [action for action in ("build", "test") if not commands.get(action)]
        if missing:
            raise ConfigurationError(
                f"Command adapter in {self.source_dir} has no command for: {', '.join(missing)}"
            )
        self.commands = dict(commands)
        for action in self.commands:
            self.render(action, "module", Path("build_dir"))

    def render(self, action: str, module_id: str, build_dir: Path | None = None) -> str | None:
        """Fill in the template for *action*, or ``None`` if none is declared."""
        template = self.commands.get(action)
        if not template:
            return None
        try:
            return template.format(
                build_dir=shlex.quote(str(build_dir or "")),
                module=shlex.quote(module_id),
                source_dir=shlex.quote(str(self.source_dir)),
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigurationError(
                f"Bad {action!r} command template in {self.source_dir}: {exc!r}"
            ) from exc

    def build_command(self, build_dir: Path, module_id: str) -> str:
        return self.render("build", module_id, build_dir) or ""

    def test_command(self, build_dir: Path, module_id: str) -> str:
        return self.render("test", module_id, build_dir) or ""

    def fmt_command(self, module_id: str, check: bool = False) -> str | None:
        return self.render("fmt-check" if check else "fmt", module_id)

    async def clean(self, module_id: str, build_root: Path | None = None) -> int:
        build_dir = self.module_build_dir(module_id, build_root)
        cmd = self.render("clean", module_id, build_dir)
        if cmd is None:
            return await super().clean(module_id, build_root)
        return await self._execute(module_id, cmd)
