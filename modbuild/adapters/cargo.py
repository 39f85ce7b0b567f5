"""Cargo adapter for Rust crates.

Points cargo's ``--target-dir`` at the module build dir, so the same crate
builds into ``<root>/<module>/target`` when orchestrated and into its own
``./target`` when run standalone.
"""

from __future__ import annotations

from pathlib import Path

from modbuild.buildroot import BuildRootManager

from .base import SubprocessAdapter


class CargoAdapter(SubprocessAdapter):
    """Builds, tests and formats a crate with cargo."""

    kind = "cargo"

    def __init__(
        self,
        source_dir: str | Path,
        *,
        subpath: str = "target",
        release: bool = True,
        executable: str | None = None,
        manager: BuildRootManager | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(source_dir, subpath=subpath, manager=manager, verbose=verbose)
        self.release = release
        self.cargo = executable or "cargo"

    def build_command(self, build_dir: Path, module_id: str) -> list[str]:
        cmd = [self.cargo, "build"]
        if self.release:
            cmd.append("--release")
        return cmd + ["--target-dir", str(build_dir)]

    def test_command(self, build_dir: Path, module_id: str) -> list[str]:
        return [self.cargo, "test", "--target-dir", str(build_dir)]

    def fmt_command(self, module_id: str, check: bool = False) -> list[str]:
        if check:
            return [self.cargo, "fmt", "--", "--check"]
        return [self.cargo, "fmt"]

    def describe(self) -> str:
        return f"cargo ({'release' if self.release else 'debug'})"
