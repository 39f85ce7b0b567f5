"""Build leaf adapters from manifest declarations."""

from __future__ import annotations

from pathlib import Path

from modbuild.buildroot import BuildRootManager
from modbuild.config import AdapterSpec

from .base import SubprocessAdapter
from .cargo import CargoAdapter
from .command import CommandAdapter
from .make import MakeAdapter


def create_adapter(
    spec: AdapterSpec,
    source_dir: str | Path,
    *,
    manager: BuildRootManager | None = None,
    verbose: bool = False,
) -> SubprocessAdapter:
    """Instantiate the adapter *spec* describes for *source_dir*."""
    if spec.kind == "cargo":
        return CargoAdapter(
            source_dir,
            subpath=spec.subpath,
            release=spec.release,
            executable=spec.executable,
            manager=manager,
            verbose=verbose,
        )
    if spec.kind == "make":
        return MakeAdapter(source_dir, executable=spec.executable, manager=manager, verbose=verbose)
    return CommandAdapter(
        source_dir,
        spec.commands,
        subpath=spec.subpath,
        manager=manager,
        verbose=verbose,
    )
