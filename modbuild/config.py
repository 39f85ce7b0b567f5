"""modbuild configuration.

Every directory that takes part in an orchestrated build may carry a
``modbuild.yaml`` manifest.  A manifest declares either a leaf adapter
(how to build this one module) or a set of modules plus an optional
library directory (an orchestrator).  All settings use Pydantic v2 models so
they are validated once, at load time, and then passed explicitly to the
objects that need them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path, PurePath
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

MANIFEST_NAME = "modbuild.yaml"
DEFAULT_BUILD_ROOT = Path("build")
DEFAULT_MODULE_ID = "default"

# Actions a command adapter may declare a command for.
COMMAND_ACTIONS = ("build", "test", "clean", "fmt", "fmt-check")


class ConfigurationError(Exception):
    """Raised for an invalid or inconsistent build declaration.

    Configuration errors are fatal: they are raised before any delegate is
    dispatched, so a bad declaration never causes a partial run.
    """

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def _check_component(value: str, what: str) -> str:
    """Reject names that are not a single, plain path component."""
    if (
        not value
        or value in (".", "..")
        or value != value.strip()
        or "/" in value
        or "\\" in value
    ):
        raise ValueError(f"{what} must be a single path component, got {value!r}")
    return value


class ModuleSpec(BaseModel):
    """A declared module: a unique name and the directory that holds it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Module identity; names its subtree of the build root")
    path: str = Field(default="", description="Directory relative to the manifest (defaults to name)")

    @field_validator("name")
    @classmethod
    def _name_is_component(cls, value: str) -> str:
        return _check_component(value, "module name")

    @property
    def directory(self) -> str:
        """The module directory relative to the declaring manifest."""
        return self.path or self.name


class AdapterSpec(BaseModel):
    """Declares which leaf adapter builds a module and how."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["cargo", "make", "command"]
    subpath: str = Field(default="target", description="Adapter directory below <root>/<module>")
    release: bool = Field(default=True, description="cargo: build with --release")
    executable: str | None = Field(default=None, description="Override the tool binary (cargo / make)")
    commands: dict[str, str] = Field(
        default_factory=dict,
        description="command: shell template per action",
    )

    @field_validator("subpath")
    @classmethod
    def _subpath_is_relative(cls, value: str) -> str:
        pure = PurePath(value)
        if not value or pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"subpath must be a relative path inside the module tree, got {value!r}")
        return value

    @field_validator("commands")
    @classmethod
    def _known_actions(cls, value: dict[str, str]) -> dict[str, str]:
        unknown = sorted(set(value) - set(COMMAND_ACTIONS))
        if unknown:
            raise ValueError(
                f"unknown actions in commands: {', '.join(unknown)} "
                f"(expected any of {', '.join(COMMAND_ACTIONS)})"
            )
        return value


class ProjectConfig(BaseModel):
    """A parsed ``modbuild.yaml`` manifest.

    Exactly one of two shapes is accepted:

    * a leaf, with ``adapter`` set, or
    * an orchestrator, with ``modules`` and/or ``libs_dir`` set.

    Instances are immutable; overrides produce a copy.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default=DEFAULT_MODULE_ID, description="Module id used when run standalone")
    adapter: AdapterSpec | None = None
    modules: tuple[ModuleSpec, ...] = Field(default=())
    libs_dir: str | None = Field(default=None, description="Auxiliary library directory")
    build_root: Path | None = Field(default=None, description="Shared build root (orchestrators)")
    jobs: int = Field(default=1, ge=1, description="Maximum concurrently running delegates")

    @field_validator("name")
    @classmethod
    def _name_is_component(cls, value: str) -> str:
        return _check_component(value, "name")

    @field_validator("libs_dir")
    @classmethod
    def _libs_is_component(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return _check_component(value, "libs_dir")

    @model_validator(mode="after")
    def _check_shape(self) -> "ProjectConfig":
        if self.adapter is not None and self.is_orchestrator:
            raise ValueError("a manifest declares either an adapter or modules, not both")
        if self.adapter is None and not self.is_orchestrator:
            raise ValueError("a manifest must declare an adapter, modules or libs_dir")

        seen: set[str] = set()
        duplicates: list[str] = []
        for name in self.unit_names:
            if name in seen and name not in duplicates:
                duplicates.append(name)
            seen.add(name)
        if duplicates:
            raise ValueError(f"duplicate module names: {', '.join(duplicates)}")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_orchestrator(self) -> bool:
        return bool(self.modules) or self.libs_dir is not None

    @property
    def unit_names(self) -> list[str]:
        """Library directory first, then modules in declaration order."""
        names = [self.libs_dir] if self.libs_dir else []
        return names + [module.name for module in self.modules]

    def resolved_build_root(self, base_dir: Path) -> Path:
        """Absolute build root for an orchestrator rooted at *base_dir*."""
        root = self.build_root or DEFAULT_BUILD_ROOT
        if not root.is_absolute():
            root = base_dir / root
        return root.resolve()

    # ------------------------------------------------------------------
    # Loading & overrides
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> "ProjectConfig":
        """Load a manifest from a file, or from ``<dir>/modbuild.yaml``.

        Raises:
            ConfigurationError: If the file is missing, is not valid YAML,
                or does not validate.
        """
        manifest = Path(path)
        if manifest.is_dir():
            manifest = manifest / MANIFEST_NAME
        if not manifest.is_file():
            raise ConfigurationError(f"Manifest not found: {manifest}", path=manifest)

        try:
            raw = yaml.safe_load(manifest.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {manifest}: {exc}", path=manifest) from exc

        if not isinstance(raw, Mapping):
            raise ConfigurationError(
                f"Manifest {manifest} must contain a mapping at the top level",
                path=manifest,
            )

        try:
            return cls.model_validate(dict(raw))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid manifest {manifest}:\n{exc}", path=manifest) from exc

    def with_env(self, environ: Mapping[str, str] | None = None) -> "ProjectConfig":
        """Return a copy with environment overrides applied.

        Recognised variables (all optional):
            MODBUILD_BUILD_ROOT, MODBUILD_JOBS.
        """
        env = os.environ if environ is None else environ
        update: dict[str, object] = {}

        if env.get("MODBUILD_BUILD_ROOT"):
            # Relative to the invoking directory, like --build-root.
            update["build_root"] = Path(env["MODBUILD_BUILD_ROOT"]).resolve()
        if env.get("MODBUILD_JOBS"):
            update["jobs"] = parse_jobs(env["MODBUILD_JOBS"])

        return self.model_copy(update=update) if update else self


def parse_jobs(value: str | int) -> int:
    """Parse a parallel job count, rejecting anything below 1."""
    try:
        jobs = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid job count: {value!r}") from None
    if jobs < 1:
        raise ConfigurationError(f"Job count must be >= 1, got {jobs}")
    return jobs
