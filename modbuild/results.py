"""Outcome models for orchestrated runs.

A failing delegate is data, not an exception: every delegate produces a
:class:`DelegateResult`, and a :class:`RunReport` aggregates them so one
failure marks the run failed without hiding what its siblings did.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class DelegateResult(BaseModel):
    """Outcome of one delegate target such as ``core.build``."""

    target: str = Field(..., description="Target name, e.g. 'core.build'")
    module: str = Field(..., description="Module (or library dir) name")
    action: str = Field(..., description="Action that was delegated")
    exit_code: int = Field(default=0, description="Leaf exit status; non-zero is a failure")
    duration_seconds: float = Field(default=0.0, ge=0.0)
    error: Optional[str] = Field(default=None, description="I/O or unexpected error, if any")

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        """True when the leaf exited 0 and no error was recorded."""
        return self.exit_code == 0 and self.error is None


class RunReport(BaseModel):
    """Aggregate outcome of one orchestrated action."""

    action: str
    build_root: Optional[Path] = None
    results: list[DelegateResult] = Field(default_factory=list)
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        """True when every delegate succeeded (vacuously true for none)."""
        return all(result.success for result in self.results)

    @property
    def failed(self) -> list[DelegateResult]:
        return [result for result in self.results if not result.success]

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def summary_text(self) -> str:
        """Return a one-line human-readable summary."""
        status = "PASSED" if self.success else "FAILED"
        passed = len(self.results) - len(self.failed)
        line = f"{self.action}: {status} ({passed}/{len(self.results)} targets succeeded"
        if self.failed:
            line += f"; failed: {', '.join(result.target for result in self.failed)}"
        return line + ")"
