"""Build-root lifecycle management.

A build root is the single absolute directory under which every module of
an orchestrated invocation keeps its artifacts.  It is created lazily by
whichever delegate needs it first and removed only by an explicit clean.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from rich.console import Console

console = Console()


class BuildRootError(OSError):
    """Raised when a build root (or a module build dir) cannot be created or removed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class BuildRootManager:
    """Creates and removes build roots.

    ``ensure`` is idempotent and safe to call concurrently from every
    delegate: creation is one ``mkdir(exist_ok=True)`` call, so a directory
    created by a racing caller satisfies the postcondition just the same.
    Nothing here is retried.
    """

    def ensure(self, root: str | Path) -> Path:
        """Create *root* (and missing parents) if absent.

        Returns:
            The absolute path of the existing, writable directory.

        Raises:
            BuildRootError: If the path exists as a non-directory, cannot be
                created, or is not writable.
        """
        path = Path(root).resolve()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except FileExistsError as exc:
            raise BuildRootError(f"Build root exists and is not a directory: {path}", path=path) from exc
        except OSError as exc:
            raise BuildRootError(f"Cannot create build root {path}: {exc.strerror or exc}", path=path) from exc

        if not os.access(path, os.W_OK | os.X_OK):
            raise BuildRootError(f"Build root is not writable: {path}", path=path)
        return path

    def clean(self, root: str | Path) -> bool:
        """Recursively remove *root*.

        Returns:
            ``True`` if something was removed, ``False`` if the root was
            already absent (which counts as success).

        Raises:
            BuildRootError: On any other I/O failure.
        """
        path = Path(root).resolve()
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise BuildRootError(f"Cannot remove build root {path}: {exc.strerror or exc}", path=path) from exc

        console.print(f"[yellow]Removed[/yellow] {path}")
        return True
