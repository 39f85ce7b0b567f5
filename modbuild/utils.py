"""Shared utility functions for modbuild.

Provides async command execution for leaf build actions and Rich-based
console reporting.  Leaf commands are opaque: this module only knows how
to start them, wait for them and hand back their exit status and output.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

# Exit status reported when a leaf command never produced one of its own.
NO_EXIT_STATUS = -1

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: str | list[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously and collect its output.

    Args:
        cmd: Shell command string or list of arguments.  Strings go through
            the shell, lists are executed directly.
        cwd: Working directory for the child process.
        timeout: Optional wall-clock limit in seconds.  Leaf build actions
            run without one; the invoking environment owns timeouts.
        env: Optional extra environment variables merged on top of
            ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A command that cannot be
        started returns :data:`NO_EXIT_STATUS` with the reason in stderr.
    """
    spawn_kwargs = {
        "stdout": asyncio.subprocess.PIPE,
        "stderr": asyncio.subprocess.PIPE,
        "cwd": str(cwd) if cwd else None,
        "env": {**os.environ, **env} if env else None,
    }
    try:
        if isinstance(cmd, str):
            process = await asyncio.create_subprocess_shell(cmd, **spawn_kwargs)
        else:
            process = await asyncio.create_subprocess_exec(*cmd, **spawn_kwargs)
    except FileNotFoundError:
        name = cmd.split()[0] if isinstance(cmd, str) else cmd[0]
        return NO_EXIT_STATUS, "", f"Command not found: {name}"

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return NO_EXIT_STATUS, "", f"Command timed out after {timeout}s: {format_command(cmd)}"

    returncode = NO_EXIT_STATUS if process.returncode is None else process.returncode
    return returncode, _decode(out), _decode(err)


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace").strip()


def format_command(cmd: str | list[str]) -> str:
    """Render a command for display."""
    return cmd if isinstance(cmd, str) else " ".join(cmd)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render *seconds* as ``3.7s``, ``1m 5s`` or ``1h 1m 1s``."""
    if seconds < 60:
        return f"{max(seconds, 0.0):.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{hours}h"] if hours else []
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


ACTION_COLORS: dict[str, str] = {
    "build": "bright_yellow",
    "test": "bright_magenta",
    "clean": "bright_red",
    "fmt": "bright_cyan",
    "fmt-check": "bright_cyan",
}


def print_action_header(action: str, subject: str) -> None:
    """Print a full-width rule announcing an orchestrated action."""
    color = ACTION_COLORS.get(action, "white")
    console.print()
    console.print(
        Rule(
            f"[bold {color}] {action.upper()}: {escape(subject)} [/bold {color}]",
            style=color,
        )
    )


def print_summary_table(rows: list[tuple[str, ...]], columns: list[str], title: str) -> None:
    """Print a simple table with the given column headers."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for index, column in enumerate(columns):
        if index == 0:
            table.add_column(column, style="bold", no_wrap=True)
        else:
            table.add_column(column)

    for row in rows:
        table.add_row(*row)

    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
