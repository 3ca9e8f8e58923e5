"""Shared utility functions for the live preview core.

Provides async command execution, content hashing, and Rich-based console
reporting used by the build coordinator and the transform backends.
"""

from __future__ import annotations

import asyncio
import hashlib

from rich.console import Console
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: list[str],
    input_text: str | None = None,
    timeout: float = 30.0,
) -> tuple[int, str, str]:
    """Run a command asynchronously, optionally feeding *input_text* on stdin.

    Args:
        cmd: Command and its arguments.
        input_text: Text written to the child's stdin before it is closed.
        timeout: Maximum wall-clock seconds before the process is killed.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple. A timeout yields returncode
        ``-1`` and a descriptive stderr.

    Raises:
        FileNotFoundError: If the executable does not exist.
        OSError: If the executable cannot be started.
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE if input_text is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    payload = input_text.encode("utf-8") if input_text is not None else None
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(payload), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (-1, "", f"Command timed out after {timeout}s: {' '.join(cmd)}")

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def content_hash(content: str) -> str:
    """Return a short, stable hash of *content* (first 16 hex chars of SHA-256)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")


def print_info(message: str) -> None:
    """Print a dim informational message."""
    console.print(f"[dim]{message}[/dim]")
