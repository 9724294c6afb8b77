"""Output rendering for the mirrorkit CLI.

File: src/mirrorkit/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin rendering layer over ``rich`` for CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Factory function to create a renderer with appropriate settings.

Functional requirements
- Output written to a non-terminal stream must stay plain text.
"""

from __future__ import annotations

import os
from typing import IO, TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    return not os.environ.get("NO_COLOR", "")


class CLIRenderer:
    """Thin CLI output renderer backed by a ``rich`` console."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        file: IO[str] | None = None,
    ) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)
        self.console = Console(
            file=file,
            no_color=not self._color,
            highlight=False,
            soft_wrap=True,
        )

    def heading(self, text: str) -> None:
        self.console.print(text, style="bold", markup=False)

    def kv(self, key: str, value: object) -> None:
        self.console.print(f"{key}: {value}", markup=False)

    def text(self, line: str) -> None:
        self.console.print(line, markup=False)

    def blank(self) -> None:
        self.console.print()

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self.console.print()
        self.console.print(title, style="bold cyan", markup=False)

    def warning(self, text: str) -> None:
        self.console.print(f"  Warning: {text}", style="yellow", markup=False)

    def error(self, text: str) -> None:
        self.console.print(f"error: {text}", style="bold red", markup=False)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self.console.print(f"  {prefix}{entry}", markup=False)

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a table; nothing is printed for an empty row set."""

        if not rows:
            return
        if title:
            self.section(title)
        table = Table(show_edge=False, box=None, pad_edge=False, header_style="bold")
        for header in headers:
            table.add_column(header)
        for row in rows:
            cells = [str(cell) for cell in row][: len(headers)]
            cells.extend("" for _ in range(len(headers) - len(cells)))
            table.add_row(*cells)
        self.console.print(table)

    def ok(self, label: str) -> None:
        self.console.print(f"  OK  {label}", style="green", markup=False)

    def fail(self, label: str) -> None:
        self.console.print(f"  FAIL  {label}", style="red", markup=False)


def create_renderer(
    *, no_color: bool = False, verbose: bool = False, file: IO[str] | None = None
) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose, file=file)


__all__ = ["CLIRenderer", "create_renderer"]
