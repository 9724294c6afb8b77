"""UI package exports for the CLI router and its rendering layer."""

from mirrorkit.ui.cli import CLIError, build_parser, run_cli
from mirrorkit.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
]
