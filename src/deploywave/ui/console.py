"""Console output formatting utilities for deploywave."""

from __future__ import annotations

import sys
from typing import List, Optional, Sequence

from deploywave.model import ExpandedStage, StageKind


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_pipeline_started(self, pipeline: str, config: str, stage_count: int) -> None:
        """Print assembly start information."""
        print("\nPIPELINE")
        print(f"Name: {pipeline}")
        print(f"Config: {config}")
        print(f"Stages: {stage_count}")
        print()

    def print_plan(self, levels: Sequence[List[ExpandedStage]]) -> None:
        """
        Print the execution plan, one line per level.
        Stages sharing a level run in parallel.
        """
        for idx, level in enumerate(levels, start=1):
            if len(level) > 1:
                names = ", ".join(s.environment or s.id for s in level)
                print(f"  {idx}. wave {level[0].wave}: {names} (parallel)")
            else:
                self._print_stage(idx, level[0])
            for stage in level:
                if len(level) > 1:
                    self._print_hooks(stage, indent="       ")

    def _print_stage(self, idx: int, stage: ExpandedStage) -> None:
        if stage.kind is StageKind.WAVE_PRE:
            print(f"  {idx}. wave {stage.wave}: pre")
            self._print_commands(stage.pre, "       ")
            return
        if stage.kind is StageKind.WAVE_POST:
            print(f"  {idx}. wave {stage.wave}: post")
            self._print_commands(stage.post, "       ")
            return
        label = f"wave {stage.wave}: {stage.environment}" if stage.wave else stage.environment
        print(f"  {idx}. {label}")
        self._print_hooks(stage, indent="       ")

    def _print_hooks(self, stage: ExpandedStage, indent: str) -> None:
        if stage.kind is not StageKind.ENVIRONMENT:
            return
        if stage.pre:
            print(f"{indent}{stage.environment} pre:")
            self._print_commands(stage.pre, indent + "  ")
        if stage.post:
            print(f"{indent}{stage.environment} post:")
            self._print_commands(stage.post, indent + "  ")

    def _print_commands(self, commands: Sequence[str], indent: str) -> None:
        for cmd in commands:
            print(f"{indent}$ {cmd}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
