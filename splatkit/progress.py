"""A terminal progress bar for the training loop."""

from __future__ import annotations

import sys
import time
from typing import Callable, TextIO

__all__ = ["TrainingProgress"]

_BAR_WIDTH = 40
_START, _FILL, _LEAD, _REMAINDER, _END = "[", "\u2588", "\u258c", "\u2591", "]"
_PREFIX = "Training "
_STYLE = "\033[1m\033[36m"
_RESET = "\033[0m"


def _format_duration(seconds: float) -> str:
    total = max(int(seconds), 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours:02d}h:{minutes:02d}m:{secs:02d}s"
    return f"{minutes:02d}m:{secs:02d}s"


class TrainingProgress:
    """Shows training progress, loss and splat count on a single terminal line."""

    def __init__(
        self,
        total_iterations: int,
        update_frequency: int = 100,
        enable_early_stopping: bool = False,
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_iterations = int(total_iterations)
        self.update_frequency = int(update_frequency)
        self.enable_early_stopping = enable_early_stopping
        self._stream = stream if stream is not None else sys.stdout
        self._clock = clock
        self._progress = 0
        self._postfix = "Initializing..."
        self._completed = False
        self._start = clock()

    @property
    def progress(self) -> int:
        """Percentage shown on the bar."""
        return self._progress

    @property
    def postfix_text(self) -> str:
        return self._postfix

    @property
    def is_completed(self) -> bool:
        return self._completed

    def __enter__(self) -> TrainingProgress:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.complete()

    def _render(self) -> None:
        shown = min(self._progress, 100)
        filled = _BAR_WIDTH * shown // 100
        bar = _FILL * filled
        if filled < _BAR_WIDTH:
            bar += _LEAD + _REMAINDER * (_BAR_WIDTH - filled - 1)
        elapsed = self._clock() - self._start
        remaining = elapsed * (100 - shown) / shown if shown > 0 else 0.0
        line = (
            f"\r{_STYLE}{_PREFIX}{_START}{bar}{_END} {shown}% "
            f"[{_format_duration(elapsed)}<{_format_duration(remaining)}] "
            f"{self._postfix}{_RESET}"
        )
        self._stream.write(line)
        self._stream.flush()

    def _set_progress(self, value: int) -> None:
        self._progress = value
        if not self._completed:
            self._render()

    def update(
        self, current_iteration: int, loss: float, splat_count: int, is_densifying: bool = False
    ) -> None:
        """Refresh the bar every ``update_frequency`` iterations."""
        if current_iteration % self.update_frequency != 0:
            return
        percent = current_iteration / self.total_iterations * 100
        self._progress = int(percent)
        postfix = f"{current_iteration}/{self.total_iterations} | Loss: {loss:.4f} | Splats: {splat_count}"
        if is_densifying:
            postfix += " (+)"
        self._postfix = postfix
        if not self._completed:
            self._render()

    def pause(self) -> None:
        """End the current bar line so other output can be printed."""
        if not self._completed:
            self._completed = True
            self._stream.write("\n")
            self._stream.flush()

    def resume(self, current_iteration: int, loss: float, splat_count: int) -> None:
        """Start drawing the bar again after a pause."""
        self._completed = False
        self._set_progress(int(current_iteration / self.total_iterations * 100))
        self.update(current_iteration, loss, splat_count, False)

    def complete(self) -> None:
        """Fill the bar and finish its line; does nothing once completed."""
        if not self._completed:
            self._set_progress(100)
            self._completed = True
            self._stream.write("\n")
            self._stream.flush()

    def print_final_summary(self, final_splats: int, actual_iterations: int = -1) -> None:
        """Print the total training time, iteration rate and final splat count."""
        self.complete()
        elapsed = self._clock() - self._start
        iterations = actual_iterations if actual_iterations > 0 else self.total_iterations
        rate = iterations / elapsed if elapsed > 0 else float("inf")
        self._stream.write(
            f"\n\u2713 Training completed in {elapsed:.3f}s (avg {rate:.1f} iter/s)\n"
            f"\u2713 Final splats: {final_splats}\n"
        )
        self._stream.flush()