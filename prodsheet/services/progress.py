from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

The dashboard loads every stage page in turn; the bar shows which stage is
being counted. In non-TTY environments (CI, pipes) no bar is drawn so that
the labelled log output stays clean.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Single tqdm instance over a fixed number of stages."""

    def __init__(self, total_stages: int, *, description: str = "Loading stages") -> None:
        self.total_stages = total_stages
        self.description = description
        self.current_stage = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_stages,
                desc=description,
                unit="stage",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_stage(self, title: str) -> None:
        self.current_stage += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({title})")

    def finish_stage(self, success: bool = True) -> None:
        if not success:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            self.pbar.set_postfix(failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
