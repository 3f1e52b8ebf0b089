from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path
from typing import Any

from tqdm import tqdm

"""Directory import progress bar (tqdm).

The bar is only drawn on a TTY; under CI or a pipe the tracker still counts
outcomes but writes nothing, so log files never get carriage returns.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Counts per-file outcomes (imported / blocked / failed) while a bar advances."""

    def __init__(self, total_files: int, *, description: str = "Importing frameworks") -> None:
        self.total_files = total_files
        self.description = description
        self.outcomes: Counter[str] = Counter()
        self.pbar: Any = None
        if is_tty_enabled():
            self.pbar = tqdm(
                total=total_files,
                desc=description,
                unit="file",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    @property
    def done(self) -> int:
        return sum(self.outcomes.values())

    def start_file(self, file_path: Path) -> None:
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({file_path.name})")

    def finish_file(self, status: str) -> None:
        self.outcomes[status] += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        self.pbar.set_description(self.description)
        self.pbar.set_postfix(dict(sorted(self.outcomes.items())))

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
