"""Diffs shown before an installed file is overwritten."""

import difflib
from collections.abc import Callable
from dataclasses import dataclass

from rich.console import Console
from rich.syntax import Syntax


@dataclass
class FileDiff:
    old_content: str
    new_content: str
    from_label: str
    to_label: str

    @property
    def changed(self) -> bool:
        return self.old_content != self.new_content

    def unified(self, context: int = 3) -> str:
        """Unified diff of the two contents, empty when they are equal."""
        lines = difflib.unified_diff(
            self.old_content.splitlines(keepends=True),
            self.new_content.splitlines(keepends=True),
            fromfile=self.from_label,
            tofile=self.to_label,
            n=context,
        )
        return "".join(line if line.endswith("\n") else f"{line}\n" for line in lines)


# Returns whether the new content should be written
Confirm = Callable[[FileDiff], bool]


def print_diff(diff: FileDiff, console: Console) -> None:
    console.print(Syntax(diff.unified(), "diff", theme="ansi_dark", word_wrap=True))
