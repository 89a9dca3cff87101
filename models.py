"""
Data models for the asset bundling tasks.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AssetFile:
    """A single source file read for a bundle."""

    kind: str
    path: str
    content: str

    @property
    def size(self) -> int:
        """Size of the raw content in bytes."""
        return len(self.content.encode("utf-8"))


@dataclass
class Bundle:
    """Concatenated output of a bundle and its size accounting."""

    name: str
    kind: str
    member_paths: List[str] = field(default_factory=list)
    contents: List[str] = field(default_factory=list)
    old_size: int = 0
    new_size: int = 0

    def add(self, path: str, raw_size: int, content: str) -> None:
        """Fold one processed member into the bundle."""
        self.member_paths.append(path)
        self.contents.append(content)
        self.old_size += raw_size
        self.new_size += len(content.encode("utf-8"))

    @property
    def output(self) -> bytes:
        """Bundle body: every member followed by a newline."""
        return "".join(content + "\n" for content in self.contents).encode("utf-8")

    @property
    def percent_saved(self) -> Optional[float]:
        """Fraction of bytes saved, or ``None`` when nothing was read."""
        if self.old_size <= 0:
            return None
        return 1 - (self.new_size / self.old_size)

    def __iter__(self):
        # Allows ``output, old_size, new_size, members = bundle``
        return iter((self.output, self.old_size, self.new_size, list(self.member_paths)))


@dataclass
class FileResult:
    """Outcome of minifying one standalone file."""

    source: str
    target: str
    old_size: int
    new_size: int

    @property
    def percent_saved(self) -> Optional[float]:
        if self.old_size <= 0:
            return None
        return 1 - (self.new_size / self.old_size)


@dataclass
class BundleRunResult:
    """Per-bundle outcome of a batch run."""

    name: str
    path: Optional[str] = None
    bundle: Optional[Bundle] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LocaleResult:
    """Per-locale outcome of locale bundle generation."""

    locale: str
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def format_percent(value: Optional[float]) -> str:
    """Format a saved fraction the way the task summaries print it."""
    if value is None:
        return "n/a"
    return f"{value * 100:.1f}%"
