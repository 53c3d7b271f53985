"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ChildEntry:
    """Immediate child of a scanned root.

    ``size_bytes`` is the allocated size of a file, or the recursive sum of
    allocated sizes for a directory. Only directories are navigable.
    """

    path: Path
    size_bytes: int
    is_directory: bool = False

    @property
    def name(self) -> str:
        return self.path.name or str(self.path)


@dataclass(frozen=True, slots=True)
class VolumeUsage:
    """Capacity snapshot of the volume holding a scanned root."""

    used_bytes: int
    total_bytes: int

    @classmethod
    def from_free(cls, total_bytes: int, free_bytes: int) -> VolumeUsage:
        """Build from total/free figures, clamping used space to ``[0, total]``."""
        total = max(total_bytes, 0)
        used = min(max(total - free_bytes, 0), total)
        return cls(used_bytes=used, total_bytes=total)

    @property
    def fraction_used(self) -> float:
        return self.used_bytes / max(self.total_bytes, 1)


@dataclass(slots=True)
class SkipCounts:
    """Entries left out of a scan, for diagnostics only."""

    symlinks: int = 0
    unreadable: int = 0
    empty: int = 0

    @property
    def total(self) -> int:
        return self.symlinks + self.unreadable + self.empty


@dataclass(slots=True)
class ScanResult:
    """Outcome of one background scan, posted back to the session owner."""

    root: Path
    generation: int
    entries: list[ChildEntry] = field(default_factory=list)
    volume_usage: VolumeUsage | None = None
    skipped: SkipCounts = field(default_factory=SkipCounts)
    cancelled: bool = False
    elapsed: float = 0.0
