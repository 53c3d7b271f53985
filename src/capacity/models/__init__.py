"""Capacity data models."""

from capacity.models.scan_result import ChildEntry, ScanResult, SkipCounts, VolumeUsage
from capacity.models.status import ScanStatus

__all__ = [
    "ChildEntry",
    "ScanResult",
    "ScanStatus",
    "SkipCounts",
    "VolumeUsage",
]
