"""Scan session status."""

from __future__ import annotations

from enum import Enum


class ScanStatus(Enum):
    """Lifecycle of a scan session.

    ``IDLE -> SCANNING -> {COMPLETE | EMPTY | CANCELLED}``; any state goes
    back to ``SCANNING`` when a new scan starts.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    EMPTY = "empty"

