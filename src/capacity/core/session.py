"""Scan session controller: lifecycle, cancellation and navigation history."""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any, Callable

from capacity.core.scanner import UsageScanner
from capacity.models.scan_result import ChildEntry, ScanResult, SkipCounts, VolumeUsage
from capacity.models.status import ScanStatus

log = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], Any]
Listener = Callable[["ScanSession"], None]


class ScanSession:
    """Drives the scanner for one front end and holds what it displays.

    All state lives on a single owner thread: the one that calls
    :meth:`scan`, :meth:`cancel`, :meth:`go_back` and applies results.
    Worker threads never touch the session; each one posts a single
    :class:`ScanResult` through ``dispatch`` when it finishes.

    Pass ``dispatch`` to deliver results through an existing event loop
    (``loop.call_soon_threadsafe``, ``GLib.idle_add``). Without it results are
    queued internally and applied by :meth:`process_events` or :meth:`wait`.
    """

    def __init__(
        self,
        scanner: UsageScanner | None = None,
        dispatch: Dispatcher | None = None,
        max_workers: int = 4,
    ) -> None:
        self.scanner = scanner or UsageScanner()
        self._inbox: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()
        self._external_dispatch = dispatch is not None
        self._dispatch: Dispatcher = dispatch or self._inbox.put
        # Superseded scans keep a worker until they notice their cancel event.
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="capacity-scan")
        self._listeners: list[Listener] = []
        self._generation = 0
        self._cancel: threading.Event | None = None
        self._history: list[Path] = []

        self.current_root: Path | None = None
        self.entries: list[ChildEntry] = []
        self.status = ScanStatus.IDLE
        self.volume_usage: VolumeUsage | None = None
        self.skipped = SkipCounts()
        self.elapsed = 0.0

    # ── Derived values ────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def history(self) -> tuple[Path, ...]:
        """Previously visited roots, oldest first."""
        return tuple(self._history)

    @property
    def can_go_back(self) -> bool:
        return bool(self._history)

    @property
    def is_scanning(self) -> bool:
        return self.status is ScanStatus.SCANNING

    @property
    def selection_total(self) -> int:
        """Sum of the listed entries."""
        return sum(e.size_bytes for e in self.entries)

    @property
    def unaccounted(self) -> int | None:
        """Used volume space not attributed to any listed entry.

        ``None`` when volume usage could not be read.
        """
        if self.volume_usage is None:
            return None
        return max(self.volume_usage.used_bytes - self.selection_total, 0)

    # ── Commands ──────────────────────────────────────────────

    def scan(
        self,
        root: Path | str,
        append_to_history: bool = False,
        preserve_history: bool = False,
    ) -> int:
        """Start scanning ``root``, superseding any scan in flight.

        Args:
            root: Directory to scan.
            append_to_history: Push the root being left onto the history
                (drilling into a subdirectory).
            preserve_history: Leave the history untouched (refresh, back).
                When neither flag is set the history is cleared.

        Returns:
            The generation assigned to this scan.
        """
        root = Path(root).absolute()
        previous = self.current_root

        if self._cancel is not None:
            self._cancel.set()
        self._generation += 1
        generation = self._generation
        cancel = threading.Event()
        self._cancel = cancel

        self.entries = []
        self.status = ScanStatus.SCANNING
        self.current_root = root
        self.volume_usage = None
        self.skipped = SkipCounts()
        self.elapsed = 0.0

        if append_to_history:
            if previous is not None:
                self._history.append(previous)
        elif not preserve_history:
            self._history.clear()

        log.info("Scanning %s (generation %d)", root, generation)
        self._executor.submit(self._run, root, generation, cancel)
        self._notify()
        return generation

    def cancel(self) -> None:
        """Stop the scan in flight. Does nothing if no scan is active."""
        if self.status is not ScanStatus.SCANNING:
            return
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
        self.entries = []
        self.status = ScanStatus.CANCELLED
        log.info("Scan of %s cancelled", self.current_root)
        self._notify()

    def go_back(self) -> int | None:
        """Rescan the most recently left root, if any."""
        if not self._history:
            return None
        previous = self._history.pop()
        return self.scan(previous, preserve_history=True)

    def refresh(self) -> int | None:
        """Rescan the current root, keeping the history."""
        if self.current_root is None:
            return None
        return self.scan(self.current_root, preserve_history=True)

    def add_listener(self, callback: Listener) -> None:
        """Register a callback run on the owner thread after each state change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        """Unregister a callback added with :meth:`add_listener`."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ── Owner-side event handling ─────────────────────────────

    def process_events(self) -> int:
        """Apply queued scan results without blocking. Returns how many ran."""
        handled = 0
        while True:
            try:
                callback = self._inbox.get_nowait()
            except queue.Empty:
                return handled
            callback()
            handled += 1

    def wait(self, timeout: float | None = None) -> ScanStatus:
        """Block until the current scan reaches a terminal status.

        Returns the status, which is still ``SCANNING`` if ``timeout``
        expired first.
        """
        if self._external_dispatch:
            raise RuntimeError("wait() is only available when results are queued internally")
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.status is ScanStatus.SCANNING:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            try:
                callback = self._inbox.get(timeout=remaining)
            except queue.Empty:
                break
            callback()
        return self.status

    def snapshot(self) -> dict[str, Any]:
        """Return the session state as JSON-serializable data."""
        usage = self.volume_usage
        return {
            "status": self.status.value,
            "root": str(self.current_root) if self.current_root else None,
            "generation": self.generation,
            "history": [str(p) for p in self._history],
            "entries": [
                {"path": str(e.path), "size_bytes": e.size_bytes, "is_directory": e.is_directory}
                for e in self.entries
            ],
            "selection_total": self.selection_total,
            "volume_usage": (
                {"used_bytes": usage.used_bytes, "total_bytes": usage.total_bytes} if usage else None
            ),
            "unaccounted": self.unaccounted,
            "skipped": {
                "symlinks": self.skipped.symlinks,
                "unreadable": self.skipped.unreadable,
                "empty": self.skipped.empty,
            },
            "elapsed": self.elapsed,
        }

    def close(self) -> None:
        """Cancel any scan and release the worker pool."""
        self.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> ScanSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Internals ─────────────────────────────────────────────

    def _run(self, root: Path, generation: int, cancel: threading.Event) -> None:
        """Worker body. Runs off the owner thread and only posts a result."""
        started = time.monotonic()
        skipped = SkipCounts()
        try:
            entries = self.scanner.list_children(root, cancel=cancel, skipped=skipped)
            volume = None if cancel.is_set() else self.scanner.volume_usage(root)
        except Exception:
            log.exception("Scan of %s failed", root)
            entries, volume = [], None

        result = ScanResult(
            root=root,
            generation=generation,
            entries=entries,
            volume_usage=volume,
            skipped=skipped,
            cancelled=cancel.is_set(),
            elapsed=time.monotonic() - started,
        )
        try:
            self._dispatch(partial(self._apply, result))
        except Exception:
            log.exception("Could not deliver scan result for %s (generation %d)", root, generation)

    def _apply(self, result: ScanResult) -> None:
        """Store a finished scan if it is still the one being waited for."""
        if result.generation != self._generation or self.status is not ScanStatus.SCANNING:
            log.debug("Discarding stale result for %s (generation %d)", result.root, result.generation)
            return
        if result.cancelled:
            return

        self.entries = sorted(
            (e for e in result.entries if e.size_bytes > 0),
            key=lambda e: e.size_bytes,
            reverse=True,
        )
        self.volume_usage = result.volume_usage
        self.skipped = result.skipped
        self.elapsed = result.elapsed
        self.status = ScanStatus.COMPLETE if self.entries else ScanStatus.EMPTY
        self._cancel = None

        log.info(
            "Scanned %s: %d entries in %.2fs (%d skipped: %d symlinks, %d unreadable, %d empty)",
            result.root,
            len(self.entries),
            result.elapsed,
            result.skipped.total,
            result.skipped.symlinks,
            result.skipped.unreadable,
            result.skipped.empty,
        )
        self._notify()

    def _notify(self) -> None:
        for callback in self._listeners:
            try:
                callback(self)
            except Exception:
                log.exception("Session listener %r failed", callback)
