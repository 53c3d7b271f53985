"""D-Bus service exposing a scan session to a desktop front end.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "(ss)" are D-Bus protocol types, not Python syntax.
"""

from __future__ import annotations

import asyncio
import json
import logging

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType, DBusError, ErrorType

from capacity.core.scanner import UsageScanner
from capacity.core.session import ScanSession
from capacity.settings import Settings

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.capacity"
_OBJECT_PATH = "/io/github/capacity"
_INTERFACE = "io.github.capacity.Session"

SCAN_MODES = ("new", "open", "refresh")


# noinspection PyPep8Naming
class CapacityDBusService(ServiceInterface):
    """D-Bus service interface wrapping one :class:`ScanSession`.

    Session results must be applied on the thread running the asyncio loop,
    so the session created here dispatches through ``call_soon_threadsafe``.
    """

    def __init__(self, session: ScanSession | None = None) -> None:
        super().__init__(_INTERFACE)
        if session is None:
            loop = asyncio.get_running_loop()
            scanner = UsageScanner(one_filesystem=bool(Settings.instance().get("scan.one_filesystem")))
            session = ScanSession(scanner, dispatch=loop.call_soon_threadsafe)
        self._session = session
        self._session.add_listener(self._on_session_changed)

    @property
    def session(self) -> ScanSession:
        return self._session

    @method()
    def Scan(self, root: "s", mode: "s") -> "t":  # type: ignore[override]
        """Scan a root. ``mode`` is 'new', 'open' (push history) or 'refresh'."""
        try:
            return start_scan(self._session, root, mode)
        except ValueError as e:
            raise DBusError(ErrorType.INVALID_ARGS, str(e)) from e

    @method()
    def Cancel(self):  # type: ignore[override]
        """Cancel the scan in flight."""
        self._session.cancel()

    @method()
    def GoBack(self) -> "b":  # type: ignore[override]
        """Rescan the previous root. Returns False when history is empty."""
        return self._session.go_back() is not None

    @method()
    def Refresh(self) -> "b":  # type: ignore[override]
        """Rescan the current root."""
        return self._session.refresh() is not None

    @method()
    def GetState(self) -> "s":  # type: ignore[override]
        """Get the session state as JSON."""
        return json.dumps(self._session.snapshot())

    @signal()
    def StateChanged(self, status: str, root: str) -> "(ss)":  # type: ignore[override]
        return [status, root]

    def close(self) -> None:
        """Stop emitting signals, then shut the session down."""
        self._session.remove_listener(self._on_session_changed)
        self._session.close()

    def _on_session_changed(self, session: ScanSession) -> None:
        root = str(session.current_root) if session.current_root else ""
        self.StateChanged(session.status.value, root)


def start_scan(session: ScanSession, root: str, mode: str) -> int:
    """Map a D-Bus scan mode onto the session's history policy."""
    if mode not in SCAN_MODES:
        raise ValueError(f"Unknown scan mode '{mode}', expected one of {', '.join(SCAN_MODES)}")
    return session.scan(
        root,
        append_to_history=mode == "open",
        preserve_history=mode == "refresh",
    )


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = CapacityDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    try:
        await bus.wait_for_disconnect()
    finally:
        service.close()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
