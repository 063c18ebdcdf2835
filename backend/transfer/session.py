"""
Transfer Session - one adapter, one worker thread, retry forever.

Each attempt:
    open adapter -> reset -> discover/connect -> stream commands -> teardown

Adapter callbacks (scan responses, connection status) arrive on the
transport's reader thread and only touch the link state machine, the
shared DeviceRegistry and the claimed/owned keys, all lock-guarded.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

from core.bgapi import BGLib, ConnectionStatus, ScanResponse
from core.device import (
    CONN_INTERVAL_MAX,
    CONN_INTERVAL_MIN,
    SLAVE_LATENCY,
    SUPERVISION_TIMEOUT,
    matches_signature,
)
from core.logger import log_radio, log_session, log_warn
from core.pacing import PacedWriter, PacingSettings
from core.registry import DeviceRegistry
from core.transport import Transport, TransportFault
from core.types import ConnectionState, EncodedCommand, device_key, format_address

from .events import SessionEvent
from .state_machine import (
    IllegalTransition,
    LinkStateMachine,
    SessionCancelled,
    StateContext,
    StateMachine,
    StateResult,
)
from .states import create_transfer_workflow


@dataclass
class SessionSettings:
    """Session timing (seconds) and connection parameters"""
    settle_delay: float = 0.5
    retry_delay: float = 0.5
    reset_delay: float = 0.01
    discovery_timeout: Optional[float] = None  # None: scan until cancelled
    disconnect_timeout: float = 2.0
    conn_interval_min: int = CONN_INTERVAL_MIN
    conn_interval_max: int = CONN_INTERVAL_MAX
    supervision_timeout: int = SUPERVISION_TIMEOUT
    latency: int = SLAVE_LATENCY
    pacing: PacingSettings = field(default_factory=PacingSettings)


class TransferSession:
    """
    Installs a list of encoded commands on every robot it can claim.

    Usage:
        session = TransferSession(transport, commands, registry, on_event=print)
        session.start()     # worker thread
        ...
        session.cancel()
        session.join()
    """

    def __init__(
        self,
        transport: Transport,
        commands: Sequence[EncodedCommand],
        registry: DeviceRegistry,
        settings: Optional[SessionSettings] = None,
        on_event: Optional[Callable[[SessionEvent], None]] = None,
    ):
        rejected = [c.name for c in commands if not c.is_converted]
        if rejected:
            raise ValueError(f"Commands not encoded: {rejected}")

        self._transport = transport
        self._commands: List[EncodedCommand] = list(commands)
        self._registry = registry
        self.settings = settings or SessionSettings()
        self._on_event = on_event

        self._radio = BGLib()
        self._radio.on_scan_response = self._on_scan_response
        self._radio.on_connection_status = self._on_connection_status
        self._link = LinkStateMachine()

        self._cancel = threading.Event()
        self._received = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self._keys_lock = threading.Lock()
        self._claimed_key: Optional[int] = None
        self._owned_key: Optional[int] = None
        self._completed_keys: Set[int] = set()

        self.sent_count = 0
        self.attempts = 0
        self.finished_count = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def port(self) -> str:
        return self._transport.port

    @property
    def commands(self) -> List[EncodedCommand]:
        return list(self._commands)

    @property
    def link_state(self) -> ConnectionState:
        return self._link.state

    @property
    def owned_key(self) -> Optional[int]:
        return self._owned_key

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    # =========================================================================
    # Thread control
    # =========================================================================

    def start(self) -> threading.Thread:
        """Run the session on its own worker thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError(f"Session on {self.port} already running")
        self._running = True
        self._thread = threading.Thread(target=self.run, daemon=True, name=f"transfer-{self.port}")
        self._thread.start()
        return self._thread

    def cancel(self) -> None:
        """Ask the session to stop; teardown still runs."""
        self._cancel.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker. Returns True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        """Retry loop (thread body). Returns only after cancel()."""
        self._running = True
        log_session("Session started", {"port": self.port, "commands": len(self._commands)})
        try:
            while not self._cancel.is_set():
                self._run_attempt()
                if self._cancel.wait(self.settings.retry_delay):
                    break
        finally:
            with self._keys_lock:
                completed, self._completed_keys = self._completed_keys, set()
            for key in completed:
                self._registry.release(key)
            self._running = False
            self._message("Session stopped")

    # =========================================================================
    # One attempt
    # =========================================================================

    def _run_attempt(self) -> None:
        self.attempts += 1
        context: Optional[StateContext] = None
        try:
            self._radio.reset()
            self._transport.open(self._on_data)
            self._message("Opened")

            writer = PacedWriter(self._radio, self._transport, self.settings.pacing, on_progress=self._message)
            context = StateContext(
                port=self.port,
                radio=self._radio,
                transport=self._transport,
                registry=self._registry,
                link=self._link,
                writer=writer,
                settings=self.settings,
                commands=self._commands,
                cancel=self._cancel,
                on_message=self._message,
                on_connected=self._handle_connected,
                on_command_sent=self._handle_command_sent,
                on_finished=self._handle_finished,
            )
            machine = StateMachine(context)
            machine.start(create_transfer_workflow())
            result = machine.run_to_completion()
            if result == StateResult.FAILURE and context.error is not None:
                self._report(context.error)
        except SessionCancelled:
            self._message("Cancelled")
        except Exception as e:
            self._report(e)
        finally:
            self._teardown(completed=context is not None and context.completed)

    def _teardown(self, completed: bool) -> None:
        """Disconnect, give back registry entries, close the adapter."""
        if self._transport.is_open:
            self._received.clear()
            try:
                self._radio.send_command(self._transport, self._radio.ble_cmd_connection_disconnect(0))
                self._wait_disconnect_answer()
            except TransportFault as e:
                log_warn(f"Disconnect not sent: {e}", {"port": self.port})
        # No adapter callbacks run after close, so nothing re-claims below
        self._transport.close()

        with self._keys_lock:
            claimed, owned = self._claimed_key, self._owned_key
            self._claimed_key = None
            self._owned_key = None
            if completed and owned is not None:
                # Keep SEND_COMPLETED so no session installs this robot again
                self._completed_keys.add(owned)
                owned = None
        for key in {claimed, owned} - {None}:
            self._registry.release(key)

        self._link.reset()

    def _wait_disconnect_answer(self) -> None:
        deadline = time.monotonic() + self.settings.disconnect_timeout
        while self._radio.is_busy():
            if time.monotonic() > deadline:
                log_warn("No answer to disconnect", {"port": self.port})
                return
            self._received.wait(self.settings.pacing.poll_interval)
            self._received.clear()

    # =========================================================================
    # Adapter callbacks (reader thread)
    # =========================================================================

    def _on_data(self, data: bytes) -> None:
        self._radio.parse(data)
        self._received.set()

    def _on_scan_response(self, event: ScanResponse) -> None:
        if self._link.state != ConnectionState.NOT_CONNECTED:
            return
        key = device_key(event.sender)
        # The robot's own advertisement and anonymous ones both go through
        # the registry; only the claim winner connects.
        if not self._registry.try_claim(key):
            return
        if not self._link.try_begin_connect():
            self._registry.release(key)
            return
        with self._keys_lock:
            self._claimed_key = key

        log_radio("Connecting", {
            "port": self.port,
            "address": format_address(key),
            "signature": matches_signature(event.data),
            "rssi": event.rssi,
        })
        packet = self._radio.ble_cmd_gap_connect_direct(
            event.sender, 0,
            self.settings.conn_interval_min,
            self.settings.conn_interval_max,
            self.settings.supervision_timeout,
            self.settings.latency,
        )
        try:
            self._radio.send_command(self._transport, packet)
        except TransportFault as e:
            log_warn(f"Connect not sent: {e}", {"port": self.port})
            self._abandon_claim()

    def _on_connection_status(self, event: ConnectionStatus) -> None:
        key = device_key(event.address)
        if event.connected:
            with self._keys_lock:
                claimed = self._claimed_key
            if key != claimed:
                # Only the address this session claimed may become its link
                log_warn("Connection status for an unclaimed address", {
                    "port": self.port,
                    "address": format_address(key),
                    "claimed": None if claimed is None else format_address(claimed),
                })
                return
            try:
                self._link.advance(ConnectionState.CONNECTED)
            except IllegalTransition as e:
                log_warn(f"Unexpected connection status: {e}", {"port": self.port, "address": format_address(key)})
                return
            self._registry.set_state(key, ConnectionState.CONNECTED)
            with self._keys_lock:
                self._owned_key = key
                self._claimed_key = None
            self._message("Connected")
            return

        if self._link.state != ConnectionState.CONNECTING:
            return
        # Connect attempt failed: give the address back and scan again
        self._abandon_claim()
        try:
            self._radio.send_command(self._transport, self._radio.ble_cmd_gap_discover(1))
        except TransportFault as e:
            log_warn(f"Discover not sent: {e}", {"port": self.port})

    def _abandon_claim(self) -> None:
        with self._keys_lock:
            claimed, self._claimed_key = self._claimed_key, None
        if claimed is not None:
            self._registry.release(claimed)
        self._link.reset()

    # =========================================================================
    # Notifications
    # =========================================================================

    def _handle_connected(self) -> None:
        self._emit(SessionEvent.device_connected(self.port, self._owned_key))

    def _handle_command_sent(self, count: int) -> None:
        self.sent_count = count
        self._emit(SessionEvent.command_sent(self.port, count))

    def _handle_finished(self) -> None:
        self.finished_count += 1
        self._emit(SessionEvent.finished(self.port, self._commands))
        if self._owned_key is not None:
            self._registry.set_state(self._owned_key, ConnectionState.SEND_COMPLETED)

    def _report(self, error: Exception) -> None:
        self._message(f"{type(error).__name__}: {error}")

    def _message(self, text: str) -> None:
        log_session(text, {"port": self.port})
        self._emit(SessionEvent.message(self.port, text))

    def _emit(self, event: SessionEvent) -> None:
        if self._on_event:
            self._on_event(event)
