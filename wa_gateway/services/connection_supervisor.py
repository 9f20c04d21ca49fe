"""Connection lifecycle: Idle -> Connecting -> Open / Closed, with reconnect backoff.

The supervisor never reconnects by itself. It publishes ``ReconnectRequested``
from a single-slot timer, or ``SessionResetRequested`` when the session must be
rebuilt, and the event bus performs the work.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional

from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.api import ConnectionStatus
from wa_gateway.schemas.connection import ConnectionPhase, DisconnectReason
from wa_gateway.services.events import (
    ConnectionStatusChanged,
    ConnectionUpdate,
    ReconnectRequested,
    SessionResetRequested,
)
from wa_gateway.services.transport import Publish, Transport, TransportFactory

logger = get_logger("connection_supervisor")

CallLater = Callable[[float, Callable[[], None]], Any]

RESET_REASON_MAX_ATTEMPTS = "max_reconnect_attempts"


class ReconnectPolicy:
    MAX_ATTEMPTS = 6
    BASE_DELAY_MS = 3000
    ATTEMPT_INCREMENT_MS = 2000
    MAX_DELAY_MS = 20000


def compute_reconnect_delay(attempts: int) -> int:
    """Milliseconds to wait before reconnect attempt ``attempts``."""
    delay = ReconnectPolicy.BASE_DELAY_MS + attempts * ReconnectPolicy.ATTEMPT_INCREMENT_MS
    return min(delay, ReconnectPolicy.MAX_DELAY_MS)


@dataclass
class ConnectionState:
    phase: ConnectionPhase = ConnectionPhase.IDLE
    is_connected: bool = False
    pending_pairing_code: Optional[str] = None
    reconnect_attempts: int = 0
    reconnect_timer: Any = None
    last_disconnect: Optional[DisconnectReason] = None


class ConnectionSupervisor:
    def __init__(self, factory: TransportFactory, publish: Publish, *, call_later: Optional[CallLater] = None):
        self.factory = factory
        self.publish = publish
        self._call_later = call_later
        self.state = ConnectionState()
        self._transport: Optional[Transport] = None

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    async def open(self, auth_material: dict) -> Transport:
        """Create the socket. Construction errors propagate to the caller."""
        self._set_phase(ConnectionPhase.CONNECTING)
        try:
            transport = await self.factory.connect(auth_material, self.publish)
        except Exception:
            self._set_phase(ConnectionPhase.CLOSED)
            raise
        self._transport = transport
        return transport

    def detach_transport(self) -> Optional[Transport]:
        """Forget the current socket and hand it back for closing."""
        transport, self._transport = self._transport, None
        return transport

    def on_transport_event(self, event: ConnectionUpdate) -> None:
        if event.qr:
            logger.info("Pairing code received, waiting for scan")
            self.state.pending_pairing_code = event.qr

        if event.phase == ConnectionPhase.CONNECTING:
            logger.info("Connecting to chat service")
            self._set_phase(ConnectionPhase.CONNECTING)
        elif event.phase == ConnectionPhase.OPEN:
            self._on_open()
        elif event.phase == ConnectionPhase.CLOSED:
            self._on_close(event.reason or DisconnectReason.UNKNOWN)

    def get_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            is_connected=self.state.is_connected,
            has_pending_pairing=self.state.pending_pairing_code is not None,
            pairing_payload=self.state.pending_pairing_code,
        )

    def reset_state(self) -> None:
        self._cancel_timer()
        self.state.is_connected = False
        self.state.pending_pairing_code = None
        self.state.reconnect_attempts = 0
        self._transport = None

    def _on_open(self) -> None:
        self._cancel_timer()
        self.state.reconnect_attempts = 0
        self.state.is_connected = True
        self.state.pending_pairing_code = None
        self.state.last_disconnect = None
        logger.info("Connected, ready to send and receive messages")
        self._set_phase(ConnectionPhase.OPEN)

    def _on_close(self, reason: DisconnectReason) -> None:
        self._cancel_timer()
        self.state.is_connected = False
        self.state.last_disconnect = reason
        logger.warning(
            f"Connection closed: {reason.label}",
            extra={
                "context": {
                    "reason": reason.value,
                    "attempt": self.state.reconnect_attempts + 1,
                    "max_attempts": ReconnectPolicy.MAX_ATTEMPTS,
                }
            },
        )

        if reason == DisconnectReason.LOGGED_OUT:
            logger.error("Logged out, not reconnecting")
            self.state.reconnect_attempts = 0
            self._set_phase(ConnectionPhase.CLOSED)
            return

        self.state.reconnect_attempts += 1
        if reason.requires_session_reset:
            logger.warning(f"Session issue detected ({reason.label}), resetting session")
            self.state.reconnect_attempts = 0
            self._set_phase(ConnectionPhase.CLOSED)
            self.publish(SessionResetRequested(reason=reason.value))
            return

        if self.state.reconnect_attempts >= ReconnectPolicy.MAX_ATTEMPTS:
            logger.error(f"Max reconnection attempts ({ReconnectPolicy.MAX_ATTEMPTS}) reached, resetting session")
            self.state.reconnect_attempts = 0
            self._set_phase(ConnectionPhase.CLOSED)
            self.publish(SessionResetRequested(reason=RESET_REASON_MAX_ATTEMPTS))
            return

        delay_ms = compute_reconnect_delay(self.state.reconnect_attempts)
        logger.info(
            f"Reconnecting in {delay_ms / 1000:.0f}s "
            f"(attempt {self.state.reconnect_attempts}/{ReconnectPolicy.MAX_ATTEMPTS})"
        )
        self._set_phase(ConnectionPhase.CLOSED)
        self.schedule(delay_ms / 1000, ReconnectRequested(source="backoff"))

    def schedule(self, delay: float, event: Any) -> None:
        """Publish ``event`` after ``delay`` seconds, replacing any pending timer."""
        self._cancel_timer()
        call_later = self._call_later or asyncio.get_running_loop().call_later
        self.state.reconnect_timer = call_later(delay, lambda: self._fire(event))

    def _fire(self, event: Any) -> None:
        self.state.reconnect_timer = None
        self.publish(event)

    def _cancel_timer(self) -> None:
        if self.state.reconnect_timer is not None:
            self.state.reconnect_timer.cancel()
            self.state.reconnect_timer = None

    def _set_phase(self, phase: ConnectionPhase) -> None:
        previous = self.state.phase
        self.state.phase = phase
        if previous != phase:
            logger.debug(f"Connection phase {previous.value} -> {phase.value}")
        self.publish(
            ConnectionStatusChanged(
                phase=phase,
                reason=self.state.last_disconnect,
                reconnect_attempts=self.state.reconnect_attempts,
            )
        )
