"""Orchestrator: owns the gateway context, routes bus events, exposes the outward API."""

import asyncio
import importlib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from wa_gateway.config import Settings
from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.api import ConnectionStatus
from wa_gateway.schemas.connection import ConnectionPhase
from wa_gateway.schemas.group import GroupSummary
from wa_gateway.schemas.message import (
    CanonicalMessage,
    ContentType,
    DeliveryRecord,
    MessageKey,
    MessageStats,
    to_group_jid,
    to_user_jid,
)
from wa_gateway.schemas.trigger import TriggerConfig
from wa_gateway.services.ai_service import AIService
from wa_gateway.services.connection_supervisor import CallLater, ConnectionSupervisor
from wa_gateway.services.event_bus import EventBus
from wa_gateway.services.events import (
    CallEvent,
    ConnectionStatusChanged,
    ConnectionUpdate,
    CredentialsUpdate,
    GatewayEvent,
    IqError,
    MessagesUpsert,
    ReceiptUpdate,
    ReconnectRequested,
    SessionResetRequested,
    StreamError,
)
from wa_gateway.services.human_behavior import send_human_like_message
from wa_gateway.services.ingest_service import IngestPipeline, MessageBuffer
from wa_gateway.services.llm import OpenRouterProvider
from wa_gateway.services.session_store import SessionStore, SessionStoreError
from wa_gateway.services.transport import Transport, TransportFactory
from wa_gateway.services.trigger_engine import TriggerEngine
from wa_gateway.services.trigger_handlers import HandlerServices
from wa_gateway.services.trigger_table import TriggerTable
from wa_gateway.services.upload_service import UploadService
from wa_gateway.services.webhook_service import WebhookDispatcher

logger = get_logger("gateway_service")

RESET_REASON_CORRUPT_SESSION = "corrupt_session"
RESET_REASON_MANUAL = "manual"


class GatewayValidationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotConnectedError(Exception):
    def __init__(self, message: str = "WhatsApp is not connected", has_pending_pairing: bool = False):
        self.message = message
        self.has_pending_pairing = has_pending_pairing
        super().__init__(message)


@dataclass
class GatewayContext:
    """Process-wide state of the single session, passed to each component."""

    settings: Settings
    session_store: SessionStore
    trigger_table: TriggerTable
    buffer: MessageBuffer
    supervisor: ConnectionSupervisor
    pipeline: IngestPipeline
    initialized: bool = False


def default_handler_services(
    settings: Settings, sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> HandlerServices:
    return HandlerServices(
        settings=settings,
        webhook=WebhookDispatcher(settings, sleep_func=sleep_func),
        uploader=UploadService(settings),
        ai=AIService(OpenRouterProvider(settings)),
    )


class Gateway:
    def __init__(
        self,
        settings: Settings,
        factory: Optional[TransportFactory] = None,
        *,
        session_store: Optional[SessionStore] = None,
        trigger_table: Optional[TriggerTable] = None,
        handler_services: Optional[HandlerServices] = None,
        clock: Callable[[], float] = time.time,
        sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep,
        call_later: Optional[CallLater] = None,
    ):
        self.factory = factory
        self.sleep_func = sleep_func
        self.bus = EventBus(self.dispatch)

        table = trigger_table or TriggerTable.from_yaml(settings.triggers_path)
        services = handler_services or default_handler_services(settings, sleep_func)
        buffer = MessageBuffer(settings.message_buffer_size)
        engine = TriggerEngine(table, services, sleep_func=sleep_func)
        self.context = GatewayContext(
            settings=settings,
            session_store=session_store or SessionStore(settings.session_path),
            trigger_table=table,
            buffer=buffer,
            supervisor=ConnectionSupervisor(factory, self.bus.publish, call_later=call_later),
            pipeline=IngestPipeline(settings, buffer, engine, clock=clock, sleep_func=sleep_func),
        )

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self.context.supervisor

    # Lifecycle

    async def initialize(self) -> None:
        if self.context.initialized:
            logger.warning("Gateway is already initialized")
            return

        logger.info("Starting gateway")
        self.bus.start()
        await self.connect()
        self.context.initialized = True
        logger.info("Gateway initialized")

    async def connect(self) -> None:
        """Load auth material and open a socket; failures are retried after a fixed delay."""
        if self.factory is None:
            logger.warning("No transport factory configured, not connecting")
            return

        logger.info("Initializing connection")
        try:
            auth_material = self.context.session_store.load()
        except SessionStoreError as e:
            logger.error(f"Session store unreadable: {e.message}")
            self.bus.publish(SessionResetRequested(reason=RESET_REASON_CORRUPT_SESSION))
            return

        await self._close_transport()
        try:
            await self.supervisor.open(auth_material)
        except Exception as e:
            delay = self.context.settings.connect_retry_delay
            logger.error(f"Error connecting, retrying in {delay:.0f}s: {e}")
            self.supervisor.schedule(delay, ReconnectRequested(source="connect_failed"))
            return
        logger.info("Connection process started")

    async def handle_session_reset(self, reason: str) -> None:
        logger.warning(f"Handling session reset ({reason})")
        settings = self.context.settings
        await self._close_transport()
        self.supervisor.reset_state()
        try:
            self.context.session_store.reset()
            delay = settings.session_reset_reconnect_delay
        except Exception as e:
            logger.error(f"Error handling session reset: {e}")
            delay = settings.connect_retry_delay
        self.supervisor.schedule(delay, ReconnectRequested(source="session_reset"))

    async def restart(self) -> dict:
        logger.info("Restarting gateway")
        self.context.initialized = False
        await self._close_transport()
        self.supervisor.reset_state()
        await self.initialize()
        logger.info("Gateway restarted")
        return {"success": True, "message": "Service restarted successfully"}

    async def shutdown(self) -> None:
        logger.info("Shutting down gateway")
        await self._close_transport()
        self.supervisor.reset_state()
        await self.bus.stop()
        self.context.initialized = False

    async def _close_transport(self) -> None:
        transport = self.supervisor.detach_transport()
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            logger.warning(f"Error closing transport: {e}")

    # Event routing

    async def dispatch(self, event: GatewayEvent) -> None:
        if isinstance(event, ConnectionUpdate):
            self.supervisor.on_transport_event(event)
            if event.phase == ConnectionPhase.OPEN and event.is_new_login:
                logger.info("New login completed")
        elif isinstance(event, MessagesUpsert):
            transport = self.supervisor.transport
            if transport is None:
                logger.warning(f"Dropping {len(event.messages)} message(s): no transport")
                return
            await self.context.pipeline.handle_batch(event, transport)
        elif isinstance(event, CredentialsUpdate):
            self.context.session_store.persist(event.delta)
        elif isinstance(event, ReconnectRequested):
            logger.info(f"Reconnect requested ({event.source})")
            await self.connect()
        elif isinstance(event, SessionResetRequested):
            await self.handle_session_reset(event.reason)
        elif isinstance(event, ConnectionStatusChanged):
            logger.debug(
                f"Connection status: {event.phase.value}",
                extra={"context": {"attempts": event.reconnect_attempts}},
            )
        elif isinstance(event, ReceiptUpdate):
            logger.debug(f"Message receipt update: {len(event.receipts)} receipts")
        elif isinstance(event, CallEvent):
            logger.debug("Call event received")
        elif isinstance(event, IqError):
            logger.debug("IQ error handled silently")
        elif isinstance(event, StreamError):
            logger.warning(f"Stream error: {event.error}")
        else:
            logger.warning(f"Unhandled event type {type(event).__name__}")

    # Outward API

    def _require_transport(self) -> Transport:
        transport = self.supervisor.transport
        if transport is None or not self.supervisor.state.is_connected:
            raise NotConnectedError(has_pending_pairing=self.supervisor.state.pending_pairing_code is not None)
        return transport

    async def send_message(self, to: Optional[str], text: Optional[str]) -> DeliveryRecord:
        if not to or not text:
            raise GatewayValidationError("Missing required fields: to, message")
        transport = self._require_transport()

        jid = to_user_jid(to.strip())
        logger.info(f"Sending message to {jid}")
        sent = await send_human_like_message(transport, jid, text, sleep_func=self.sleep_func)
        return DeliveryRecord(
            success=True,
            message_id=sent.key.id,
            to=jid,
            message=text,
            timestamp=datetime.now(timezone.utc),
        )

    async def send_reaction(self, message_key: Optional[MessageKey], emoji: Optional[str]) -> DeliveryRecord:
        if message_key is None or not emoji:
            raise GatewayValidationError("Missing required fields: messageKey, emoji")
        transport = self._require_transport()

        logger.info(f"Sending reaction {emoji} to message {message_key.id}")
        sent = await transport.send_reaction(message_key, emoji)
        return DeliveryRecord(
            success=True,
            message_id=sent.key.id,
            to=message_key.remote_jid,
            reaction=emoji,
            target_message=message_key.id,
            timestamp=datetime.now(timezone.utc),
        )

    async def get_groups(self) -> list[GroupSummary]:
        transport = self._require_transport()

        logger.info("Fetching group list")
        groups = [GroupSummary.from_metadata(meta, transport.user_jid) for meta in await transport.fetch_groups()]
        logger.info(f"Retrieved {len(groups)} groups")
        return groups

    async def send_group_message(self, group_id: Optional[str], text: Optional[str]) -> DeliveryRecord:
        if not group_id or not text:
            raise GatewayValidationError("Missing required fields: group_id, message")
        transport = self._require_transport()

        jid = to_group_jid(group_id.strip())
        logger.info(f"Sending message to group {jid}")
        sent = await transport.send_text(jid, text)
        return DeliveryRecord(
            success=True,
            message_id=sent.key.id,
            to=jid,
            message=text,
            timestamp=datetime.now(timezone.utc),
        )

    def get_received_messages(self, limit: Optional[int] = None) -> list[CanonicalMessage]:
        if limit is not None and limit < 1:
            raise GatewayValidationError("limit must be a positive integer")
        return self.context.buffer.recent(limit)

    def clear_received_messages(self) -> int:
        cleared = self.context.buffer.clear()
        logger.info(f"Cleared {cleared} received messages")
        return cleared

    def search_messages(
        self,
        query: Optional[str] = None,
        *,
        limit: int = 50,
        message_type: Optional[ContentType] = None,
        is_group: Optional[bool] = None,
        from_sender: Optional[str] = None,
        date_from: Optional[int] = None,
        date_to: Optional[int] = None,
    ) -> list[CanonicalMessage]:
        if limit < 1:
            raise GatewayValidationError("limit must be a positive integer")
        if date_from is not None and date_to is not None and date_from > date_to:
            raise GatewayValidationError("date_from must not be after date_to")
        return self.context.buffer.search(
            query,
            limit=limit,
            message_type=message_type,
            is_group=is_group,
            from_sender=from_sender,
            date_from=date_from,
            date_to=date_to,
        )

    def get_message_stats(self) -> MessageStats:
        return self.context.buffer.stats()

    def get_connection_status(self) -> ConnectionStatus:
        return self.supervisor.get_status()

    async def reset_session(self) -> dict:
        await self.handle_session_reset(RESET_REASON_MANUAL)
        return {"success": True, "message": "Session reset successfully, reconnecting"}

    def is_triggers_enabled(self) -> bool:
        return self.context.trigger_table.is_enabled()

    def set_triggers_enabled(self, enabled: Any) -> dict:
        if not isinstance(enabled, bool):
            raise GatewayValidationError("enabled must be a boolean value")
        return self.context.trigger_table.set_enabled(enabled)

    def get_triggers(self) -> TriggerConfig:
        return self.context.trigger_table.snapshot()

    def get_service_status(self) -> dict:
        return {
            "initialized": self.context.initialized,
            "connection": self.get_connection_status().model_dump(),
            "session": self.context.session_store.info(),
            "messages": self.get_message_stats().model_dump(),
            "triggers_enabled": self.is_triggers_enabled(),
            "services": {
                "connection": "active",
                "session": "active",
                "message": "active",
                "trigger": "active" if self.is_triggers_enabled() else "disabled",
            },
        }


def load_transport_factory(path: Optional[str]) -> Optional[TransportFactory]:
    """Resolve ``module:attribute``; a class is instantiated without arguments."""
    if not path:
        return None
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"TRANSPORT_FACTORY must look like 'module:attribute', got {path!r}")
    target = getattr(importlib.import_module(module_name), attr)
    factory = target() if isinstance(target, type) else target
    if not isinstance(factory, TransportFactory):
        raise TypeError(f"{path} is not a TransportFactory")
    return factory


def build_gateway(settings: Settings) -> Gateway:
    return Gateway(settings, load_transport_factory(settings.transport_factory))
