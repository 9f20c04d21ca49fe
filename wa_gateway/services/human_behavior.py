import asyncio
import random
from typing import Awaitable, Callable, Optional

from wa_gateway.logging_config import get_logger
from wa_gateway.schemas.message import MessageKey, RawMessage
from wa_gateway.services.timing import get_human_timings, read_delay
from wa_gateway.services.transport import Presence, SentMessage, Transport

logger = get_logger("human_behavior")

SleepFunc = Callable[[float], Awaitable[None]]


async def send_seen(transport: Transport, jid: str) -> None:
    try:
        await transport.read_messages([MessageKey(remote_jid=jid, id="dummy")])
        logger.debug(f"Sent seen indicator to {jid}")
    except Exception as e:
        logger.warning(f"Could not send seen indicator: {e}")


async def send_typing(
    transport: Transport,
    jid: str,
    duration_ms: int = 3000,
    *,
    sleep_func: SleepFunc = asyncio.sleep,
) -> None:
    try:
        await transport.send_presence_update(Presence.COMPOSING, jid)
        await sleep_func(duration_ms / 1000)
        await transport.send_presence_update(Presence.PAUSED, jid)
        logger.debug(f"Typing indicator for {jid} lasted {duration_ms}ms")
    except Exception as e:
        logger.warning(f"Could not send typing indicator: {e}")


async def send_online_presence(transport: Transport) -> None:
    try:
        await transport.send_presence_update(Presence.AVAILABLE)
    except Exception as e:
        logger.warning(f"Could not update online presence: {e}")


async def send_human_like_message(
    transport: Transport,
    jid: str,
    text: str,
    *,
    quoted: Optional[RawMessage] = None,
    sleep_func: SleepFunc = asyncio.sleep,
) -> SentMessage:
    """Online, seen, typing, then send. Only the send itself may raise."""
    kind = "reply" if quoted else "message"
    timings = get_human_timings(text)
    logger.info(
        f"Starting human-like {kind} sequence to {jid}",
        extra={
            "context": {
                "seen_ms": timings.seen_delay,
                "typing_ms": timings.typing_delay,
                "send_ms": timings.send_delay,
            }
        },
    )

    await send_online_presence(transport)

    await sleep_func(timings.seen_delay / 1000)
    await send_seen(transport, jid)

    await sleep_func(0.5 + random.random())
    await send_typing(transport, jid, timings.typing_delay, sleep_func=sleep_func)

    await sleep_func(timings.send_delay / 1000)
    sent = await transport.send_text(jid, text, quoted=quoted)

    await sleep_func(0.2)
    await send_online_presence(transport)

    logger.info(f"Human-like {kind} sent to {jid}")
    return sent


async def simulate_read_message(
    transport: Transport,
    key: MessageKey,
    *,
    sleep_func: SleepFunc = asyncio.sleep,
) -> bool:
    """Acknowledge ``key`` after a short pause. Failures are logged, never raised."""
    delay_ms = read_delay()
    try:
        await sleep_func(delay_ms / 1000)
        await transport.read_messages([key])
        logger.debug(f"Marked message {key.id} as read after {delay_ms}ms")
        return True
    except Exception as e:
        logger.warning(f"Could not mark message {key.id} as read: {e}")
        return False
