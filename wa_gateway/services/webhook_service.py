"""Outbound report webhook with bounded exponential-backoff retry."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from wa_gateway.config import Settings
from wa_gateway.logging_config import get_logger

logger = get_logger("webhook_service")

USER_AGENT = "WhatsApp-API-Webhook/1.0"
REASON_DISABLED = "disabled"
REASON_NO_ENDPOINT = "no_endpoint"


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"


@dataclass
class DeliveryAttempt:
    attempt_number: int
    outcome: DeliveryStatus
    http_status: Optional[int] = None


@dataclass
class DeliveryOutcome:
    status: DeliveryStatus
    http_status: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    data: Any = None
    attempts: list[DeliveryAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS

    @property
    def retryable(self) -> bool:
        return self.status == DeliveryStatus.RETRYABLE_FAILURE

    @staticmethod
    def delivered(http_status: int, data: Any = None) -> "DeliveryOutcome":
        return DeliveryOutcome(status=DeliveryStatus.SUCCESS, http_status=http_status, data=data)

    @staticmethod
    def failed(error: str, http_status: Optional[int] = None) -> "DeliveryOutcome":
        return DeliveryOutcome(status=DeliveryStatus.RETRYABLE_FAILURE, http_status=http_status, error=error)

    @staticmethod
    def skipped(reason: str) -> "DeliveryOutcome":
        return DeliveryOutcome(status=DeliveryStatus.TERMINAL_FAILURE, reason=reason)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt ``attempt`` (1-based): 1, 2, 4, ..."""
    return float(2 ** (attempt - 1))


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class WebhookDispatcher:
    def __init__(self, settings: Settings, *, sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.settings = settings
        self.sleep_func = sleep_func

    async def deliver(self, payload: dict) -> DeliveryOutcome:
        """Single POST attempt. Never raises."""
        if not self.settings.webhook_enabled:
            logger.debug("Webhook disabled, skipping webhook call")
            return DeliveryOutcome.skipped(REASON_DISABLED)

        endpoint = self.settings.webhook_endpoint
        if not endpoint:
            logger.warning("Webhook endpoint not configured")
            return DeliveryOutcome.skipped(REASON_NO_ENDPOINT)

        logger.info(f"Sending webhook to {endpoint}")
        logger.debug("Webhook payload", extra={"context": {"payload": payload}})
        try:
            async with httpx.AsyncClient(timeout=self.settings.webhook_timeout) as client:
                response = await client.post(
                    endpoint,
                    json=payload,
                    headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                )
        except Exception as e:
            logger.error(f"Error sending webhook: {e}")
            return DeliveryOutcome.failed(str(e))

        if 200 <= response.status_code < 300:
            logger.info("Webhook sent successfully", extra={"context": {"status": response.status_code}})
            return DeliveryOutcome.delivered(response.status_code, _response_body(response))

        logger.error(
            "Webhook rejected",
            extra={"context": {"status": response.status_code, "body": response.text[:200]}},
        )
        return DeliveryOutcome.failed(f"HTTP {response.status_code}", http_status=response.status_code)

    async def deliver_with_retry(self, payload: dict, max_attempts: Optional[int] = None) -> DeliveryOutcome:
        """Retry retryable failures; the result is the last attempt's outcome."""
        retries = max(1, max_attempts or self.settings.webhook_retries)
        history: list[DeliveryAttempt] = []
        outcome = DeliveryOutcome.failed("no attempt made")

        for attempt in range(1, retries + 1):
            logger.info(f"Webhook attempt {attempt}/{retries}")
            outcome = await self.deliver(payload)
            history.append(DeliveryAttempt(attempt, outcome.status, outcome.http_status))

            if not outcome.retryable:
                break

            if attempt < retries:
                delay = backoff_delay(attempt)
                logger.info(f"Waiting {delay:.0f}s before webhook retry")
                await self.sleep_func(delay)
        else:
            logger.error(f"All webhook attempts failed after {retries} tries")

        outcome.attempts = history
        return outcome
