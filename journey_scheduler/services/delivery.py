"""Message delivery for MESSAGE nodes.

The engine calls ``deliver`` before it commits the move past a MESSAGE
node; any exception fails the run.

Usage:
    from journey_scheduler.services.delivery import create_delivery

    delivery = create_delivery(settings)
    await delivery.deliver(run_id, node_id, message, context)
"""

from typing import Any, Dict, Protocol, TYPE_CHECKING

import httpx

from journey_scheduler.core.logging import get_logger
from journey_scheduler.services.execution.errors import DeliveryError

if TYPE_CHECKING:
    from journey_scheduler.core.config import Settings

logger = get_logger(__name__)


class MessageDelivery(Protocol):
    """Protocol for delivery backends (enables duck typing)."""

    async def deliver(self, run_id: str, node_id: str, message: str,
                      context: Dict[str, Any]) -> None:
        """Send ``message`` to the patient described by ``context``."""
        ...


class LogDelivery:
    """Delivery backend that only records the send in the log."""

    async def deliver(self, run_id: str, node_id: str, message: str,
                      context: Dict[str, Any]) -> None:
        logger.info("MESSAGE node sent message to patient",
                    run_id=run_id,
                    node_id=node_id,
                    patient_id=context.get("id"),
                    message=message)


class WebhookDelivery:
    """Delivery backend that POSTs each message to a notification webhook."""

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.AsyncClient = None):
        """Initialize webhook delivery.

        Args:
            url: Notification endpoint receiving JSON payloads
            timeout: Per-request timeout in seconds
            client: Optional shared client (tests inject a mock transport)
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    async def deliver(self, run_id: str, node_id: str, message: str,
                      context: Dict[str, Any]) -> None:
        payload = {
            "runId": run_id,
            "nodeId": node_id,
            "patientId": context.get("id"),
            "language": context.get("language"),
            "message": message,
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Message delivery failed",
                         run_id=run_id, node_id=node_id, url=self.url, error=str(e))
            raise DeliveryError(f"Delivery to {self.url} failed: {e}") from e

        logger.info("MESSAGE node delivered via webhook",
                    run_id=run_id,
                    node_id=node_id,
                    patient_id=context.get("id"),
                    status_code=response.status_code)


def create_delivery(settings: "Settings") -> MessageDelivery:
    """Create the delivery backend selected by configuration."""
    if settings.delivery_mode == "webhook":
        return WebhookDelivery(settings.delivery_webhook_url, timeout=settings.delivery_timeout)
    return LogDelivery()
