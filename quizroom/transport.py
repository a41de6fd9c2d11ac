"""
Messaging transport interface used by the quiz engine.
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import TransportError

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Operations the quiz engine needs from a chat platform."""

    @abstractmethod
    async def send_to_group(self, group_id: str, payload) -> None:
        """Deliver a payload to a group chat."""

    @abstractmethod
    async def send_to_private(self, identity_id: str, payload) -> None:
        """Deliver a payload on a participant's one-to-one channel."""

    @abstractmethod
    async def set_group_restricted(self, group_id: str, restricted: bool) -> None:
        """Lock (True) or unlock (False) posting by non-admins in a group."""

    @abstractmethod
    async def resolve_display_name(self, identity_id: str) -> Optional[str]:
        """Return a profile name for an identity, or None if unknown."""


@dataclass
class Delivery:
    """One outbound message queued during a session transition."""
    target: str  # "group", "private" or "restrict"
    recipient: str
    payload: object = None


class SafeTransport:
    """
    Wraps a Transport so delivery failures are logged and never propagate.
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    async def send_to_group(self, group_id: str, payload) -> bool:
        try:
            await self.transport.send_to_group(group_id, payload)
            return True
        except Exception as e:
            self._log_failure("send_to_group", group_id, e)
            return False

    async def send_to_private(self, identity_id: str, payload) -> bool:
        try:
            await self.transport.send_to_private(identity_id, payload)
            return True
        except Exception as e:
            self._log_failure("send_to_private", identity_id, e)
            return False

    async def set_group_restricted(self, group_id: str, restricted: bool) -> bool:
        try:
            await self.transport.set_group_restricted(group_id, restricted)
            return True
        except Exception as e:
            self._log_failure("lock_group" if restricted else "unlock_group", group_id, e)
            return False

    async def resolve_display_name(self, identity_id: str) -> Optional[str]:
        try:
            return await self.transport.resolve_display_name(identity_id)
        except Exception as e:
            self._log_failure("resolve_display_name", identity_id, e)
            return None

    async def deliver(self, deliveries: Iterable[Delivery]) -> int:
        """
        Send queued deliveries in order.

        Returns:
            Number of deliveries that failed
        """
        failures = 0
        for delivery in deliveries:
            if delivery.target == "group":
                ok = await self.send_to_group(delivery.recipient, delivery.payload)
            elif delivery.target == "private":
                ok = await self.send_to_private(delivery.recipient, delivery.payload)
            elif delivery.target == "restrict":
                ok = await self.set_group_restricted(delivery.recipient, bool(delivery.payload))
            else:
                logger.error(f"Unknown delivery target {delivery.target!r}")
                ok = False
            if not ok:
                failures += 1
        return failures

    def _log_failure(self, operation: str, recipient: str, error: Exception) -> None:
        kind = "TransportError" if isinstance(error, TransportError) else type(error).__name__
        logger.warning(
            f"Transport {operation} failed for {recipient}: {kind}: {error}",
            extra={
                'event_type': 'transport_failure',
                'operation': operation,
                'recipient': recipient,
                'error_type': kind,
                'timestamp': time.time()
            }
        )
