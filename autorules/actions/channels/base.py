"""Delivery gateways used by the send_notification action."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class NotificationMessage:
    """What send_notification hands to a gateway."""

    recipients: list[str]
    subject: str
    body: str
    execution_id: str = ""
    metadata: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Subject and body as one plain-text block."""
        if not self.subject or self.subject == self.body:
            return self.body
        return f"{self.subject}\n\n{self.body}"


class NotificationChannel(ABC):
    """A gateway selected by the ``channel`` key of a send_notification config.

    ``send`` reports failure by returning False; the action turns that into
    a failed action result.
    """

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Value of ``config["channel"]`` this gateway serves."""

    @abstractmethod
    async def send(self, message: NotificationMessage) -> bool:
        """Deliver to every recipient; True only when all deliveries succeeded."""

    async def close(self) -> None:
        return None
