"""Outbound e-mail port.

Notifications render to an ``EmailMessage`` and hand it to the ``Mailer``
registered for the e-mail channel. A provider that refuses a message
answers with a rejected ``DeliveryReceipt``; exceptions mean the transport
itself failed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class DeliveryReceipt:
    accepted: bool
    message_id: str | None = None
    error: str | None = None


class Mailer(ABC):
    @abstractmethod
    def deliver(self, message: EmailMessage) -> DeliveryReceipt:
        """Hand one message to the provider."""
