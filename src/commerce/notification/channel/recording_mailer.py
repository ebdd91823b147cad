"""In-memory mailer for development and tests."""

from uuid import uuid4

from commerce.notification.channel.mailer import DeliveryReceipt, EmailMessage, Mailer


class RecordingMailer(Mailer):
    """Keeps every accepted message in ``outbox``. Can be told to refuse mail."""

    def __init__(self) -> None:
        self.outbox: list[EmailMessage] = []
        self.rejection: str | None = None

    def reject_with(self, reason: str = "Mailbox unavailable") -> None:
        self.rejection = reason

    def accept(self) -> None:
        self.rejection = None

    def deliver(self, message: EmailMessage) -> DeliveryReceipt:
        if self.rejection is not None:
            return DeliveryReceipt(accepted=False, error=self.rejection)

        self.outbox.append(message)
        return DeliveryReceipt(accepted=True, message_id=f"msg-{uuid4().hex[:12]}")

    def clear(self) -> None:
        self.outbox.clear()
        self.rejection = None
