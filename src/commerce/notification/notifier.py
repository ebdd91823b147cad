"""Notification collaborator used by the checkout core.

``notify`` records the message and hands it to the dispatcher; it never
raises and never waits on delivery. ``sent`` is only True when the channel
accepted the message before ``notify`` returned, which happens with
synchronous event processing outside a unit of work. Called from a command or
event handler, the message goes out when that handler's unit of work commits.
"""

import json
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain, current_uow

from commerce.notification.notification import Notification, NotificationStatus
from commerce.notification.templates import get_template

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotifyResult:
    sent: bool
    notification_id: str | None = None


def merchant_recipient(merchant_id) -> str:
    """Recipient reference for a merchant; resolved to an address by the channel."""
    return f"merchant:{merchant_id}"


def notify(kind: str, recipient: str, payload: dict | None = None) -> NotifyResult:
    payload = payload or {}
    try:
        rendered = get_template(kind).render(payload)
        notification = Notification.create(
            kind=kind,
            recipient=recipient,
            subject=rendered.get("subject"),
            body=rendered["body"],
            payload=json.dumps(payload, default=str),
        )
        repo = current_domain.repository_for(Notification)
        in_transaction = bool(current_uow and current_uow.in_progress)
        repo.add(notification)

        # Reading the record back inside a unit of work would replace the tracked
        # instance, and NotificationCreated with it.
        sent = not in_transaction and repo.get(notification.id).status == NotificationStatus.SENT.value
    except Exception as exc:
        logger.error("Notification could not be queued", kind=kind, recipient=recipient, error=str(exc))
        return NotifyResult(sent=False)

    logger.info("Notification queued", kind=kind, notification_id=str(notification.id), sent=sent)
    return NotifyResult(sent=sent, notification_id=str(notification.id))
