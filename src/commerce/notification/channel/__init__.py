"""Mailer registry for notification channels.

Only e-mail is wired. A ``RecordingMailer`` is installed on first use; a
deployment with a real provider calls ``set_mailer`` at startup.
"""

from commerce.notification.channel.mailer import DeliveryReceipt, EmailMessage, Mailer
from commerce.notification.channel.recording_mailer import RecordingMailer
from commerce.notification.notification import NotificationChannel

__all__ = ["DeliveryReceipt", "EmailMessage", "Mailer", "RecordingMailer", "get_mailer", "set_mailer", "reset_mailers"]

_mailers: dict[str, Mailer] = {}


def get_mailer(channel: str = NotificationChannel.EMAIL.value) -> Mailer:
    if channel != NotificationChannel.EMAIL.value:
        raise ValueError(f"No mailer for channel: {channel}")

    if channel not in _mailers:
        _mailers[channel] = RecordingMailer()
    return _mailers[channel]


def set_mailer(mailer: Mailer, channel: str = NotificationChannel.EMAIL.value) -> None:
    _mailers[channel] = mailer


def reset_mailers() -> None:
    _mailers.clear()
