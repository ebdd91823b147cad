"""Expired checkout sweep — command and handler.

Triggered by the external scheduler through the maintenance API. Sessions
past their 30 minute window are closed exactly like a buyer cancel. Claims
that were never finished are resolved first, so a session stranded in
CLOSING is either discarded (its order exists) or reopened and swept.
"""

from protean import handle
from protean.fields import DateTime

from commerce.checkout.orchestrator import get_orchestrator
from commerce.checkout.session import CheckoutSession
from commerce.domain import commerce
from commerce.settlement.handler import get_settlement_handler


@commerce.command(part_of="CheckoutSession")
class ExpireCheckoutSessions:
    as_of = DateTime()  # Defaults to now


@commerce.command_handler(part_of=CheckoutSession)
class CheckoutExpiryHandler:
    @handle(ExpireCheckoutSessions)
    def expire_checkout_sessions(self, command):
        get_settlement_handler().recover_stale_claims(as_of=command.as_of)
        return get_orchestrator().cleanup_expired_sessions(as_of=command.as_of)
