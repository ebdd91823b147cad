"""Repository for the CheckoutSession aggregate.

``claim`` is the only way a session leaves OPEN (or CAPTURED). It is a single
conditional update on ``(id, status)`` evaluated by the storage layer, so two
callers racing for the same session cannot both win.
"""

from datetime import UTC, datetime

from protean.utils.query import Q

from commerce.checkout.session import CLAIM_TIMEOUT, CheckoutSession, CheckoutSessionStatus
from commerce.domain import commerce

EXPIRY_SWEEP_LIMIT = 500


@commerce.repository(part_of=CheckoutSession)
class CheckoutSessionRepository:
    def get_live(self, session_id) -> CheckoutSession | None:
        """The session, or None when it is missing or past its expiry."""
        results = self._dao.query.filter(id=str(session_id)).all().items
        if not results or results[0].is_expired():
            return None
        return results[0]

    def get_by_payment_intent(self, intent_id, include_expired: bool = False) -> CheckoutSession | None:
        results = self._dao.query.filter(payment_intent_id=str(intent_id)).all().items
        if not results:
            return None
        if not include_expired and results[0].is_expired():
            return None
        return results[0]

    def claim(self, session: CheckoutSession, resume_captured: bool = False) -> bool:
        """Move the session to CLOSING. True only for the caller that did it.

        Sessions are claimed from OPEN; with ``resume_captured`` a paid
        session whose settlement failed earlier may be claimed as well.
        """
        statuses = [CheckoutSessionStatus.OPEN.value]
        if resume_captured:
            statuses.append(CheckoutSessionStatus.CAPTURED.value)

        now = datetime.now(UTC)
        updated = self._dao._update_all(
            Q(id=str(session.id), status__in=statuses),
            status=CheckoutSessionStatus.CLOSING.value,
            claimed_at=now,
        )
        if updated == 1:
            session.status = CheckoutSessionStatus.CLOSING.value
            session.claimed_at = now
            return True
        return False

    def mark_captured(self, session: CheckoutSession) -> bool:
        """Hand a claimed session back after its settlement failed, keeping its reservations."""
        return self._release_claim(session, CheckoutSessionStatus.CAPTURED)

    def reopen(self, session: CheckoutSession) -> bool:
        return self._release_claim(session, CheckoutSessionStatus.OPEN)

    def _release_claim(self, session: CheckoutSession, status: CheckoutSessionStatus) -> bool:
        updated = self._dao._update_all(
            Q(id=str(session.id), status=CheckoutSessionStatus.CLOSING.value),
            status=status.value,
            claimed_at=None,
        )
        if updated == 1:
            session.status = status.value
            session.claimed_at = None
            return True
        return False

    def discard(self, session: CheckoutSession) -> None:
        """Delete the session; both of its keys disappear with the record."""
        fresh = self._dao.query.filter(id=str(session.id)).all().items
        if not fresh:
            return
        session = fresh[0]
        if session.lines:
            for line in list(session.lines):
                session.remove_lines(line)
            self.add(session)
        self._dao.delete(session)

    def find_expired(self, as_of: datetime | None = None, limit: int = EXPIRY_SWEEP_LIMIT) -> list[CheckoutSession]:
        """OPEN sessions whose expiry is at or before ``as_of``, oldest first."""
        as_of = as_of or datetime.now(UTC)
        return (
            self._dao.query.filter(status=CheckoutSessionStatus.OPEN.value, expires_at__lte=as_of)
            .order_by("expires_at")
            .limit(limit)
            .all()
            .items
        )

    def find_stale_claims(self, as_of: datetime | None = None, limit: int = EXPIRY_SWEEP_LIMIT) -> list[CheckoutSession]:
        """CLOSING sessions whose claimant has not finished within ``CLAIM_TIMEOUT``."""
        as_of = as_of or datetime.now(UTC)
        return (
            self._dao.query.filter(
                status=CheckoutSessionStatus.CLOSING.value,
                claimed_at__lte=as_of - CLAIM_TIMEOUT,
            )
            .order_by("claimed_at")
            .limit(limit)
            .all()
            .items
        )

    def count_by_status(self) -> dict[str, int]:
        return {
            status.value: self._dao.query.filter(status=status.value).all().total for status in CheckoutSessionStatus
        }
