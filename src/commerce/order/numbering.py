"""Order numbers: ``ORD-YYYYMMDD-NNN``, sequential per calendar day.

Each day has its own ``OrderSequence`` record keyed by ``YYYYMMDD``. The
counter is advanced with a conditional update on its previous value, and the
first order of a day creates the record, so concurrent settlements never
hand out the same number.
"""

import re
from datetime import UTC, date, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String
from protean.utils.globals import current_domain
from protean.utils.query import Q

from commerce.domain import commerce
from commerce.errors import SequenceContention

ORDER_NUMBER_PREFIX = "ORD"
MAX_ALLOCATION_ATTEMPTS = 25

_ORDER_NUMBER_RE = re.compile(r"^ORD-(\d{8})-(\d{3,})$")


@commerce.aggregate
class OrderSequence:
    id = String(identifier=True, max_length=8)  # YYYYMMDD
    last_value = Integer(default=0, min_value=0)
    updated_at = DateTime()


def format_order_number(day: date, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-{sequence:03d}"


def parse_order_number(value: str) -> tuple[date, int] | None:
    """Split an order number into its day and sequence, or None if malformed."""
    match = _ORDER_NUMBER_RE.match(value or "")
    if not match:
        return None
    try:
        day = datetime.strptime(match.group(1), "%Y%m%d").date()
    except ValueError:
        return None
    sequence = int(match.group(2))
    if sequence < 1:
        return None
    return day, sequence


def next_order_number(day: date | None = None) -> str:
    day = day or datetime.now(UTC).date()
    key = f"{day:%Y%m%d}"
    repo = current_domain.repository_for(OrderSequence)

    for _ in range(MAX_ALLOCATION_ATTEMPTS):
        existing = repo._dao.query.filter(id=key).all().items
        if not existing:
            try:
                repo.add(OrderSequence(id=key, last_value=1, updated_at=datetime.now(UTC)))
            except ValidationError:
                continue  # Another settlement created today's sequence first
            return format_order_number(day, 1)

        sequence = existing[0]
        next_value = sequence.last_value + 1
        updated = repo._dao._update_all(
            Q(id=key, last_value=sequence.last_value),
            last_value=next_value,
            updated_at=datetime.now(UTC),
        )
        if updated == 1:
            return format_order_number(day, next_value)

    raise SequenceContention(key)
