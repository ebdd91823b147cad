from datetime import date

import pytest

from commerce.order.numbering import format_order_number, parse_order_number


class TestFormat:
    def test_pads_to_three_digits(self):
        assert format_order_number(date(2026, 1, 15), 7) == "ORD-20260115-007"

    def test_grows_past_999(self):
        assert format_order_number(date(2026, 1, 15), 1234) == "ORD-20260115-1234"


class TestParse:
    def test_round_trip(self):
        assert parse_order_number("ORD-20260115-042") == (date(2026, 1, 15), 42)

    @pytest.mark.parametrize(
        "value",
        ["", None, "ORD-2026115-001", "ORD-20260115-01", "ord-20260115-001", "ORD-20261315-001", "ORD-20260115-000"],
    )
    def test_malformed(self, value):
        assert parse_order_number(value) is None
