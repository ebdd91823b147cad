"""Inventory ledger factory.

``get_ledger()`` returns a ledger wired to the low-stock alert sender. The
ledger holds no state of its own, so a fresh instance per caller is fine.
"""

from commerce.inventory.ledger import InventoryLedger, StockLevels


def get_ledger() -> InventoryLedger:
    from commerce.inventory.alerts import send_low_stock_alert

    return InventoryLedger(on_low_stock=send_low_stock_alert)


__all__ = ["InventoryLedger", "StockLevels", "get_ledger"]
