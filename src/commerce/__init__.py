"""Marketline commerce core.

Carts, checkout reservations against a per-variant inventory ledger,
payment settlement, and the order lifecycle, composed in a single Protean
domain (``commerce.domain.commerce``).
"""
