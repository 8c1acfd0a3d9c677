"""
storefront: cart-to-order pipeline for the online store.

Cart line items and totals, live availability reconciliation, the checkout
state machine and idempotent order submission, served to the storefront UI
as a small FastAPI service.
"""

__version__ = "1.0.0"
