"""Local ledger of PayPal transactions, one row per PayPal transaction id."""

from paypal_restful.ledger.ledger import LedgerMessage, TransactionLedger, reconstruct
from paypal_restful.ledger.store import InMemoryTransactionStore, TransactionStore

__all__ = [
    "InMemoryTransactionStore",
    "LedgerMessage",
    "TransactionLedger",
    "TransactionStore",
    "reconstruct",
]
