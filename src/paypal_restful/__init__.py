"""PayPal RESTful payment-state synchronization."""

__version__ = "0.1.0"
