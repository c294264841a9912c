"""SQLAlchemy persistence for the transaction ledger."""
