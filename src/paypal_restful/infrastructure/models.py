"""SQLAlchemy ORM models for the transaction ledger."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import TIMESTAMP, Boolean, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from paypal_restful.infrastructure.database import Base


class PayPalTransaction(Base):
    """
    One PayPal transaction recorded against a store order.

    Rows form a parent/child chain through ``parent_txn_id``; the order's
    CREATE row has an empty parent.
    """

    __tablename__ = "paypal"

    paypal_ipn_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True, comment="Store order id")

    txn_id: Mapped[str] = mapped_column(String(20), nullable=False, comment="PayPal transaction id")
    txn_type: Mapped[str] = mapped_column(String(20), nullable=False, comment="CREATE/AUTHORIZE/CAPTURE/REFUND")
    parent_txn_id: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    payment_type: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    pending_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Amounts
    mc_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="")
    mc_gross: Mapped[Decimal | None] = mapped_column(Numeric(15, 4), nullable=True)
    settle_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 4), nullable=True)
    settle_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(15, 6), nullable=True)
    payment_gross: Mapped[Decimal | None] = mapped_column(Numeric(15, 4), nullable=True)
    payment_fee: Mapped[Decimal | None] = mapped_column(Numeric(15, 4), nullable=True)

    # Lifecycle timestamps
    date_added: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_modified: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    expiration_time: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    final_capture: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    memo: Mapped[str] = mapped_column(Text, nullable=False, default="")
    invoice: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    notify_version: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    __table_args__ = (
        UniqueConstraint("order_id", "txn_id", name="uq_paypal_order_txn"),
        Index("idx_paypal_order_type", "order_id", "txn_type"),
    )
