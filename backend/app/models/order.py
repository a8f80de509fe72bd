import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Order(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("owner_id", "order_number", name="uq_orders_owner_number"),)

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id"), nullable=True, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, default="Other")
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Quote", index=True)
    delivery_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Pickup")
    delivery_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    deposit_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    theme: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    contact: Mapped["Contact | None"] = relationship("Contact", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )


class OrderItem(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
