import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Quote(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    """A priced proposal that may later become an order."""

    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("owner_id", "quote_number", name="uq_quotes_owner_number"),)

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False)
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id"), nullable=True, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, default="Other")
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Draft")
    delivery_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Pickup")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    theme: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    contact: Mapped["Contact | None"] = relationship("Contact")
