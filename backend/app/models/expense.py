from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Expense(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    __tablename__ = "expenses"

    expense_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # gross, VAT included
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vat: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_inc_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    tax_deductible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
