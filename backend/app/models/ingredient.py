from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Ingredient(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    __tablename__ = "ingredients"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="General")
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    pack_size: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0)  # in `unit`
    pack_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
