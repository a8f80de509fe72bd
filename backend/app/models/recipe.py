from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Recipe(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    __tablename__ = "recipes"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    servings: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
