from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, OwnedMixin, TimestampMixin, UUIDMixin


class Contact(Base, UUIDMixin, OwnedMixin, TimestampMixin):
    """Customer or supplier. Orders link here by e-mail or by name."""

    __tablename__ = "contacts"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Customer")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    orders: Mapped[list["Order"]] = relationship("Order", back_populates="contact")

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.business_name or ""
