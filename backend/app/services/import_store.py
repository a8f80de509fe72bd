"""SQLAlchemy storage for import batches.

One store per import target. Every record is written inside its own
SAVEPOINT, so a rejected record rolls back alone (an order together with
its contact lookup and line items) and the rest of the batch commits.
Anything other than a record-level rejection aborts the batch and is
re-raised for the orchestrator to report.
"""
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.imports.coercion import TypedRecord
from app.imports.orchestrator import BatchErrorDetail, BatchResult, BatchStore
from app.models.contact import Contact
from app.models.expense import Expense
from app.models.ingredient import Ingredient
from app.models.order import Order, OrderItem
from app.models.quote import Quote
from app.models.recipe import Recipe

logger = logging.getLogger(__name__)


class RecordRejected(Exception):
    """A single record failed validation; the batch carries on."""


def _db_message(exc: Exception) -> str:
    text = str(getattr(exc, "orig", None) or exc)
    return text.splitlines()[0] if text else exc.__class__.__name__


def _as_timestamp(value: date | None) -> datetime | None:
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def split_name(name: str) -> tuple[str, str]:
    """'Jane van Dyke' → ('Jane', 'van Dyke')."""
    parts = (name or "").split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


# ─── Base store ───

class SqlBatchStore:
    entity = ""

    def __init__(self, db: AsyncSession, owner_id: uuid.UUID):
        self.db = db
        self.owner_id = owner_id

    async def persist(self, record: TypedRecord) -> None:
        raise NotImplementedError

    async def submit_batch(self, records: Sequence[TypedRecord]) -> BatchResult:
        inserted = 0
        details: list[BatchErrorDetail] = []
        try:
            for position, record in enumerate(records):
                try:
                    async with self.db.begin_nested():
                        await self.persist(record)
                except RecordRejected as exc:
                    details.append(BatchErrorDetail(position=position, error=str(exc)))
                except (IntegrityError, DataError) as exc:
                    logger.info(
                        "%s row %d rejected by database: %s", self.entity, record.row_number, exc,
                    )
                    details.append(BatchErrorDetail(position=position, error=_db_message(exc)))
                else:
                    inserted += 1
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return BatchResult(inserted=inserted, errors=len(details), error_details=details)


# ─── Per-entity stores ───

class ContactStore(SqlBatchStore):
    entity = "contacts"

    async def persist(self, record: TypedRecord) -> None:
        if not (record["first_name"] or record["last_name"] or record["business_name"]):
            raise RecordRejected("name is required")
        self.db.add(Contact(
            owner_id=self.owner_id,
            first_name=record["first_name"],
            last_name=record["last_name"],
            business_name=record["business_name"],
            email=record["email"],
            phone=record["phone"],
            contact_type=record["contact_type"],
            notes=record["notes"],
        ))
        await self.db.flush()


class RecipeStore(SqlBatchStore):
    entity = "recipes"

    async def persist(self, record: TypedRecord) -> None:
        if not record["name"]:
            raise RecordRejected("name is required")
        self.db.add(Recipe(
            owner_id=self.owner_id,
            name=record["name"],
            category=record["category"],
            servings=record["servings"],
            total_cost=record["total_cost"],
            description=record["description"],
        ))
        await self.db.flush()


class IngredientStore(SqlBatchStore):
    entity = "ingredients"

    async def persist(self, record: TypedRecord) -> None:
        if not record["name"]:
            raise RecordRejected("name is required")
        self.db.add(Ingredient(
            owner_id=self.owner_id,
            name=record["name"],
            supplier=record["supplier"],
            category=record["category"],
            unit=record["unit"],
            pack_size=record["pack_size"],
            pack_cost=record["pack_cost"],
        ))
        await self.db.flush()


class ContactLinkingStore(SqlBatchStore):
    """Base for records that name their customer (orders and quotes)."""

    async def find_or_create_contact(self, name: str | None, email: str | None) -> Contact | None:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name and not email:
            return None

        stmt = select(Contact).where(Contact.owner_id == self.owner_id)
        first, last = split_name(name)
        if email:
            stmt = stmt.where(func.lower(Contact.email) == email.lower())
        else:
            stmt = stmt.where(Contact.first_name == first, Contact.last_name == last)
        contact = await self.db.scalar(stmt.limit(1))
        if contact is not None:
            return contact

        contact = Contact(
            owner_id=self.owner_id,
            first_name=first,
            last_name=last,
            email=email or None,
            contact_type="Customer",
        )
        self.db.add(contact)
        await self.db.flush()
        logger.debug("Created contact %r for imported %s", name or email, self.entity)
        return contact


class OrderStore(ContactLinkingStore):
    """Orders, with contact find-or-create and nested line items."""

    entity = "orders"

    async def persist(self, record: TypedRecord) -> None:
        number = (record["order_number"] or "").strip()
        if not number:
            raise RecordRejected("order number is required")

        existing = await self.db.scalar(
            select(Order.id).where(Order.owner_id == self.owner_id, Order.order_number == number)
        )
        if existing is not None:
            raise RecordRejected(f"Order {number} already exists")

        contact = await self.find_or_create_contact(record["contact_name"], record["contact_email"])
        order = Order(
            owner_id=self.owner_id,
            order_number=number,
            contact_id=contact.id if contact is not None else None,
            event_type=record["event_type"],
            event_date=record["event_date"],
            status=record["status"],
            delivery_type=record["delivery_type"],
            delivery_address=record["delivery_address"],
            delivery_fee=record["delivery_fee"],
            total_amount=record["total_amount"],
            deposit_amount=record["deposit_amount"],
            deposit_paid=record["deposit_paid"],
            theme=record["theme"],
            notes=record["notes"],
        )
        created_at = _as_timestamp(record.get("created_at"))
        if created_at is not None:
            order.created_at = created_at
        self.db.add(order)
        await self.db.flush()

        for child in record.children:
            if not child["name"]:
                raise RecordRejected("order item name is required")
            self.db.add(_order_item(order.id, child))
        if record.children:
            await self.db.flush()


class OrderItemStore(SqlBatchStore):
    """Line items keyed by order number; a missing order gets a placeholder."""

    entity = "order_items"

    async def order_for(self, number: str) -> Order:
        order = await self.db.scalar(
            select(Order).where(Order.owner_id == self.owner_id, Order.order_number == number).limit(1)
        )
        if order is not None:
            return order
        order = Order(
            owner_id=self.owner_id,
            order_number=number,
            status="Quote",
            notes="Created from order item import",
        )
        self.db.add(order)
        await self.db.flush()
        logger.info("Created placeholder order %s for imported items", number)
        return order

    async def persist(self, record: TypedRecord) -> None:
        number = (record["order_number"] or "").strip()
        if not number:
            raise RecordRejected("order number is required")
        if not record["name"]:
            raise RecordRejected("name is required")
        order = await self.order_for(number)
        self.db.add(_order_item(order.id, record))
        await self.db.flush()


def _order_item(order_id: uuid.UUID, record: TypedRecord) -> OrderItem:
    return OrderItem(
        order_id=order_id,
        name=record["name"],
        description=record["description"],
        quantity=record["quantity"],
        price=record["price"],
    )


class QuoteStore(ContactLinkingStore):
    entity = "quotes"

    async def persist(self, record: TypedRecord) -> None:
        number = (record["quote_number"] or "").strip()
        if not number:
            raise RecordRejected("quote number is required")

        existing = await self.db.scalar(
            select(Quote.id).where(Quote.owner_id == self.owner_id, Quote.quote_number == number)
        )
        if existing is not None:
            raise RecordRejected(f"Quote {number} already exists")

        contact = await self.find_or_create_contact(record["contact_name"], None)
        self.db.add(Quote(
            owner_id=self.owner_id,
            quote_number=number,
            contact_id=contact.id if contact is not None else None,
            event_type=record["event_type"],
            event_date=record["event_date"],
            status=record["status"],
            total_amount=record["total_amount"],
            expiry_date=record["expiry_date"],
            theme=record["theme"],
            notes=record["notes"],
        ))
        await self.db.flush()


class ExpenseStore(SqlBatchStore):
    entity = "expenses"

    async def persist(self, record: TypedRecord) -> None:
        self.db.add(Expense(
            owner_id=self.owner_id,
            expense_date=record["date"],
            description=record["description"],
            category=record["category"],
            amount=record["amount"],
            supplier=record["supplier"],
            payment_source=record["payment_source"],
            vat=record["vat"],
            total_inc_tax=record["total_inc_tax"],
            tax_deductible=record["tax_deductible"],
            is_recurring=record["is_recurring"],
        ))
        await self.db.flush()


STORES: dict[str, type[SqlBatchStore]] = {
    "contacts": ContactStore,
    "recipes": RecipeStore,
    "ingredients": IngredientStore,
    "orders": OrderStore,
    "order_items": OrderItemStore,
    "quotes": QuoteStore,
    "expenses": ExpenseStore,
}


def build_store(db: AsyncSession, target: str, owner_id: uuid.UUID) -> BatchStore:
    return STORES[target](db, owner_id)


def build_stores(db: AsyncSession, owner_id: uuid.UUID) -> dict[str, BatchStore]:
    return {name: cls(db, owner_id) for name, cls in STORES.items()}
