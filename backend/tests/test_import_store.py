"""Tests for the SQLAlchemy batch stores.

The AsyncSession is mocked, following the service-level testing pattern:
each record runs inside `begin_nested()`, the batch ends with `commit()`.
"""
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.imports.coercion import make_record
from app.models.contact import Contact
from app.models.expense import Expense
from app.models.order import Order, OrderItem
from app.models.quote import Quote
from app.models.recipe import Recipe
from app.services.import_store import (
    ExpenseStore,
    OrderItemStore,
    OrderStore,
    QuoteStore,
    RecipeStore,
    build_stores,
    split_name,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

OWNER = uuid.uuid4()


def _make_db(scalar_results: list | None = None):
    """AsyncSession mock whose savepoints propagate exceptions."""
    db = MagicMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.scalar = AsyncMock(side_effect=list(scalar_results) if scalar_results else None, return_value=None)

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=None)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested = MagicMock(return_value=savepoint)
    return db


def _added(db, cls):
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], cls)]


def _make_recipe(row: int, name: str):
    return make_record(row, {
        "name": name, "category": "Cakes", "servings": 12,
        "total_cost": Decimal("18.50"), "description": "",
    }, {"Name": name})


def _make_order(row: int = 2, children=(), **overrides):
    values = {
        "order_number": "BD-1001",
        "contact_name": "Sarah Jones",
        "contact_email": None,
        "event_type": "Birthday",
        "event_date": date(2025, 6, 1),
        "status": "Confirmed",
        "delivery_type": "Pickup",
        "delivery_address": None,
        "delivery_fee": Decimal("0"),
        "total_amount": Decimal("65.00"),
        "deposit_amount": Decimal("20.00"),
        "deposit_paid": False,
        "theme": None,
        "notes": None,
        "created_at": date(2025, 5, 1),
    }
    values.update(overrides)
    return make_record(row, values, {"Order Number": values["order_number"]}, children)


def _make_item(name: str = "Cupcakes", number: str = "BD-1001"):
    return make_record(2, {
        "order_number": number, "name": name, "description": None,
        "quantity": 12, "price": Decimal("15.00"),
    }, {"Item": name})


# ─── Base store behaviour ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rejected_record_does_not_stop_batch():
    """A blank recipe name is a per-record error; the others insert and commit."""
    db = _make_db()
    store = RecipeStore(db, OWNER)
    result = await store.submit_batch([_make_recipe(2, "Sponge"), _make_recipe(3, ""), _make_recipe(4, "Tart")])

    assert result.inserted == 2
    assert result.errors == 1
    assert result.error_details[0].position == 1
    assert result.error_details[0].error == "name is required"
    assert [r.name for r in _added(db, Recipe)] == ["Sponge", "Tart"]
    assert all(r.owner_id == OWNER for r in _added(db, Recipe))
    assert db.begin_nested.call_count == 3
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_integrity_error_becomes_row_error():
    """A constraint violation on flush rejects only that record."""
    db = _make_db()
    db.flush = AsyncMock(side_effect=[None, IntegrityError("INSERT", {}, Exception("value too long\nDETAIL: x"))])
    store = RecipeStore(db, OWNER)
    result = await store.submit_batch([_make_recipe(2, "Sponge"), _make_recipe(3, "Tart")])

    assert result.inserted == 1
    assert result.error_details[0].position == 1
    assert result.error_details[0].error == "value too long"
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_unexpected_error_rolls_back_and_propagates():
    """Anything but a record rejection fails the whole batch."""
    db = _make_db()
    db.flush = AsyncMock(side_effect=ConnectionError("server closed the connection"))
    store = RecipeStore(db, OWNER)

    with pytest.raises(ConnectionError):
        await store.submit_batch([_make_recipe(2, "Sponge")])
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


# ─── Orders ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_duplicate_order_number_is_rejected():
    """An existing order number for the same owner rejects the row."""
    db = _make_db(scalar_results=[uuid.uuid4()])
    result = await OrderStore(db, OWNER).submit_batch([_make_order()])

    assert result.inserted == 0
    assert result.error_details[0].error == "Order BD-1001 already exists"
    assert _added(db, Order) == []


@pytest.mark.asyncio
async def test_order_creates_missing_contact_and_items():
    """Unknown customer → new contact; children are written with the order."""
    db = _make_db(scalar_results=[None, None])
    record = _make_order(children=[_make_item("Cupcakes"), _make_item("Cake")])
    result = await OrderStore(db, OWNER).submit_batch([record])

    assert result.inserted == 1
    contacts = _added(db, Contact)
    assert len(contacts) == 1
    assert (contacts[0].first_name, contacts[0].last_name) == ("Sarah", "Jones")
    assert contacts[0].contact_type == "Customer"

    order = _added(db, Order)[0]
    assert order.order_number == "BD-1001"
    assert order.total_amount == Decimal("65.00")
    assert order.created_at.date() == date(2025, 5, 1)
    assert [i.name for i in _added(db, OrderItem)] == ["Cupcakes", "Cake"]


@pytest.mark.asyncio
async def test_order_reuses_contact_found_by_email():
    """A known e-mail links the order to the existing contact."""
    existing = MagicMock(spec=Contact)
    existing.id = uuid.uuid4()
    db = _make_db(scalar_results=[None, existing])
    await OrderStore(db, OWNER).submit_batch([_make_order(contact_email="sarah@example.com")])

    assert _added(db, Contact) == []
    assert _added(db, Order)[0].contact_id == existing.id


@pytest.mark.asyncio
async def test_order_without_contact_details_has_no_contact():
    """No name and no e-mail → no contact lookup at all."""
    db = _make_db(scalar_results=[None])
    await OrderStore(db, OWNER).submit_batch([_make_order(contact_name=None)])

    assert db.scalar.await_count == 1
    assert _added(db, Order)[0].contact_id is None


@pytest.mark.asyncio
async def test_blank_child_item_rejects_whole_order():
    """An order and its items are all-or-nothing."""
    db = _make_db(scalar_results=[None, None])
    record = _make_order(children=[_make_item("")])
    result = await OrderStore(db, OWNER).submit_batch([record])

    assert result.inserted == 0
    assert result.error_details[0].error == "order item name is required"


# ─── Order items ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_order_item_for_missing_order_creates_placeholder():
    """Items for an unknown order number get a placeholder quote order."""
    db = _make_db(scalar_results=[None])
    result = await OrderItemStore(db, OWNER).submit_batch([_make_item(number="BD-2000")])

    assert result.inserted == 1
    placeholder = _added(db, Order)[0]
    assert placeholder.order_number == "BD-2000"
    assert placeholder.status == "Quote"
    assert _added(db, OrderItem)[0].quantity == 12


@pytest.mark.asyncio
async def test_order_item_attaches_to_existing_order():
    """A known order number is reused."""
    existing = MagicMock(spec=Order)
    existing.id = uuid.uuid4()
    db = _make_db(scalar_results=[existing])
    await OrderItemStore(db, OWNER).submit_batch([_make_item()])

    assert _added(db, Order) == []
    assert _added(db, OrderItem)[0].order_id == existing.id


# ─── Quotes and expenses ──────────────────────────────────────────────────────

def _make_quote(number: str = "Q-2001", contact_name: str | None = "Hall Events Ltd"):
    return make_record(2, {
        "quote_number": number, "contact_name": contact_name, "event_type": "Wedding",
        "event_date": date(2026, 8, 1), "status": "Draft", "total_amount": Decimal("480.00"),
        "expiry_date": date(2026, 6, 1), "theme": "Rustic", "notes": None,
    }, {"Quote Number": number})


@pytest.mark.asyncio
async def test_quote_links_contact_by_name():
    """Quotes reuse the order contact lookup, by name only."""
    existing = MagicMock(spec=Contact)
    existing.id = uuid.uuid4()
    db = _make_db(scalar_results=[None, existing])
    result = await QuoteStore(db, OWNER).submit_batch([_make_quote()])

    assert result.inserted == 1
    quote = _added(db, Quote)[0]
    assert quote.contact_id == existing.id
    assert quote.expiry_date == date(2026, 6, 1)
    assert quote.owner_id == OWNER


@pytest.mark.asyncio
async def test_duplicate_quote_number_is_rejected():
    """An existing quote number rejects the row."""
    db = _make_db(scalar_results=[uuid.uuid4()])
    result = await QuoteStore(db, OWNER).submit_batch([_make_quote()])

    assert result.inserted == 0
    assert result.error_details[0].error == "Quote Q-2001 already exists"


@pytest.mark.asyncio
async def test_blank_quote_number_is_rejected():
    """The quote number is required by the store as well as the mapper."""
    db = _make_db()
    result = await QuoteStore(db, OWNER).submit_batch([_make_quote(number=" ", contact_name=None)])

    assert result.error_details[0].error == "quote number is required"
    db.scalar.assert_not_awaited()


@pytest.mark.asyncio
async def test_expense_is_written_with_its_date():
    """Expenses map the date field onto the expense_date column."""
    db = _make_db()
    record = make_record(2, {
        "date": date(2025, 5, 19), "description": "Flour", "category": "Ingredients",
        "amount": Decimal("12.40"), "supplier": "Millers", "payment_source": "Card",
        "vat": Decimal("0"), "total_inc_tax": Decimal("12.40"),
        "tax_deductible": True, "is_recurring": False,
    }, {"Date": "19 May 2025"})
    result = await ExpenseStore(db, OWNER).submit_batch([record])

    assert result.inserted == 1
    expense = _added(db, Expense)[0]
    assert expense.expense_date == date(2025, 5, 19)
    assert expense.amount == Decimal("12.40")
    assert expense.tax_deductible is True


# ─── Misc─────────────────────────────────────────────────────────────────────

def test_split_name():
    """First word is the first name; the rest is the last name."""
    assert split_name("Jane van Dyke") == ("Jane", "van Dyke")
    assert split_name("Cher") == ("Cher", "")
    assert split_name("") == ("", "")


def test_build_stores_covers_every_target():
    """One store per import target, all bound to the same owner."""
    stores = build_stores(MagicMock(), OWNER)
    assert set(stores) == {
        "contacts", "recipes", "ingredients", "orders", "order_items", "quotes", "expenses",
    }
    assert all(s.owner_id == OWNER for s in stores.values())
