"""Read side of export: ORM rows → dicts keyed by FieldSpec key."""
import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.contact import Contact
from app.models.expense import Expense
from app.models.ingredient import Ingredient
from app.models.order import Order, OrderItem
from app.models.quote import Quote
from app.models.recipe import Recipe

logger = logging.getLogger(__name__)

BACKUP_SECTIONS = ("contacts", "recipes", "ingredients", "expenses", "quotes", "orders")


def contact_row(contact: Contact) -> dict[str, Any]:
    return {
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "business_name": contact.business_name,
        "email": contact.email,
        "phone": contact.phone,
        "contact_type": contact.contact_type,
        "notes": contact.notes,
    }


def recipe_row(recipe: Recipe) -> dict[str, Any]:
    return {
        "name": recipe.name,
        "category": recipe.category,
        "servings": recipe.servings,
        "total_cost": recipe.total_cost,
        "description": recipe.description,
    }


def ingredient_row(ingredient: Ingredient) -> dict[str, Any]:
    return {
        "name": ingredient.name,
        "supplier": ingredient.supplier,
        "category": ingredient.category,
        "unit": ingredient.unit,
        "pack_size": ingredient.pack_size,
        "pack_cost": ingredient.pack_cost,
    }


def expense_row(expense: Expense) -> dict[str, Any]:
    return {
        "date": expense.expense_date,
        "description": expense.description,
        "category": expense.category,
        "amount": expense.amount,
        "supplier": expense.supplier,
        "payment_source": expense.payment_source,
        "vat": expense.vat,
        "total_inc_tax": expense.total_inc_tax,
        "tax_deductible": expense.tax_deductible,
        "is_recurring": expense.is_recurring,
    }


def quote_row(quote: Quote) -> dict[str, Any]:
    contact = quote.contact
    return {
        "quote_number": quote.quote_number,
        "contact_name": contact.display_name if contact is not None else None,
        "event_type": quote.event_type,
        "event_date": quote.event_date,
        "status": quote.status,
        "total_amount": quote.total_amount,
        "expiry_date": quote.expiry_date,
        "theme": quote.theme,
        "notes": quote.notes,
    }


def item_row(item: OrderItem, order_number: str) -> dict[str, Any]:
    return {
        "order_number": order_number,
        "name": item.name,
        "description": item.description,
        "quantity": item.quantity,
        "price": item.price,
    }


def order_row(order: Order) -> dict[str, Any]:
    contact = order.contact
    return {
        "order_number": order.order_number,
        "contact_name": contact.display_name if contact is not None else None,
        "contact_email": contact.email if contact is not None else None,
        "event_type": order.event_type,
        "event_date": order.event_date,
        "status": order.status,
        "delivery_type": order.delivery_type,
        "delivery_address": order.delivery_address,
        "delivery_fee": order.delivery_fee,
        "total_amount": order.total_amount,
        "deposit_amount": order.deposit_amount,
        "deposit_paid": order.deposit_paid,
        "theme": order.theme,
        "notes": order.notes,
        "created_at": order.created_at.date() if order.created_at else None,
        "items": [item_row(i, order.order_number) for i in order.items],
    }


async def fetch_records(db: AsyncSession, entity: str, owner_id: uuid.UUID) -> list[dict[str, Any]]:
    """All rows of `entity` owned by `owner_id`; raises KeyError for unknown entities."""
    if entity == "contacts":
        result = await db.execute(
            select(Contact).where(Contact.owner_id == owner_id).order_by(Contact.last_name, Contact.first_name)
        )
        return [contact_row(c) for c in result.scalars().all()]

    if entity == "recipes":
        result = await db.execute(
            select(Recipe).where(Recipe.owner_id == owner_id).order_by(Recipe.name)
        )
        return [recipe_row(r) for r in result.scalars().all()]

    if entity == "ingredients":
        result = await db.execute(
            select(Ingredient).where(Ingredient.owner_id == owner_id).order_by(Ingredient.name)
        )
        return [ingredient_row(i) for i in result.scalars().all()]

    if entity == "expenses":
        result = await db.execute(
            select(Expense).where(Expense.owner_id == owner_id).order_by(Expense.expense_date)
        )
        return [expense_row(e) for e in result.scalars().all()]

    if entity == "quotes":
        result = await db.execute(
            select(Quote)
            .where(Quote.owner_id == owner_id)
            .options(selectinload(Quote.contact))
            .order_by(Quote.quote_number)
        )
        return [quote_row(q) for q in result.scalars().all()]

    if entity == "orders":
        result = await db.execute(
            select(Order)
            .where(Order.owner_id == owner_id)
            .options(selectinload(Order.contact), selectinload(Order.items))
            .order_by(Order.created_at)
        )
        return [order_row(o) for o in result.scalars().all()]

    if entity == "order_items":
        result = await db.execute(
            select(OrderItem, Order.order_number)
            .join(Order, OrderItem.order_id == Order.id)
            .where(Order.owner_id == owner_id)
            .order_by(Order.order_number, OrderItem.created_at)
        )
        return [item_row(item, number) for item, number in result.all()]

    raise KeyError(entity)


async def gather_backup(db: AsyncSession, owner_id: uuid.UUID) -> dict[str, list[dict[str, Any]]]:
    sections = {name: await fetch_records(db, name, owner_id) for name in BACKUP_SECTIONS}
    logger.info(
        "Backup gathered for %s: %s", owner_id, {k: len(v) for k, v in sections.items()},
    )
    return sections
