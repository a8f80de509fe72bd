"""Destination field catalogue for every import target.

A FieldSpec describes one attribute a target record expects. Labels are
what we show in the mapping UI and what we write as CSV headers on
export, so a file we exported maps back onto itself exactly.
"""
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Mapping

from app.imports.tokenizer import HeaderHint


class FieldKind(str, enum.Enum):
    currency = "currency"
    integer = "integer"
    date = "date"
    text = "text"
    boolean = "boolean"


_NO_DEFAULT = object()


@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str
    required: bool = False
    kind: FieldKind = FieldKind.text
    default: Any = _NO_DEFAULT
    nullable: bool = False
    aliases: tuple[str, ...] = ()
    date_formats: tuple[str, ...] = ()
    fallback_to_today: bool = False

    @property
    def default_value(self) -> Any:
        """Value used when the column is unmapped or the cell is unparseable."""
        if self.default is not _NO_DEFAULT:
            return self.default
        if self.kind is FieldKind.currency:
            return Decimal("0")
        if self.kind is FieldKind.integer:
            return 0
        if self.kind is FieldKind.boolean:
            return False
        if self.kind is FieldKind.date:
            return None
        return None if self.nullable else ""


# ─── Import targets ───

@dataclass(frozen=True)
class ImportTarget:
    """A record type the pipeline can import into."""

    name: str
    title: str
    fields: tuple[FieldSpec, ...]
    header_hint: HeaderHint | None = None
    # Post-coercion hook for target-specific value rewrites (e.g. status names).
    finalize: Callable[[dict[str, Any]], dict[str, Any]] | None = None

    @property
    def required_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.required)

    def field(self, key: str) -> FieldSpec:
        for spec in self.fields:
            if spec.key == key:
                return spec
        raise KeyError(key)

    @property
    def labels(self) -> list[str]:
        return [f.label for f in self.fields]


# Bake Diary exports use their own status vocabulary.
ORDER_STATUS_MAP: Mapping[str, str] = {
    "": "Quote",
    "booked": "Confirmed",
    "confirmed": "Confirmed",
    "paid": "Paid",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
    "canceled": "Cancelled",
    "quote": "Quote",
    "draft": "Quote",
}


def _finalize_order(values: dict[str, Any]) -> dict[str, Any]:
    status = (values.get("status") or "").strip()
    values["status"] = ORDER_STATUS_MAP.get(status.lower(), status)
    if not values.get("delivery_type"):
        values["delivery_type"] = "Delivery" if values.get("delivery_fee") else "Pickup"
    return values


def _finalize_contact(values: dict[str, Any]) -> dict[str, Any]:
    values["contact_type"] = values.get("contact_type") or "Customer"
    return values


ORDER_FIELDS = (
    FieldSpec("order_number", "Order Number", required=True, aliases=("order no", "order #")),
    FieldSpec("contact_name", "Contact", nullable=True, aliases=("customer",)),
    FieldSpec("contact_email", "Contact Email", nullable=True),
    FieldSpec("event_type", "Event Type", default="Other"),
    FieldSpec("event_date", "Event Date", kind=FieldKind.date),
    FieldSpec("status", "Status"),
    FieldSpec("delivery_type", "Delivery"),
    FieldSpec("delivery_address", "Delivery Address", nullable=True),
    FieldSpec("delivery_fee", "Delivery Amount", kind=FieldKind.currency, aliases=("delivery fee", "setup fee")),
    FieldSpec("total_amount", "Order Total", kind=FieldKind.currency, aliases=("total amount", "total")),
    FieldSpec("deposit_amount", "Deposit", kind=FieldKind.currency),
    FieldSpec("deposit_paid", "Deposit Paid", kind=FieldKind.boolean),
    FieldSpec("theme", "Theme", nullable=True),
    FieldSpec("notes", "Notes", nullable=True),
    FieldSpec("created_at", "Order Date", kind=FieldKind.date, fallback_to_today=True, aliases=("created",)),
)

ORDER_ITEM_FIELDS = (
    FieldSpec("order_number", "Order Number", required=True, aliases=("order no", "order id")),
    FieldSpec("name", "Item", required=True, aliases=("item name", "product")),
    FieldSpec("description", "Details", nullable=True, aliases=("description",)),
    FieldSpec("quantity", "Servings", kind=FieldKind.integer, default=1, aliases=("quantity", "qty")),
    FieldSpec("price", "Sell Price", kind=FieldKind.currency, aliases=("sell price (excl vat)", "price")),
)

RECIPE_FIELDS = (
    FieldSpec("name", "Name", required=True, aliases=("recipies", "recipes", "recipe name")),
    FieldSpec("category", "Category"),
    FieldSpec("servings", "Servings", kind=FieldKind.integer, default=1, aliases=("serving size",)),
    FieldSpec("total_cost", "Total Cost", kind=FieldKind.currency, aliases=("custom price", "price")),
    FieldSpec("description", "Description"),
)

CONTACT_FIELDS = (
    FieldSpec("first_name", "First Name"),
    FieldSpec("last_name", "Last Name", aliases=("surname",)),
    FieldSpec("business_name", "Business Name", nullable=True, aliases=("supplier name", "company")),
    FieldSpec("email", "Email", nullable=True, aliases=("e-mail",)),
    FieldSpec("phone", "Phone", nullable=True, aliases=("number", "mobile")),
    FieldSpec("contact_type", "Type", nullable=True),
    FieldSpec("notes", "Notes", nullable=True),
)

INGREDIENT_FIELDS = (
    FieldSpec("name", "Ingredient", required=True),
    FieldSpec("supplier", "Supplier", nullable=True),
    FieldSpec("category", "Category", default="General"),
    FieldSpec("unit", "Unit"),
    FieldSpec("pack_size", "Purchase Size", kind=FieldKind.currency, aliases=("pack size",)),
    FieldSpec("pack_cost", "Cost Price", kind=FieldKind.currency, aliases=("pack cost",)),
)


# Quotes share the order vocabulary but never carry deposits or line items.
QUOTE_FIELDS = (
    FieldSpec("quote_number", "Quote Number", required=True, aliases=("quote no", "quote #", "quote id")),
    FieldSpec("contact_name", "Contact", nullable=True, aliases=("customer",)),
    FieldSpec("event_type", "Event Type", default="Other"),
    FieldSpec("event_date", "Event Date", kind=FieldKind.date),
    FieldSpec("status", "Status", default="Draft"),
    FieldSpec("total_amount", "Quote Total", kind=FieldKind.currency, aliases=("total amount", "total")),
    FieldSpec("expiry_date", "Expiry Date", kind=FieldKind.date, aliases=("expires", "valid until")),
    FieldSpec("theme", "Theme", nullable=True, aliases=("description",)),
    FieldSpec("notes", "Notes", nullable=True),
)

# Bake Diary writes the gross figure as "Amount (Incl VAT)".
EXPENSE_FIELDS = (
    FieldSpec("date", "Date", kind=FieldKind.date, fallback_to_today=True, aliases=("expense date",)),
    FieldSpec("description", "Description", nullable=True),
    FieldSpec("category", "Category", default="General"),
    FieldSpec("amount", "Amount", required=True, kind=FieldKind.currency, aliases=("amount (incl vat)",)),
    FieldSpec("supplier", "Supplier", nullable=True, aliases=("vendor",)),
    FieldSpec("payment_source", "Payment Source", nullable=True, aliases=("payment",)),
    FieldSpec("vat", "VAT", kind=FieldKind.currency),
    FieldSpec("total_inc_tax", "Total Inc Tax", kind=FieldKind.currency),
    FieldSpec("tax_deductible", "Tax Deductible", kind=FieldKind.boolean),
    FieldSpec("is_recurring", "Is Recurring", kind=FieldKind.boolean, aliases=("recurring",)),
)


TARGETS: dict[str, ImportTarget] = {
    "orders": ImportTarget(
        name="orders", title="Orders", fields=ORDER_FIELDS, finalize=_finalize_order,
    ),
    "order_items": ImportTarget(
        name="order_items", title="Order Items", fields=ORDER_ITEM_FIELDS,
    ),
    "recipes": ImportTarget(
        name="recipes",
        title="Recipes",
        fields=RECIPE_FIELDS,
        header_hint=(("category",), ("servings",), ("custom price", "custom", "total cost")),
    ),
    "contacts": ImportTarget(
        name="contacts", title="Contacts", fields=CONTACT_FIELDS, finalize=_finalize_contact,
    ),
    "ingredients": ImportTarget(
        name="ingredients", title="Ingredients", fields=INGREDIENT_FIELDS,
    ),
    "quotes": ImportTarget(
        name="quotes", title="Quotes", fields=QUOTE_FIELDS,
    ),
    "expenses": ImportTarget(
        name="expenses", title="Expenses", fields=EXPENSE_FIELDS,
    ),
}


def get_target(name: str) -> ImportTarget:
    """Look up an import target; raises KeyError for unknown names."""
    return TARGETS[name]
