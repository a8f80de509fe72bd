from app.models.contact import Contact
from app.models.order import Order, OrderItem
from app.models.quote import Quote
from app.models.recipe import Recipe
from app.models.ingredient import Ingredient
from app.models.expense import Expense
from app.models.audit import AuditLog

__all__ = [
    "Contact",
    "Order", "OrderItem",
    "Quote",
    "Recipe",
    "Ingredient",
    "Expense",
    "AuditLog",
]
