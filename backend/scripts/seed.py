"""Seed script — loads one owner's demo contacts, recipes, stock, quotes and orders.

The demo data goes through the same import pipeline as an upload, so a
fresh database doubles as a smoke test of the importers.
Idempotent for orders (duplicate order numbers are rejected per row).
Run: python scripts/seed.py [owner-uuid]
"""
import asyncio
import sys
import os
import uuid

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.security import create_access_token
from app.imports.fields import get_target
from app.imports.session import ImportSession
from app.services.import_store import build_store

DEMO_OWNER = uuid.UUID("00000000-0000-4000-8000-000000000001")


# ─── Demo files ───────────────────────────────────────────────────────────────

CONTACTS_CSV = """First Name,Last Name,Business Name,Email,Phone,Type
Sarah,Jones,,sarah@example.com,07700 900123,Customer
Tom,Baker,,tom@example.com,07700 900456,Customer
,,Millers Flour Co,orders@millers.example.com,01632 960001,Supplier
"""

RECIPES_CSV = """Bake Diary recipe export
Recipies,Category,Servings,Custom Price
Victoria Sponge,Cakes,12,$18.50
Lemon Drizzle,Loaf Cakes,10,$14.10
Chocolate Brownies,Traybakes,16 ($0.29),$9.75
"""

INGREDIENTS_CSV = """Ingredient,Supplier,Category,Unit,Purchase Size,Cost Price
Plain Flour,Millers,Dry Goods,g,1500,$1.20
Caster Sugar,Millers,Dry Goods,g,1000,$1.35
Unsalted Butter,Dairy Direct,Dairy,g,250,$2.10
Free Range Eggs,Dairy Direct,Dairy,each,12,$3.40
"""

ORDERS_CSV = """Order Number,Contact,Contact Email,Event Type,Event Date,Status,Delivery Amount,Order Total,Deposit,Theme,Notes
BD-1001,Sarah Jones,sarah@example.com,Birthday,2026-11-14,Booked,$5.00,$65.00,$20.00,Unicorns,"Gluten free, please"
BD-1002,Tom Baker,tom@example.com,Wedding,2026-12-05,,$0,$420.00,$100.00,Rustic,"Three tiers
naked finish"
"""

QUOTES_CSV = """Quote Number,Customer,Event Type,Event Date,Quote Total,Expiry Date,Status
Q-2001,Sarah Jones,Christening,2027-01-23,$95.00,2026-12-01,Sent
Q-2002,Tom Baker,Anniversary,2027-02-14,$60.00,,
"""

EXPENSES_CSV = """Date,Description,Category,Amount (Incl VAT),Supplier,Payment,Tax Deductible
03 Nov 2026,Flour and sugar,Ingredients,£24.60,Millers,Card,Yes
05 Nov 2026,Cake boxes,Packaging,£18.00,BoxCo,Card,Yes
"""

ORDER_ITEMS_CSV = """Order Number,Item,Details,Servings,Sell Price
BD-1001,Victoria Sponge,8 inch round,12,$45.00
BD-1001,Cupcakes,Unicorn toppers,12,$15.00
BD-1002,Wedding Cake,3 tier,120,$420.00
"""

DEMO_FILES = (
    ("contacts", CONTACTS_CSV),
    ("recipes", RECIPES_CSV),
    ("ingredients", INGREDIENTS_CSV),
    ("expenses", EXPENSES_CSV),
    ("quotes", QUOTES_CSV),
    ("orders", ORDERS_CSV),
    ("order_items", ORDER_ITEMS_CSV),
)


async def seed(owner_id: uuid.UUID = DEMO_OWNER) -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        for target_name, text in DEMO_FILES:
            print(f"\n── {target_name} ──")
            session = ImportSession(get_target(target_name), text)
            outcome = await session.commit(build_store(db, target_name, owner_id))
            print(f"  {outcome.summary}")
            for error in outcome.errors:
                print(f"  [skip] row {error.row_number}: {error.message}")

    await engine.dispose()
    print("\n✓ Seed complete.")
    print(f"  Owner:  {owner_id}")
    print(f"  Token:  {create_access_token(str(owner_id))}")


if __name__ == "__main__":
    asyncio.run(seed(uuid.UUID(sys.argv[1]) if len(sys.argv) > 1 else DEMO_OWNER))
