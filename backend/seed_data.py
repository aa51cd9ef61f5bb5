"""Seed a development database with staff accounts, tables, a small menu and its stock.

Usage:
    cd backend
    python seed_data.py
"""

import logging
from decimal import Decimal

from restopos import models  # noqa: F401
from restopos.core.rbac import UserRole
from restopos.core.security import get_password_hash
from restopos.db.base import Base
from restopos.db.session import SessionLocal, engine
from restopos.models.customer import Customer
from restopos.models.inventory import Ingredient, MenuIngredient, Supplier
from restopos.models.restaurant import Category, DiningTable, MenuItem
from restopos.models.user import User

logger = logging.getLogger("seed")

STAFF = [
    ("admin@restopos.local", "Admin", UserRole.ADMIN),
    ("manager@restopos.local", "Floor Manager", UserRole.MANAGER),
    ("cashier@restopos.local", "Cashier", UserRole.CASHIER),
    ("kitchen@restopos.local", "Kitchen", UserRole.KITCHEN),
    ("waiter@restopos.local", "Waiter", UserRole.WAITER),
]

MENU = {
    "Noodles": [("Pho Bo", 45000), ("Bun Cha", 50000), ("Mi Quang", 48000)],
    "Rice": [("Com Tam", 55000), ("Com Ga", 52000)],
    "Drinks": [("Iced Coffee", 25000), ("Lime Juice", 20000), ("Jasmine Tea", 15000)],
}

# name, unit, opening stock, minimum, cost per unit
INGREDIENTS = [
    ("Beef", "kg", "5", "1", 250000),
    ("Pork", "kg", "4", "1", 140000),
    ("Rice noodles", "kg", "10", "2", 30000),
    ("Broken rice", "kg", "10", "2", 22000),
    ("Coffee beans", "kg", "2", "0.5", 300000),
    ("Lime", "pcs", "60", "20", 1500),
]

# menu item -> (ingredient, quantity, unit)
RECIPES = {
    "Pho Bo": [("Beef", "150", "g"), ("Rice noodles", "200", "g")],
    "Bun Cha": [("Pork", "180", "g"), ("Rice noodles", "150", "g")],
    "Com Tam": [("Pork", "150", "g"), ("Broken rice", "250", "g")],
    "Iced Coffee": [("Coffee beans", "20", "g")],
    "Lime Juice": [("Lime", "2", "pcs")],
}


def seed():
    """Insert seed rows into an empty database."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        _seed_all(db)
        db.commit()
        logger.info("Seed data committed")
    except Exception:
        db.rollback()
        logger.exception("Error seeding data")
        raise
    finally:
        db.close()


def _seed_all(db):
    if db.query(User).count():
        logger.info("Users already present, skipping seed")
        return

    for email, name, role in STAFF:
        db.add(User(email=email, name=name, role=role, password_hash=get_password_hash("changeme123")))

    for number in range(1, 11):
        db.add(DiningTable(
            name=f"Table {number}",
            capacity=2 if number <= 4 else 4,
            location="Terrace" if number > 8 else "Main Floor",
            sort_order=number,
        ))

    for position, (category_name, items) in enumerate(MENU.items(), 1):
        category = Category(name=category_name, sort_order=position)
        db.add(category)
        db.flush()
        for name, price in items:
            db.add(MenuItem(name=name, price=price, category_id=category.id))
    db.flush()

    supplier = Supplier(name="Ben Thanh Wholesale", phone="0283829999")
    db.add(supplier)
    db.flush()
    ingredients = {}
    for name, unit, stock, minimum, cost in INGREDIENTS:
        ingredients[name] = Ingredient(
            name=name, unit=unit, current_stock=Decimal(stock), min_stock=Decimal(minimum),
            cost_price=cost, supplier_id=supplier.id,
        )
        db.add(ingredients[name])
    db.flush()

    for item_name, lines in RECIPES.items():
        item = db.query(MenuItem).filter(MenuItem.name == item_name).one()
        for ingredient_name, quantity, unit in lines:
            db.add(MenuIngredient(
                menu_item_id=item.id,
                ingredient_id=ingredients[ingredient_name].id,
                quantity=Decimal(quantity),
                unit=unit,
            ))

    db.add(Customer(name="Walk-in Regular", phone="0900000000"))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    seed()
