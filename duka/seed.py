"""Seed a development database.

Creates the tables, one user per role, a small catalogue and opening stock
at both shops, then prints a bearer token for each seeded user.

    python -m duka.seed
"""

import logging

from sqlalchemy.orm import Session

import duka.models  # noqa: F401
from duka.core.jwt import create_access_token
from duka.database import Base, SessionLocal, engine
from duka.models.categories import ProductCategory
from duka.models.inventory import LOCATION_KAMULU, LOCATION_UTAWALA
from duka.models.products import Product
from duka.models.users import User, ROLE_ACCOUNTANT, ROLE_ADMIN, ROLE_CLERK
from duka.services import ledger

logger = logging.getLogger("duka")

USERS = [
    ("admin@duka.co.ke", "Duka Admin", ROLE_ADMIN),
    ("clerk@duka.co.ke", "Counter Clerk", ROLE_CLERK),
    ("accounts@duka.co.ke", "Accounts Desk", ROLE_ACCOUNTANT),
]

CATALOGUE = [
    # name, category, min stock, utawala, kamulu
    ("Cement 50kg", "Building", 20, 120, 80),
    ("Roofing Nails 1kg", "Hardware", 15, 60, 40),
    ("Emulsion Paint 4L", "Paint", 10, 25, 0),
    ("PVC Pipe 3m", "Plumbing", 12, 30, 18),
]


def seed(db: Session):
    users = {}
    for email, full_name, role in USERS:
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(email=email, full_name=full_name, role=role)
            db.add(user)
            db.flush()
        users[role] = user

    admin = users[ROLE_ADMIN]

    for name, category_name, min_stock, utawala, kamulu in CATALOGUE:
        if db.query(Product).filter(Product.name == name).first():
            continue

        category = db.query(ProductCategory).filter(ProductCategory.name == category_name).first()
        if category is None:
            category = ProductCategory(name=category_name)
            db.add(category)
            db.flush()

        product = Product(name=name, category_id=category.id, min_stock_level=min_stock)
        db.add(product)
        db.flush()

        for location, quantity in ((LOCATION_UTAWALA, utawala), (LOCATION_KAMULU, kamulu)):
            if quantity:
                ledger.adjust_stock(db, product.id, location, quantity, admin.id, reference="opening stock")

    db.commit()
    return users


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        users = seed(db)
        for role, user in users.items():
            token = create_access_token(user.id, role)
            print(f"{role:<11} {user.email:<22} {token}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
