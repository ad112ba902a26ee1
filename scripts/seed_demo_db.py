#!/usr/bin/env python3
"""
Seed a local SQLite database with demo fixtures through the fixture engine.
Usage (from the repository root):
    python scripts/seed_demo_db.py
Creates: scripts/demo.db
"""
import os
import random
import sqlite3
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend")))

from core.db_connector import reflect_schema  # noqa: E402
from core.fixture import SqliteDbFixture  # noqa: E402
from models.operation import DbOperation, OperationResult  # noqa: E402

DB_PATH = Path(__file__).parent / "demo.db"

DDL = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        name        TEXT    NOT NULL,
        email       TEXT    UNIQUE NOT NULL,
        country     TEXT,
        created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """
    CREATE TABLE IF NOT EXISTS products (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        sku         TEXT    UNIQUE NOT NULL,
        name        TEXT    NOT NULL,
        category    TEXT,
        price       REAL    NOT NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS orders (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id     INTEGER REFERENCES customers(id),
        order_date      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        status          TEXT CHECK(status IN ('PENDING','PROCESSING','SHIPPED','CANCELLED','DELIVERED'))
    )""",
    """
    CREATE TABLE IF NOT EXISTS order_items (
        order_id    INTEGER NOT NULL REFERENCES orders(id),
        product_id  INTEGER NOT NULL REFERENCES products(id),
        quantity    INTEGER NOT NULL,
        unit_price  REAL    NOT NULL,
        PRIMARY KEY (order_id, product_id)
    )""",
]

STATUSES = ['PENDING', 'PROCESSING', 'SHIPPED', 'CANCELLED', 'DELIVERED']
CATEGORIES = ['Electronics', 'Clothing', 'Books', 'Home & Garden', 'Sports']


def build_rows(customers: int = 25, products: int = 10, orders: int = 60) -> dict[str, list[dict]]:
    now = datetime.now()
    data: dict[str, list[dict]] = {
        "customers": [
            {"id": i, "name": f"Customer {i}", "email": f"user{i}@example.com",
             "country": random.choice(["US", "UK", "DE", "IN", "JP"]),
             "created_at": (now - timedelta(days=random.randint(10, 730))).isoformat(sep=" ")}
            for i in range(1, customers + 1)
        ],
        "products": [
            {"id": i, "sku": f"SKU-{i:04d}", "name": f"Product {i}",
             "category": random.choice(CATEGORIES), "price": round(random.uniform(5, 500), 2)}
            for i in range(1, products + 1)
        ],
        "orders": [],
        "order_items": [],
    }
    for order_id in range(1, orders + 1):
        data["orders"].append({
            "id": order_id,
            "customer_id": random.randint(1, customers),
            "order_date": (now - timedelta(days=random.randint(0, 365))).isoformat(sep=" "),
            "status": random.choice(STATUSES),
        })
        for product_id in random.sample(range(1, products + 1), k=random.randint(1, 4)):
            data["order_items"].append({
                "order_id": order_id,
                "product_id": product_id,
                "quantity": random.randint(1, 5),
                "unit_price": round(random.uniform(5, 500), 2),
            })
    return data


def seed(db_path: Path = DB_PATH) -> OperationResult:
    conn = sqlite3.connect(db_path)
    for stmt in DDL:
        conn.execute(stmt)
    conn.commit()
    conn.close()

    fixture = SqliteDbFixture(f"sqlite:///{db_path}")
    try:
        fixture.read_schema(reflect_schema(fixture.engine))
        fixture.read_data(build_rows())
        return fixture.perform_operation(DbOperation.CLEAN_INSERT_IDENTITY)
    finally:
        fixture.dispose()


if __name__ == "__main__":
    result = seed()
    print(f"Demo database seeded: {DB_PATH}")
    print(f"   {result.rows_affected} rows in {result.duration_seconds}s "
          f"(customers, products, orders, order_items)")
