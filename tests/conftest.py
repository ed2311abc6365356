"""
Shared fixtures.

Every test that touches the database gets its own SQLite file under
tmp_path, with the schema created and nothing seeded.
"""

import pytest
import pytest_asyncio

from finance_tracker.audit import AuditLogger
from finance_tracker.models import CategoryCreate, TransactionType
from finance_tracker.services.storage import SQLAuditStorage, SQLiteDatabase, init_schema
from finance_tracker.store import FinanceStore


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'finance_test.db'}"


@pytest_asyncio.fixture
async def db(db_url):
    database = SQLiteDatabase(url=db_url, echo=False)
    await database.connect()
    await init_schema(database)
    yield database
    await database.close()


@pytest_asyncio.fixture
async def audit_logger(db):
    return AuditLogger(SQLAuditStorage(db))


@pytest_asyncio.fixture
async def store(db, audit_logger):
    return FinanceStore(db, audit_logger, recent_limit=20)


@pytest_asyncio.fixture
async def food_store(store):
    """Store with one expense category (Food) and one income category (Salary)."""
    await store.add_category(CategoryCreate(name="Food", icon="emoji:🍔", color="#F97316"))
    await store.add_category(CategoryCreate(
        name="Salary",
        icon="emoji:💼",
        color="#22C55E",
        category_type=TransactionType.INCOME,
    ))
    return store
