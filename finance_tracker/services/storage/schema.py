"""
Database schema and first-start seeding.

Every statement is safe to re-run. Foreign keys are declared for
readers of the schema but the store removes dependent rows itself,
so nothing relies on SQLite enforcing them.
"""

from finance_tracker.services.storage.interface import DatabaseInterface


SCHEMA_VERSION = 1

CREATE_TABLES_SQL = [
    """
    CREATE TABLE IF NOT EXISTS schema_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        icon TEXT NOT NULL DEFAULT '',
        color TEXT NOT NULL DEFAULT '',
        budget_limit REAL NOT NULL DEFAULT 0,
        category_type TEXT DEFAULT 'expense'     -- 'expense' or 'income'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        category_id INTEGER NOT NULL,
        amount REAL NOT NULL,
        date TEXT NOT NULL,                      -- ISO-8601
        note TEXT,
        image_uri TEXT,
        type TEXT DEFAULT 'expense',             -- NULL is read as 'expense'
        created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
        FOREIGN KEY (category_id) REFERENCES categories(id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_date
    ON transactions(date)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_category
    ON transactions(category_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS split_bills (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        name TEXT NOT NULL,
        total_amount REAL NOT NULL,
        image_uri TEXT,
        created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS split_bill_members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        split_bill_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        share_amount REAL NOT NULL,
        is_me INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (split_bill_id) REFERENCES split_bills(id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_split_bill_members_bill
    ON split_bill_members(split_bill_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_events (
        event_id TEXT PRIMARY KEY,
        timestamp TEXT NOT NULL,
        event_type TEXT NOT NULL,
        severity TEXT NOT NULL,
        entity_type TEXT,
        entity_id INTEGER,
        correlation_id TEXT,
        description TEXT NOT NULL,
        details_json TEXT,
        error_message TEXT,
        is_user_action INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_audit_events_correlation
    ON audit_events(correlation_id)
    """,
]

# (name, icon, color, category_type)
DEFAULT_CATEGORIES = [
    ("Food", "emoji:🍔", "#F97316", "expense"),
    ("Transport", "emoji:🚗", "#3B82F6", "expense"),
    ("Shopping", "emoji:🛍️", "#EC4899", "expense"),
    ("Bills", "emoji:🧾", "#EAB308", "expense"),
    ("Entertainment", "emoji:🎬", "#8B5CF6", "expense"),
    ("Health", "emoji:💊", "#10B981", "expense"),
    ("Salary", "emoji:💼", "#22C55E", "income"),
    ("Bonus", "emoji:🎁", "#14B8A6", "income"),
]


async def init_schema(db: DatabaseInterface) -> None:
    """Create all tables and record the schema version."""
    async with db.transaction() as tx:
        for stmt in CREATE_TABLES_SQL:
            await tx.execute(stmt)

        existing = await tx.fetch_one(
            "SELECT value FROM schema_meta WHERE key = 'schema_version'"
        )
        if existing is None:
            await tx.execute(
                "INSERT INTO schema_meta (key, value) VALUES (:key, :value)",
                {"key": "schema_version", "value": str(SCHEMA_VERSION)},
            )


async def seed_default_categories(db: DatabaseInterface) -> int:
    """
    Insert the default categories that are missing (by name).

    Returns the number of categories created.
    """
    rows = await db.fetch_all("SELECT name FROM categories")
    existing_names = {row["name"].lower() for row in rows}

    to_add = [
        {"name": name, "icon": icon, "color": color, "category_type": kind}
        for (name, icon, color, kind) in DEFAULT_CATEGORIES
        if name.lower() not in existing_names
    ]

    if to_add:
        async with db.transaction() as tx:
            for params in to_add:
                await tx.execute(
                    "INSERT INTO categories (name, icon, color, budget_limit, category_type) "
                    "VALUES (:name, :icon, :color, 0, :category_type)",
                    params,
                )

    return len(to_add)
