"""SQLite schema management (code-first approach)."""

import logging


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "homes",
    "tasks",
    "task_generation_retries",
]

# Columns stored as JSON text and decoded on read
JSON_COLUMNS: dict[str, set[str]] = {
    "homes": {"details"},
    "tasks": {"steps"},
}

_TABLES = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL DEFAULT '',
            email TEXT,
            last_tasks_generated_at TEXT,
            created_at TEXT NOT NULL
        )
    """,
    "homes": """
        CREATE TABLE IF NOT EXISTS homes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            name TEXT,
            year_built INTEGER NOT NULL,
            square_footage INTEGER NOT NULL,
            location TEXT NOT NULL DEFAULT '',
            home_type TEXT,
            details TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            home_id INTEGER NOT NULL REFERENCES homes(id),
            task_name TEXT NOT NULL,
            description TEXT NOT NULL,
            frequency TEXT,
            due_date TEXT,
            why TEXT,
            estimated_time INTEGER,
            estimated_cost REAL,
            category TEXT NOT NULL DEFAULT 'maintenance',
            priority TEXT NOT NULL DEFAULT 'medium',
            steps TEXT NOT NULL DEFAULT '[]',
            completed INTEGER NOT NULL DEFAULT 0,
            ai_generated INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """,
    "task_generation_retries": """
        CREATE TABLE IF NOT EXISTS task_generation_retries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            home_id INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            attempts INTEGER NOT NULL DEFAULT 0,
            last_attempt TEXT,
            error TEXT,
            created_at TEXT NOT NULL,
            completed_at TEXT,
            claimed_at TEXT
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_homes_user ON homes (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_home_name ON tasks (home_id, task_name)",
    "CREATE INDEX IF NOT EXISTS idx_retries_home ON task_generation_retries (home_id)",
    "CREATE INDEX IF NOT EXISTS idx_retries_queue ON task_generation_retries (status, attempts, created_at)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes (idempotent)."""
    from homecare.core import db_client

    conn = await db_client.get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(_TABLES[collection])

    for statement in _INDEXES:
        await conn.execute(statement)

    await conn.commit()
    logger.info("SQLite schema initialized", extra={"collections": COLLECTIONS})
