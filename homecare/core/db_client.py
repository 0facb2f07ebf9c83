"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from homecare.core.config import settings
from homecare.core.schema import JSON_COLUMNS


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a storage operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record id does not exist in a collection."""


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _encode_value(value: Any) -> Any:
    """Convert a Python value to something SQLite can store."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list | tuple):
        return json.dumps(value)
    return value


def _decode_record(collection: str, record: dict[str, Any]) -> dict[str, Any]:
    """Decode JSON columns and convert integer ids to strings for Pydantic compatibility."""
    decoded = record.copy()
    json_columns = JSON_COLUMNS.get(collection, set())

    for key, value in decoded.items():
        if key in json_columns and isinstance(value, str):
            decoded[key] = json.loads(value)
        elif isinstance(value, int) and (key == "id" or key.endswith("_id")):
            decoded[key] = str(value)
    return decoded


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards in a literal value."""
    return value.replace("%", "\\%").replace("_", "\\_")


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a single comparison expression into a SQL condition and its parameters.

    Supports quoted values (``status = "pending"``) and unquoted ``null``
    (``completed_at = null`` / ``completed_at != null``).
    """
    null_match = re.match(r"^(\w+)\s*(=|!=)\s*null$", comparison)
    if null_match:
        field = null_match.group(1)
        keyword = "IS NULL" if null_match.group(2) == "=" else "IS NOT NULL"
        return f"{field} {keyword}", []

    match = re.match(
        r"""^(\w+)\s*(>=|<=|!=|=|>|<|~)\s*(['"])(.*)\3$""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)
    if match.group(3) == '"':
        # Values embedded with sanitize_param() are JSON-escaped
        raw_value = json.loads(f'"{raw_value}"')

    sql_op = _get_sql_operator(op)
    if sql_op == "LIKE":
        return f"{field} LIKE ? ESCAPE '\\'", [f"%{_escape_like(raw_value)}%"]

    # Bound as text; numeric column affinity makes comparisons like attempts < "5" numeric
    return f"{field} {sql_op} ?", [raw_value]


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = _split_outside_quotes(inner, "||")
    or_conditions = []
    or_params: list[str | int | float | None] = []

    for part in or_parts:
        cond, values = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.extend(values)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_outside_quotes(expression: str, separator: str) -> list[str]:
    """Split on ``separator`` outside quoted values and parenthesized groups.

    Backslash escapes inside quotes (as produced by sanitize_param) are honoured,
    so a value such as ``"Clean && Seal (Deck)"`` stays in one piece.
    """
    parts = []
    current: list[str] = []
    paren_depth = 0
    quote: str | None = None
    escaped = False
    i = 0

    while i < len(expression):
        char = expression[i]
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1
        elif paren_depth == 0 and expression.startswith(separator, i):
            parts.append("".join(current).strip())
            current = []
            i += len(separator)
            continue

        current.append(char)
        i += 1

    if "".join(current).strip():
        parts.append("".join(current).strip())

    return parts


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups and quoted values."""
    return _split_outside_quotes(filter_query, "&&")


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[str | int | float | None] = []

    for raw_part in _split_and_conditions(filter_query):
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
        else:
            cond, cond_params = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(cond_params)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``+field,-other`` sort syntax into an ORDER BY clause.

    Unparseable input falls back to ``id ASC``.
    """
    clauses = []
    for raw_part in sort.split(","):
        part = raw_part.strip()
        match = re.match(r"^([+-]?)([A-Za-z_][A-Za-z0-9_]*)$", part)
        if not match:
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        direction = "DESC" if match.group(1) == "-" else "ASC"
        clauses.append(f"{match.group(2)} {direction}")

    return ", ".join(clauses) if clauses else "id ASC"


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)

    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": str(path)})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    schema = __import__("homecare.core.schema", fromlist=["init_db"])
    await schema.init_db(db_path=db_path)


def _build_insert(collection: str, data: dict[str, Any]) -> tuple[str, list[Any]]:
    columns = list(data.keys())
    columns_str = ", ".join(columns)
    placeholders_str = ", ".join("?" for _ in columns)
    values = [_encode_value(data[key]) for key in columns]
    query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
    return query, values


def _wrap_error(operation: str, collection: str, e: Exception) -> DatabaseError:
    """Convert a driver error into a DatabaseError with a readable message."""
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        logger.error("Table not found", extra={"collection": collection})
        return DatabaseError(f"Table '{collection}' does not exist. Call init_db() first.")
    logger.error(f"{operation}_failed", extra={"collection": collection, "error": str(e)})
    return DatabaseError(f"Failed to {operation.replace('_', ' ')} in {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        query, values = _build_insert(collection, data)
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except (aiosqlite.Error, ValueError) as e:
        raise _wrap_error("create_record", collection, e) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def create_records(*, collection: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Insert several records in one transaction; either all are stored or none are."""
    if not records:
        return []

    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        record_ids = []
        try:
            for data in records:
                query, values = _build_insert(collection, data)
                cursor = await conn.execute(query, values)
                record_ids.append(cursor.lastrowid)
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise
    except (aiosqlite.Error, ValueError) as e:
        raise _wrap_error("create_records", collection, e) from e

    logger.info("Created records", extra={"collection": collection, "count": len(record_ids)})
    return [await get_record(collection=collection, record_id=str(record_id)) for record_id in record_ids]


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except aiosqlite.Error as e:
        raise _wrap_error("get_record", collection, e) from e

    if row is None:
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _decode_record(collection, dict(zip(columns, row, strict=True)))


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_encode_value(val) for val in data.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except (aiosqlite.Error, ValueError) as e:
        raise _wrap_error("update_record", collection, e) from e

    if cursor.rowcount == 0:
        raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def update_record_if(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    expected: dict[str, Any],
) -> bool:
    """Atomically update a record only while its current values match ``expected``.

    Returns:
        True if this call changed the record, False if another writer got there first
    """
    if not data or not expected:
        msg = "Conditional update needs both a payload and expected values"
        raise ValueError(msg)

    _validate_collection_name(collection)
    try:
        conn = await get_connection()
        set_clause = ", ".join(f"{key} = ?" for key in data)
        where_clause = " AND ".join(f"{key} = ?" for key in expected)
        values = [_encode_value(val) for val in data.values()]
        values.append(int(record_id))
        values.extend(_encode_value(val) for val in expected.values())

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ? AND {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except (aiosqlite.Error, ValueError) as e:
        raise _wrap_error("update_record", collection, e) from e

    return cursor.rowcount == 1


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = parse_sort(sort) if sort else "id ASC"
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        columns = [description[0] for description in cursor.description]
    except (aiosqlite.Error, ValueError) as e:
        raise _wrap_error("list_records", collection, e) from e

    records = [_decode_record(collection, dict(zip(columns, row, strict=True))) for row in rows]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, sort=sort, per_page=1)
    return records[0] if records else None
