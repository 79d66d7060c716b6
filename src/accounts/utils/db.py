import sqlite3
from contextlib import asynccontextmanager

import aiosqlite

from accounts.errors import StorageUnavailable
from accounts.utils.logging import logger


@asynccontextmanager
async def get_new_db_connection(db_path: str):
    """Open a connection in autocommit mode; transactions are explicit."""
    try:
        conn = await aiosqlite.connect(db_path, isolation_level=None)
    except sqlite3.Error as e:
        logger.error(f"Unable to open database {db_path}: {e}")
        raise StorageUnavailable(str(e)) from e

    try:
        await conn.execute("PRAGMA foreign_keys = ON")
        yield conn
    finally:
        await conn.close()


async def execute_db_operation(
    conn: aiosqlite.Connection,
    query: str,
    params: tuple = (),
    fetch_one: bool = False,
    fetch_all: bool = False,
    get_last_row_id: bool = False,
):
    """Execute a single statement and return what was asked for."""
    try:
        cursor = await conn.execute(query, params)

        if fetch_one:
            return await cursor.fetchone()

        if fetch_all:
            return await cursor.fetchall()

        if get_last_row_id:
            return cursor.lastrowid

        return cursor.rowcount
    except sqlite3.OperationalError as e:
        logger.error(f"Database operation failed: {e}")
        raise StorageUnavailable(str(e)) from e


async def execute_multiple_db_operations(
    conn: aiosqlite.Connection, commands_and_params: list
):
    for query, params in commands_and_params:
        await execute_db_operation(conn, query, params)
