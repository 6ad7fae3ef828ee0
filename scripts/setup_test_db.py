#!/usr/bin/env python3
"""
Create (or drop) a PostgreSQL database for running the suite against.

The server and credentials come from DATABASE_URL; the test database is the
configured one with a ``_test`` suffix. Point pytest at it with:

    TEST_DATABASE_URL=<printed url> pytest
"""

import asyncio
import sys

import asyncpg
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

from salon_booking.core.config import settings
from salon_booking.core.database import Base

import salon_booking.models  # noqa: F401  registers all tables on Base

SERVER_URL = make_url(settings.DATABASE_URL)
TEST_DB_NAME = f"{SERVER_URL.database}_test"
TEST_DB_URL = SERVER_URL.set(database=TEST_DB_NAME)


async def _connect_to_server():
    # DROP/CREATE DATABASE must run outside the target database
    return await asyncpg.connect(
        host=SERVER_URL.host,
        port=SERVER_URL.port or 5432,
        user=SERVER_URL.username,
        password=SERVER_URL.password,
        database=SERVER_URL.database,
    )


async def setup_test_database() -> bool:
    print(f"Setting up test database: {TEST_DB_NAME}")

    try:
        conn = await _connect_to_server()
        await conn.execute(f'DROP DATABASE IF EXISTS "{TEST_DB_NAME}"')
        await conn.execute(f'CREATE DATABASE "{TEST_DB_NAME}"')
        await conn.close()

        engine = create_async_engine(TEST_DB_URL, echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Error setting up test database: {e}")
        print(f"Check that PostgreSQL is reachable at {SERVER_URL.host}:{SERVER_URL.port or 5432}")
        return False

    print("Test database ready")
    print(f"TEST_DATABASE_URL={TEST_DB_URL.render_as_string(hide_password=False)}")
    return True


async def cleanup_test_database() -> bool:
    try:
        conn = await _connect_to_server()
        await conn.execute(f'DROP DATABASE IF EXISTS "{TEST_DB_NAME}"')
        await conn.close()
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Error dropping test database: {e}")
        return False

    print(f"Dropped test database: {TEST_DB_NAME}")
    return True


if __name__ == "__main__":
    action = cleanup_test_database if sys.argv[1:] == ["cleanup"] else setup_test_database
    sys.exit(0 if asyncio.run(action()) else 1)
