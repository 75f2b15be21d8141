#!/usr/bin/env python
"""Create the HRMS payroll schema from the ORM models.

Usage:
    python scripts/create_schema.py
    python scripts/create_schema.py --database-url postgresql+asyncpg://...
    python scripts/create_schema.py --dry-run
    python scripts/create_schema.py --drop
"""

import argparse
import asyncio
import sys

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.schema import CreateIndex, CreateTable

from hrms_payroll.config import get_settings
from hrms_payroll.models import Base


def print_ddl() -> None:
    """Print PostgreSQL DDL for every table without connecting."""
    dialect = postgresql.dialect()
    for table in Base.metadata.sorted_tables:
        print(f"{CreateTable(table).compile(dialect=dialect)};")
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            print(f"{CreateIndex(index).compile(dialect=dialect)};")
        print()


async def create_schema(database_url: str, drop: bool) -> None:
    engine = create_async_engine(database_url)
    try:
        async with engine.begin() as conn:
            if drop:
                print("  Dropping existing tables")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the HRMS payroll schema")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async database URL",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the DDL without executing",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first",
    )

    args = parser.parse_args()

    if args.dry_run:
        print_ddl()
        return 0

    print("HRMS Schema Setup")
    print("=" * 50)
    print(f"Database: {args.database_url.split('@')[-1] if '@' in args.database_url else args.database_url}")
    print(f"Tables: {len(Base.metadata.sorted_tables)}")
    print()

    try:
        asyncio.run(create_schema(args.database_url, args.drop))
    except SQLAlchemyError as e:
        print(f"ERROR: Could not create schema: {e}")
        return 1

    print("    OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
