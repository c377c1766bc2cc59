#!/usr/bin/env python3
# scripts/check_db.py - Check database connection and which portal tables exist
import sys

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.db import get_engine, health_check
from app.models import Base


def check_database_connection() -> bool:
    """Report connection status and any tables missing from the schema"""
    print("Database Connection Check")
    print("=" * 40)
    print(f"Database: {settings.DATABASE_URL.split('@')[-1]}")
    print("-" * 40)

    status = health_check()
    if status["status"] != "healthy":
        print(f"Connection failed: {status.get('error')}")
        print("\nTroubleshooting:")
        print("1. Check that the database server is running")
        print("2. Verify DATABASE_URL in the .env file")
        return False
    print(f"Connection successful ({status['response_time_ms']} ms)")

    try:
        existing = set(inspect(get_engine()).get_table_names())
    except SQLAlchemyError as e:
        print(f"Could not inspect tables: {e}")
        return False

    expected = set(Base.metadata.tables)
    print(f"Tables in database: {len(existing)}")
    missing = sorted(expected - existing)
    if missing:
        print("Missing tables (run 'alembic upgrade head'):")
        for table in missing:
            print(f"  - {table}")
        return False

    print("All portal tables present")
    return True


if __name__ == "__main__":
    sys.exit(0 if check_database_connection() else 1)
