#!/usr/bin/env python3
"""
Database Bootstrap

Creates any missing tables (profiles, messages, delivery_logs,
delivery_batch_locks, payments) in DATABASE_URL.

Usage:
    python scripts/init_db.py
"""

import asyncio
import os
import sys

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ftrmsg.core.database import db_manager  # noqa: E402
from ftrmsg.core.logging import setup_logging  # noqa: E402


async def main():
    try:
        await db_manager.create_tables()
    finally:
        await db_manager.close_connections()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
    print("✅ Schema ready")
