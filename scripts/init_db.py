#!/usr/bin/env python3
"""
Initialize the SQLite database for the study aid service.
Schema:
  - users: Google OAuth profiles
  - study_materials: submitted text with extracted keywords (JSON)
  - flashcards: question/answer cards with a mastered flag

Usage:
  python scripts/init_db.py          # Create database (preserve existing data)
  python scripts/init_db.py --reset  # Delete and recreate database
  python scripts/init_db.py --path other.db
"""
import sys
import argparse
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
load_dotenv(Path(__file__).resolve().parents[1] / '.env')

from studyaid.storage import Database


def init_database(db_path: str = None, reset: bool = False) -> Database:
    db = Database(db_path)
    print(f"Initializing database: {db.db_path}")
    if reset:
        print("⚠ Resetting database (--reset flag detected)...")
    db.init_schema(reset=reset)
    print(f"✓ Database ready: {db.health_check()}")
    return db


def main(argv=None):
    parser = argparse.ArgumentParser(description='Initialize the study aid database')
    parser.add_argument('--reset', action='store_true', help='Delete and recreate the database')
    parser.add_argument('--path', default=None, help='Database file (defaults to DATABASE_PATH)')
    args = parser.parse_args(argv)
    init_database(args.path, reset=args.reset)
    return 0


if __name__ == '__main__':
    sys.exit(main())
