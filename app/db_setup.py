"""
Database setup without starting the API.

    python -m app.db_setup init          # create the todos table if missing
    python -m app.db_setup setup-test    # recreate the table in TEST_DATABASE_URL
"""

import argparse
import sys

from app.config import get_settings
from app.database import Database
from app.logger import logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Create the todos table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "command",
        choices=["init", "setup-test"],
        help="init: main database, keeps existing rows; "
             "setup-test: test database, drops the table first",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override the URL taken from the settings",
    )
    return parser.parse_args(argv)


def run(command: str, database_url: str = None) -> Database:
    """Run a setup command and return the (disposed) database handle"""
    settings = get_settings()
    if database_url is None:
        database_url = settings.get_database_url(is_test=command == "setup-test")

    database = Database(database_url)
    try:
        if command == "setup-test":
            database.drop_all()
            logger.info("Dropped existing test tables")
        database.init_db()
    finally:
        database.dispose()
    return database


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        run(args.command, database_url=args.database_url)
    except Exception as e:
        logger.error(f"Database setup failed: {str(e)}")
        return 1
    logger.info(f"Database setup '{args.command}' complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
