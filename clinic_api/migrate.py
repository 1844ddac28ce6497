"""Apply pending schema migrations to DATABASE_URL.

Usage:
    python -m clinic_api.migrate
"""
import sys

from sqlalchemy.exc import SQLAlchemyError

from clinic_api.database import MIGRATIONS, apply_migrations


def main() -> None:
    try:
        version = apply_migrations()
    except SQLAlchemyError as exc:
        print("Migration failed:", exc, file=sys.stderr)
        sys.exit(1)

    latest = MIGRATIONS[-1].version
    print(f"Schema version {version} (latest {latest})")


if __name__ == "__main__":
    main()
