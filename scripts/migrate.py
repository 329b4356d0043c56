"""Run Alembic migrations for the users and refresh_tokens schema.

Usage:
    python scripts/migrate.py                    upgrade to head
    python scripts/migrate.py upgrade [rev]      upgrade to a revision
    python scripts/migrate.py downgrade <rev>    downgrade to a revision
    python scripts/migrate.py create <message>   autogenerate a revision
    python scripts/migrate.py current            show the applied revision
"""

import sys

from alembic import command
from alembic.config import Config

ALEMBIC_INI = "alembic.ini"


def upgrade(revision: str = "head") -> None:
    """Upgrade the schema to ``revision``."""
    print(f"Upgrading schema to {revision}...")
    command.upgrade(Config(ALEMBIC_INI), revision)
    print("✓ Schema upgraded")


def downgrade(revision: str) -> None:
    """Downgrade the schema to ``revision``."""
    print(f"Downgrading schema to {revision}...")
    command.downgrade(Config(ALEMBIC_INI), revision)
    print("✓ Schema downgraded")


def create(message: str) -> None:
    """Autogenerate a revision from the table metadata."""
    print(f"Creating revision: {message}")
    command.revision(Config(ALEMBIC_INI), message=message, autogenerate=True)
    print("✓ Revision created")


def current() -> None:
    command.current(Config(ALEMBIC_INI), verbose=True)


def main(argv: list[str]) -> int:
    if not argv:
        action, args = upgrade, []
    elif argv[0] == "upgrade":
        action, args = upgrade, argv[1:2]
    elif argv[0] == "downgrade" and len(argv) > 1:
        action, args = downgrade, argv[1:2]
    elif argv[0] == "create" and len(argv) > 1:
        action, args = create, [" ".join(argv[1:])]
    elif argv[0] == "current":
        action, args = current, []
    else:
        print(__doc__)
        return 2

    try:
        action(*args)
    except Exception as e:
        print(f"✗ Migration command failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
