"""
Module: inventory_kernel.db.triggers
Responsibility: Loading, installing, and verifying the PostgreSQL
    immutability triggers on ``stock_movements`` (layer 2 of 2; layer 1 is
    the ORM listeners in db/immutability.py).
Architecture position: Kernel > DB. MUST NOT import from models/,
    services/, selectors/, storage/ or outer layers.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any UPDATE/DELETE of a movement row
      (surfaces through SQLAlchemy as InternalError / DBAPIError).
    - FileNotFoundError if SQL files are missing from the sql/ directory.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_stock_movement.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_stock_movement_immutability_update",
    "trg_stock_movement_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the movement immutability triggers (idempotent).

    Preconditions: Tables exist; engine is connected to PostgreSQL.
    """
    with engine.connect() as conn:
        for filename in TRIGGER_FILES:
            conn.execute(text(_load_sql_file(filename)))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the movement immutability triggers.

    WARNING: Only for migrations and test teardown.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_missing_triggers(engine: Engine) -> list[str]:
    """Trigger names that should be installed but are not."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"SELECT tgname FROM pg_trigger WHERE tgname IN ({trigger_list})"
    with engine.connect() as conn:
        installed = {row[0] for row in conn.execute(text(check_sql))}
    return sorted(set(ALL_TRIGGER_NAMES) - installed)
