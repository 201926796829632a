import sqlite3
from typing import Iterator

from .config import DATABASE_PATH
from .models import SCHEMA_STATEMENTS


def _ensure_session_columns(conn: sqlite3.Connection) -> None:
    columns = conn.execute("PRAGMA table_info(sessions);").fetchall()
    col_names = {col["name"] for col in columns}
    specs = {
        "hostel_id": "TEXT",
    }
    for col, spec in specs.items():
        if col not in col_names:
            conn.execute(f"ALTER TABLE sessions ADD COLUMN {col} {spec}")
    conn.commit()


def create_connection(path: str = DATABASE_PATH) -> sqlite3.Connection:
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    for stmt in SCHEMA_STATEMENTS:
        conn.execute(stmt)
    conn.commit()
    _ensure_session_columns(conn)


def get_db() -> Iterator[sqlite3.Connection]:
    conn = create_connection()
    try:
        yield conn
    finally:
        conn.close()
