import os
import sqlite3

from flask import current_app, g


SCHEMA_PATH = os.path.join(os.path.dirname(__file__), 'schema.sql')


def _load_schema_and_initialize(db):
    """Run the bundled schema.sql against the connection."""
    if not os.path.exists(SCHEMA_PATH):
        raise FileNotFoundError(f'schema.sql not found at {SCHEMA_PATH}')

    with open(SCHEMA_PATH, 'r', encoding='utf-8') as f:
        db.executescript(f.read())


def connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with row access by column name."""
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)

    db = sqlite3.connect(db_path)
    db.row_factory = sqlite3.Row
    db.execute("PRAGMA foreign_keys = ON")
    return db


def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db = g._database = connect(current_app.config['DATABASE_PATH'])

        # Simple check: if users table missing, initialize schema
        cur = db.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='users'")
        if not cur.fetchone():
            print(f"[db] Initializing schema in {current_app.config['DATABASE_PATH']}")
            _load_schema_and_initialize(db)

    return db


def close_connection(exception):
    db = getattr(g, '_database', None)
    if db is not None:
        db.close()
        g._database = None


def init_db_command():
    """Create any missing tables."""
    db = get_db()
    _load_schema_and_initialize(db)
    print('Initialized the database.')
