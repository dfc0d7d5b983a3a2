"""
Database connection management
"""
import sqlite3
from contextlib import contextmanager
from typing import Generator


class DatabaseConnection:
    # Manages the sqlite file holding per-session checkout state

    def __init__(self, db_path: str = "checkout.db"):
        self.db_path = db_path
        self.init_database()

    def init_database(self):
        # Create the tables on first use
        with self.get_connection() as conn:
            cursor = conn.cursor()

            # Cart items the customer chose to buy, one row per session
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Checkout_Selections (
                session_id TEXT PRIMARY KEY,
                item_ids TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            ''')

            # Draft snapshots keyed by session or by parked order id
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS Checkout_Drafts (
                draft_key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                owner_session TEXT,
                context TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            ''')

            conn.commit()

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()
