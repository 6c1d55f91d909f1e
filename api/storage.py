"""SQLite backed storage for session records.

The browser only keeps an opaque id in its cookie; the transcript and preview
texts live here so long recordings survive the payment redirect.
"""
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path


class SessionStorage:
    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._ensure_initialised()

    def _ensure_initialised(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    record TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, session_id: str):
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT record FROM sessions WHERE id = ?", (session_id,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            return None

    def put(self, session_id: str, record: dict):
        now = datetime.now(timezone.utc).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sessions(id, record, updated_at) VALUES(?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET record = excluded.record, updated_at = excluded.updated_at
                """,
                (session_id, json.dumps(record), now),
            )

    def delete(self, session_id: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
