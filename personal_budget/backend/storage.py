import json
import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime

from .errors import StorageUnavailable

logger = logging.getLogger(__name__)


class Storage:
    """Whole-document store on top of SQLite.

    Each document lives in one row keyed by (collection, doc_id) and is
    read and written in full as JSON text.
    """

    def __init__(self, db_path='personal_budget.db', timeout=10.0):
        self.db_path = db_path
        self.timeout = timeout
        self._schema_ready = False

    @contextmanager
    def _conn(self):
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageUnavailable(f"SQLite error: {e}") from e
        finally:
            conn.close()

    def init_db(self):
        if self._schema_ready:
            return
        with self._conn() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (collection, doc_id)
                )
            ''')
            conn.commit()
        self._schema_ready = True

    def load(self, collection, doc_id):
        """Return the stored document, or None when it does not exist."""
        self.init_db()
        with self._conn() as conn:
            row = conn.execute(
                'SELECT data FROM documents WHERE collection = ? AND doc_id = ?',
                (collection, doc_id)
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row['data'])
        except json.JSONDecodeError as e:
            raise StorageUnavailable(f"Corrupt document {collection}/{doc_id}: {e}") from e

    def save(self, collection, doc_id, doc):
        payload = json.dumps(doc)
        self.init_db()
        with self._conn() as conn:
            conn.execute('''
                INSERT INTO documents (collection, doc_id, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, doc_id)
                DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            ''', (collection, doc_id, payload, datetime.now().strftime("%Y-%m-%d %H:%M:%S")))
            conn.commit()
        logger.debug("Saved %s/%s (%d bytes)", collection, doc_id, len(payload))
