"""SQLite persistence for users, study materials and flashcards.

Every operation opens a short-lived connection, so a Database instance can be
shared across request handlers. Rows are returned as API-shaped dicts
(camelCase keys, millisecond timestamps, keywords decoded from JSON).
"""
from __future__ import annotations

import os
import json
import time
import sqlite3
from contextlib import contextmanager
from typing import Optional, List, Dict, Any, Iterator, Sequence

from studyaid.utils import get_logger

LOG = get_logger()

DATABASE_PATH = os.getenv('DATABASE_PATH', 'study_aid.db')

SCHEMA = """
-- Users (Google OAuth profile)
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,                -- Google user ID
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    profile_image TEXT,
    created_at INTEGER NOT NULL
);

-- Study materials submitted for analysis
CREATE TABLE IF NOT EXISTS study_materials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    title TEXT,
    content TEXT NOT NULL,
    keywords TEXT,                      -- JSON: [{keyword, detail}]
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

-- Flashcards
CREATE TABLE IF NOT EXISTS flashcards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    study_material_id INTEGER REFERENCES study_materials(id),
    front TEXT NOT NULL,                -- question side
    back TEXT NOT NULL,                 -- answer side
    mastered INTEGER DEFAULT 0,         -- 0/1
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_study_materials_user_id ON study_materials(user_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_user_id ON flashcards(user_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_study_material_id ON flashcards(study_material_id);
"""


class StorageError(Exception):
    pass


def _now_ms() -> int:
    return int(time.time() * 1000)


def _user_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'email': row['email'],
        'name': row['name'],
        'profileImage': row['profile_image'],
        'createdAt': row['created_at'],
    }


def _material_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'userId': row['user_id'],
        'title': row['title'],
        'content': row['content'],
        'keywords': json.loads(row['keywords']) if row['keywords'] else None,
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


def _flashcard_row(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        'id': row['id'],
        'userId': row['user_id'],
        'studyMaterialId': row['study_material_id'],
        'front': row['front'],
        'back': row['back'],
        'mastered': row['mastered'] == 1,
        'createdAt': row['created_at'],
    }


class Database:
    _instance = None

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DATABASE_PATH

    @classmethod
    def get_instance(cls) -> 'Database':
        if cls._instance is None:
            cls._instance = Database()
        return cls._instance

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            LOG.exception('database_connect_failed', exc_info=True)
            raise StorageError(str(e))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            LOG.exception('database_error', exc_info=True)
            raise StorageError(str(e))
        finally:
            conn.close()

    def init_schema(self, reset: bool = False):
        if reset and self.db_path != ':memory:' and os.path.exists(self.db_path):
            LOG.warning('database_reset', extra={'path': self.db_path})
            os.remove(self.db_path)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        LOG.info('database_initialized', extra={'path': self.db_path})

    def health_check(self) -> str:
        try:
            with self._connect() as conn:
                conn.execute('SELECT 1').fetchone()
            return 'ok'
        except StorageError as e:
            return f'error: {str(e)}'

    # users

    def upsert_user(self, user_id: str, email: str, name: str = '', profile_image: str = '') -> Dict[str, Any]:
        with self._connect() as conn:
            existing = conn.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
            if existing:
                conn.execute('UPDATE users SET name = ?, profile_image = ? WHERE id = ?', (name, profile_image, user_id))
            else:
                conn.execute(
                    'INSERT INTO users (id, email, name, profile_image, created_at) VALUES (?, ?, ?, ?, ?)',
                    (user_id, email, name, profile_image, _now_ms()),
                )
            row = conn.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
        return _user_row(row)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
        return _user_row(row) if row else None

    # study materials

    def create_material(self, user_id: str, content: str, title: Optional[str] = None) -> Dict[str, Any]:
        now = _now_ms()
        with self._connect() as conn:
            cur = conn.execute(
                'INSERT INTO study_materials (user_id, title, content, created_at, updated_at) VALUES (?, ?, ?, ?, ?)',
                (user_id, title or None, content, now, now),
            )
            row = conn.execute('SELECT * FROM study_materials WHERE id = ?', (cur.lastrowid,)).fetchone()
        return _material_row(row)

    def list_materials(self, user_id: str) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                'SELECT * FROM study_materials WHERE user_id = ? ORDER BY created_at DESC, id DESC', (user_id,)
            ).fetchall()
        return [_material_row(r) for r in rows]

    def get_material(self, user_id: str, material_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                'SELECT * FROM study_materials WHERE id = ? AND user_id = ?', (material_id, user_id)
            ).fetchone()
        return _material_row(row) if row else None

    def update_material(self, user_id: str, material_id: int, title: Optional[str] = None, content: Optional[str] = None, keywords: Optional[Sequence[Dict[str, Any]]] = None) -> Optional[Dict[str, Any]]:
        keywords_json = json.dumps(list(keywords)) if keywords is not None else None
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE study_materials
                SET title = COALESCE(?, title),
                    content = COALESCE(?, content),
                    keywords = COALESCE(?, keywords),
                    updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (title, content, keywords_json, _now_ms(), material_id, user_id),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute('SELECT * FROM study_materials WHERE id = ?', (material_id,)).fetchone()
        return _material_row(row)

    def set_material_keywords(self, user_id: str, material_id: int, keywords: Sequence[Dict[str, Any]]) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                'UPDATE study_materials SET keywords = ?, updated_at = ? WHERE id = ? AND user_id = ?',
                (json.dumps(list(keywords)), _now_ms(), material_id, user_id),
            )
            updated = cur.rowcount > 0
        return updated

    def delete_material(self, user_id: str, material_id: int) -> bool:
        with self._connect() as conn:
            existing = conn.execute(
                'SELECT id FROM study_materials WHERE id = ? AND user_id = ?', (material_id, user_id)
            ).fetchone()
            if not existing:
                return False
            conn.execute('DELETE FROM flashcards WHERE study_material_id = ?', (material_id,))
            conn.execute('DELETE FROM study_materials WHERE id = ?', (material_id,))
        return True

    # flashcards

    def create_flashcards(self, user_id: str, cards: Sequence[Dict[str, str]], study_material_id: Optional[int] = None) -> List[Dict[str, Any]]:
        inserted_ids = []
        with self._connect() as conn:
            for card in cards:
                cur = conn.execute(
                    'INSERT INTO flashcards (user_id, study_material_id, front, back, mastered, created_at) VALUES (?, ?, ?, ?, 0, ?)',
                    (user_id, study_material_id, card['front'], card['back'], _now_ms()),
                )
                inserted_ids.append(cur.lastrowid)
            rows = [conn.execute('SELECT * FROM flashcards WHERE id = ?', (i,)).fetchone() for i in inserted_ids]
        return [_flashcard_row(r) for r in rows]

    def create_flashcard(self, user_id: str, front: str, back: str, study_material_id: Optional[int] = None) -> Dict[str, Any]:
        return self.create_flashcards(user_id, [{'front': front, 'back': back}], study_material_id)[0]

    def list_flashcards(self, user_id: str, study_material_id: Optional[int] = None) -> List[Dict[str, Any]]:
        query = 'SELECT * FROM flashcards WHERE user_id = ?'
        params: List[Any] = [user_id]
        if study_material_id is not None:
            query += ' AND study_material_id = ?'
            params.append(study_material_id)
        query += ' ORDER BY created_at DESC, id DESC'
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_flashcard_row(r) for r in rows]

    def get_flashcard(self, user_id: str, flashcard_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                'SELECT * FROM flashcards WHERE id = ? AND user_id = ?', (flashcard_id, user_id)
            ).fetchone()
        return _flashcard_row(row) if row else None

    def set_mastered(self, user_id: str, flashcard_id: int, mastered: bool) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                'UPDATE flashcards SET mastered = ? WHERE id = ? AND user_id = ?',
                (1 if mastered else 0, flashcard_id, user_id),
            )
            updated = cur.rowcount > 0
        return updated

    def update_flashcard(self, user_id: str, flashcard_id: int, front: Optional[str] = None, back: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            cur = conn.execute(
                'UPDATE flashcards SET front = COALESCE(?, front), back = COALESCE(?, back) WHERE id = ? AND user_id = ?',
                (front, back, flashcard_id, user_id),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute('SELECT * FROM flashcards WHERE id = ?', (flashcard_id,)).fetchone()
        return _flashcard_row(row)

    def delete_flashcard(self, user_id: str, flashcard_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute('DELETE FROM flashcards WHERE id = ? AND user_id = ?', (flashcard_id, user_id))
            deleted = cur.rowcount > 0
        return deleted


def get_database() -> Database:
    return Database.get_instance()
