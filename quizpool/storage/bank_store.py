"""
Question bank repository.

Schema:
  - question_banks: one row per normalized content hash (UNIQUE), with capacity,
    a generated_count recomputed from bank_questions on every write, and an
    expiry timestamp after which the bank is dropped and rebuilt on demand
  - bank_questions: append-only rows owned by one bank; rowid gives insertion order

``BankStore`` is the interface the services depend on; ``SQLiteBankStore`` is
the shipped implementation. Every sqlite3 failure surfaces as PersistenceError.
"""
import os
import json
import uuid
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from quizpool.models import Question, SourceType
from quizpool.utils import get_logger

LOG = get_logger()

QUIZPOOL_DB_PATH = os.getenv('QUIZPOOL_DB_PATH', 'quizpool.db')
BANK_RETENTION_DAYS = int(os.getenv('BANK_RETENTION_DAYS', '30'))
SQLITE_TIMEOUT = float(os.getenv('SQLITE_TIMEOUT', '10'))

SCHEMA = """
CREATE TABLE IF NOT EXISTS question_banks (
    id TEXT PRIMARY KEY,
    content_hash TEXT NOT NULL UNIQUE,
    original_content TEXT NOT NULL,
    max_capacity INTEGER NOT NULL,
    generated_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS bank_questions (
    id TEXT PRIMARY KEY,
    bank_id TEXT NOT NULL,
    question_json TEXT NOT NULL,
    source_type TEXT NOT NULL DEFAULT 'ai',   -- ai, transformed
    created_at TEXT NOT NULL,
    FOREIGN KEY (bank_id) REFERENCES question_banks(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_bank_questions_bank ON bank_questions(bank_id);
CREATE INDEX IF NOT EXISTS idx_question_banks_expires ON question_banks(expires_at);
"""


class PersistenceError(Exception):
    pass


class BankState(str, Enum):
    ABSENT = 'absent'
    CREATED = 'created'
    PARTIALLY_FILLED = 'partially_filled'
    EXHAUSTED = 'exhausted'


@dataclass
class QuestionBank:
    id: str
    content_hash: str
    original_content: str
    max_capacity: int
    generated_count: int
    created_at: str
    expires_at: str


@dataclass
class FetchResult:
    questions: List[Question] = field(default_factory=list)
    remaining_count: int = 0


def bank_state(bank: Optional[QuestionBank]) -> BankState:
    if bank is None:
        return BankState.ABSENT
    if bank.generated_count <= 0:
        return BankState.CREATED
    if bank.generated_count < bank.max_capacity:
        return BankState.PARTIALLY_FILLED
    return BankState.EXHAUSTED


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.isoformat()


class BankStore(ABC):
    @abstractmethod
    def get_bank_by_hash(self, content_hash: str) -> Optional[QuestionBank]:
        ...

    @abstractmethod
    def get_bank(self, bank_id: str) -> Optional[QuestionBank]:
        ...

    @abstractmethod
    def get_or_create_bank(self, content_hash: str, content: str, max_capacity: int) -> QuestionBank:
        ...

    @abstractmethod
    def save_questions_to_bank(self, bank_id: str, questions: Sequence[Question]) -> int:
        ...

    @abstractmethod
    def fetch_questions_from_bank(self, bank_id: str, count: int, exclude_ids: Iterable[str] = (), random: bool = False) -> FetchResult:
        ...

    @abstractmethod
    def get_bank_question_count(self, bank_id: str) -> int:
        ...

    @abstractmethod
    def cleanup_expired_banks(self) -> int:
        ...


class SQLiteBankStore(BankStore):
    """SQLite-backed bank store.

    One connection per store guarded by a lock; writes run inside
    ``BEGIN IMMEDIATE`` so concurrent creators and top-ups from other
    processes serialize on the database file.
    """

    def __init__(self, db_path: str = QUIZPOOL_DB_PATH, retention_days: int = BANK_RETENTION_DAYS):
        self.db_path = db_path
        self.retention = timedelta(days=retention_days)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(db_path, timeout=SQLITE_TIMEOUT, check_same_thread=False, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute('PRAGMA foreign_keys = ON')
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f'failed to open bank store: {e}') from e
        LOG.info('bank_store_ready', extra={'db_path': db_path})

    def close(self):
        with self._lock:
            self._conn.close()

    @contextmanager
    def _read(self):
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e

    @contextmanager
    def _write(self):
        with self._lock:
            try:
                self._conn.execute('BEGIN IMMEDIATE')
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute('ROLLBACK')
                    raise
                self._conn.execute('COMMIT')
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e

    @staticmethod
    def _row_to_bank(row) -> QuestionBank:
        return QuestionBank(
            id=row['id'],
            content_hash=row['content_hash'],
            original_content=row['original_content'],
            max_capacity=row['max_capacity'],
            generated_count=row['generated_count'],
            created_at=row['created_at'],
            expires_at=row['expires_at'],
        )

    def get_bank_by_hash(self, content_hash: str) -> Optional[QuestionBank]:
        with self._read() as conn:
            row = conn.execute(
                'SELECT * FROM question_banks WHERE content_hash = ? AND expires_at > ?',
                (content_hash, _iso(_now())),
            ).fetchone()
        return self._row_to_bank(row) if row else None

    def get_bank(self, bank_id: str) -> Optional[QuestionBank]:
        with self._read() as conn:
            row = conn.execute('SELECT * FROM question_banks WHERE id = ?', (bank_id,)).fetchone()
        return self._row_to_bank(row) if row else None

    def get_or_create_bank(self, content_hash: str, content: str, max_capacity: int) -> QuestionBank:
        now = _now()
        with self._write() as conn:
            # an expired bank for the same hash is replaced, not revived
            conn.execute('DELETE FROM question_banks WHERE content_hash = ? AND expires_at <= ?', (content_hash, _iso(now)))
            cur = conn.execute(
                'INSERT OR IGNORE INTO question_banks (id, content_hash, original_content, max_capacity, generated_count, created_at, expires_at) '
                'VALUES (?, ?, ?, ?, 0, ?, ?)',
                (uuid.uuid4().hex, content_hash, content, max(1, int(max_capacity)), _iso(now), _iso(now + self.retention)),
            )
            created = cur.rowcount == 1
            row = conn.execute('SELECT * FROM question_banks WHERE content_hash = ?', (content_hash,)).fetchone()
        if row is None:
            raise PersistenceError(f'bank for {content_hash[:16]} missing after create')
        bank = self._row_to_bank(row)
        LOG.info('bank_created' if created else 'bank_reused', extra={'bank_id': bank.id, 'max_capacity': bank.max_capacity})
        return bank

    def save_questions_to_bank(self, bank_id: str, questions: Sequence[Question]) -> int:
        """Append questions in one transaction, never past max_capacity.

        Returns how many rows were inserted. Re-saving an id is a no-op.
        """
        if not questions:
            return 0
        now = _iso(_now())
        with self._write() as conn:
            bank = conn.execute('SELECT max_capacity FROM question_banks WHERE id = ?', (bank_id,)).fetchone()
            if bank is None:
                raise PersistenceError(f'bank {bank_id} does not exist')
            current = conn.execute('SELECT COUNT(*) FROM bank_questions WHERE bank_id = ?', (bank_id,)).fetchone()[0]
            room = max(0, bank['max_capacity'] - current)
            inserted = 0
            for q in questions:
                if inserted >= room:
                    break
                source = q.source_type.value if isinstance(q.source_type, SourceType) else str(q.source_type)
                cur = conn.execute(
                    'INSERT OR IGNORE INTO bank_questions (id, bank_id, question_json, source_type, created_at) VALUES (?, ?, ?, ?, ?)',
                    (q.id, bank_id, q.model_dump_json(), source, now),
                )
                inserted += cur.rowcount
            conn.execute(
                'UPDATE question_banks SET generated_count = (SELECT COUNT(*) FROM bank_questions WHERE bank_id = ?) WHERE id = ?',
                (bank_id, bank_id),
            )
        if inserted < len(questions):
            LOG.info('bank_save_truncated', extra={'bank_id': bank_id, 'offered': len(questions), 'saved': inserted})
        return inserted

    def fetch_questions_from_bank(self, bank_id: str, count: int, exclude_ids: Iterable[str] = (), random: bool = False) -> FetchResult:
        exclude = list(dict.fromkeys(exclude_ids or ()))
        if count <= 0:
            return FetchResult(questions=[], remaining_count=self._count_excluding(bank_id, exclude))
        not_in = ''
        params: list = [bank_id]
        if exclude:
            not_in = f" AND id NOT IN ({','.join('?' * len(exclude))})"
            params.extend(exclude)
        order = 'RANDOM()' if random else 'rowid'
        with self._read() as conn:
            rows = conn.execute(
                f'SELECT id, question_json FROM bank_questions WHERE bank_id = ?{not_in} ORDER BY {order} LIMIT ?',
                (*params, count),
            ).fetchall()
        try:
            questions = [Question.model_validate(json.loads(r['question_json'])) for r in rows]
        except ValueError as e:
            raise PersistenceError(f'corrupt question row in bank {bank_id}: {e}') from e
        returned = [r['id'] for r in rows]
        remaining = self._count_excluding(bank_id, exclude + returned)
        return FetchResult(questions=questions, remaining_count=max(0, remaining))

    def _count_excluding(self, bank_id: str, exclude: List[str]) -> int:
        params: list = [bank_id]
        not_in = ''
        if exclude:
            not_in = f" AND id NOT IN ({','.join('?' * len(exclude))})"
            params.extend(exclude)
        with self._read() as conn:
            return conn.execute(f'SELECT COUNT(*) FROM bank_questions WHERE bank_id = ?{not_in}', params).fetchone()[0]

    def get_bank_question_count(self, bank_id: str) -> int:
        with self._read() as conn:
            return conn.execute('SELECT COUNT(*) FROM bank_questions WHERE bank_id = ?', (bank_id,)).fetchone()[0]

    def cleanup_expired_banks(self) -> int:
        with self._write() as conn:
            cur = conn.execute('DELETE FROM question_banks WHERE expires_at <= ?', (_iso(_now()),))
            removed = cur.rowcount
        if removed:
            LOG.info('bank_cleanup', extra={'removed': removed})
        return removed
