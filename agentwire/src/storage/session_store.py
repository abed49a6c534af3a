# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Session store for persistent conversation threads.

Records sessions (with their lineage), messages, bus events and shared
environment data in SQLite, and computes token/cost usage over single
sessions and whole thread trees.
"""
import json
import uuid
import sqlite3
import logging
import threading

from pathlib import Path
from typing import Any, Optional
from datetime import datetime
from contextlib import contextmanager

from .models import (
    Session,
    StoredMessage,
    UsageSummary,
    EnvDataEntry,
    ThreadNode,
)
from ..errors import NotFoundError
from ..llm.metering import calculate_cost
from ..types.common import ThreadType
from ..types.llm_types import Message
from ..types.event_types import BusEntry, PayloadEncoder

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MEMORY = ":memory:"


def _now() -> str:
    return datetime.now().isoformat(timespec="microseconds")


class SessionStore:
    """
    Repository for sessions, messages, events and environment data.

    One connection is shared by every thread; each public call holds the
    store lock for its whole transaction, so appends are atomic per call.
    """

    def __init__(self, db_path: Path | str = MEMORY):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file (created if it doesn't
                exist), or ":memory:" for a throwaway store
        """
        self.db_path = str(db_path)
        if self.db_path != MEMORY:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._ensure_schema()

    @contextmanager
    def _get_connection(self):
        """Context manager for the shared connection with transaction support."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _ensure_schema(self):
        """
        Create database schema if it doesn't exist.

        - sessions: one row per thread, with its parent link and type
        - messages: ordered conversation turns of a session
        - events: persisted message bus entries
        - env_data: key/value data scoped by root thread
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    agent_name TEXT NOT NULL,
                    name TEXT,
                    parent_session_id TEXT,
                    parent_agent TEXT,
                    thread_type TEXT NOT NULL DEFAULT 'root',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    metadata TEXT,

                    FOREIGN KEY (parent_session_id) REFERENCES sessions(id) ON DELETE SET NULL,
                    CHECK (thread_type IN ('root', 'continuation', 'delegation', 'fork'))
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT,
                    sender TEXT,
                    tool_calls TEXT,
                    tool_results TEXT,
                    usage TEXT,
                    created_at TEXT NOT NULL,

                    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT,
                    timestamp TEXT NOT NULL,
                    sender TEXT,
                    recipient TEXT,
                    message TEXT,
                    summary TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS env_data (
                    root_thread_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    short_description TEXT NOT NULL,
                    value TEXT,
                    stored_by TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,

                    PRIMARY KEY (root_thread_id, key)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_agent ON sessions(agent_name)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_parent ON sessions(parent_session_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_session ON events(session_id)")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    _SESSION_SELECT = """
        SELECT s.*, (SELECT COUNT(*) FROM messages m WHERE m.session_id = s.id) AS message_count
        FROM sessions s
    """

    def create_session(
        self,
        agent_name: str,
        parent_session_id: Optional[str] = None,
        parent_agent: Optional[str] = None,
        thread_type: ThreadType = ThreadType.ROOT,
        name: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        session_id = str(uuid.uuid4())
        now = _now()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, agent_name, name, parent_session_id, parent_agent,
                                      thread_type, created_at, updated_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    agent_name,
                    name,
                    parent_session_id,
                    parent_agent,
                    ThreadType(thread_type).value,
                    now,
                    now,
                    json.dumps(metadata or {}),
                ),
            )
        logger.debug(f"Created {ThreadType(thread_type).value} session {session_id} for {agent_name}")
        return session_id

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._get_connection() as conn:
            row = conn.execute(
                self._SESSION_SELECT + " WHERE s.id = ?", (session_id,)
            ).fetchone()
        return Session.from_row(row) if row else None

    def require_session(self, session_id: str) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    def latest_session(self, agent_name: str, root_only: bool = True) -> Optional[Session]:
        """Most recently updated session of an agent."""
        query = self._SESSION_SELECT + " WHERE s.agent_name = ?"
        if root_only:
            query += " AND s.thread_type != 'delegation'"
        query += " ORDER BY s.updated_at DESC, s.rowid DESC LIMIT 1"
        with self._get_connection() as conn:
            row = conn.execute(query, (agent_name,)).fetchone()
        return Session.from_row(row) if row else None

    def get_or_create_session(self, agent_name: str) -> Session:
        with self._lock:
            session = self.latest_session(agent_name)
            if session is None:
                session = self.require_session(self.create_session(agent_name))
            return session

    def list_sessions(self, agent_name: str) -> list[Session]:
        with self._get_connection() as conn:
            rows = conn.execute(
                self._SESSION_SELECT
                + " WHERE s.agent_name = ? ORDER BY s.updated_at DESC, s.rowid DESC",
                (agent_name,),
            ).fetchall()
        return [Session.from_row(r) for r in rows]

    def list_all_sessions(self, limit: Optional[int] = None) -> list[Session]:
        query = self._SESSION_SELECT + " ORDER BY s.updated_at DESC, s.rowid DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Session.from_row(r) for r in rows]

    def search_sessions(self, query: str) -> list[Session]:
        """Sessions whose name or message content contains ``query``."""
        pattern = f"%{query}%"
        with self._get_connection() as conn:
            rows = conn.execute(
                self._SESSION_SELECT
                + """
                WHERE s.name LIKE ?
                   OR s.id IN (SELECT session_id FROM messages WHERE content LIKE ?)
                ORDER BY s.updated_at DESC
                """,
                (pattern, pattern),
            ).fetchall()
        return [Session.from_row(r) for r in rows]

    def update_session(
        self,
        session_id: str,
        name: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        with self._get_connection() as conn:
            updated = conn.execute(
                """
                UPDATE sessions
                SET name = COALESCE(?, name),
                    metadata = COALESCE(?, metadata),
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    name,
                    json.dumps(metadata) if metadata is not None else None,
                    _now(),
                    session_id,
                ),
            ).rowcount
        if not updated:
            raise NotFoundError("session", session_id)

    def delete_session(self, session_id: str) -> bool:
        """Maintenance only: remove a session and its messages."""
        with self._get_connection() as conn:
            deleted = conn.execute(
                "DELETE FROM sessions WHERE id = ?", (session_id,)
            ).rowcount
        return bool(deleted)

    def children(self, session_id: str) -> list[Session]:
        with self._get_connection() as conn:
            rows = conn.execute(
                self._SESSION_SELECT
                + " WHERE s.parent_session_id = ? ORDER BY s.created_at, s.rowid",
                (session_id,),
            ).fetchall()
        return [Session.from_row(r) for r in rows]

    def total_sessions(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def append_message(self, session_id: str, message: Message) -> int:
        """Persist one message. Callers serialize writes to one session."""
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO messages (session_id, role, content, sender, tool_calls,
                                      tool_results, usage, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    message.role.value,
                    message.content,
                    message.sender,
                    json.dumps([tc.model_dump() for tc in message.tool_calls])
                    if message.tool_calls
                    else None,
                    json.dumps([tr.model_dump() for tr in message.tool_results])
                    if message.tool_results
                    else None,
                    message.usage.model_dump_json() if message.usage else None,
                    message.created_at.isoformat(timespec="microseconds"),
                ),
            )
            conn.execute(
                "UPDATE sessions SET updated_at = ? WHERE id = ?", (now, session_id)
            )
            return cursor.lastrowid

    def get_messages(self, session_id: str) -> list[StoredMessage]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE session_id = ? ORDER BY id",
                (session_id,),
            ).fetchall()
        return [StoredMessage.from_row(r) for r in rows]

    def load_history(self, session_id: str) -> list[Message]:
        return [m.to_message() for m in self.get_messages(session_id)]

    def message_count(self, session_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM messages WHERE session_id = ?", (session_id,)
            ).fetchone()[0]

    def total_messages(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]

    def clear_messages(self, session_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "DELETE FROM messages WHERE session_id = ?", (session_id,)
            ).rowcount

    def fork_session(
        self,
        session_id: str,
        up_to_message_id: Optional[int] = None,
        name: Optional[str] = None,
    ) -> str:
        """Copy a session's history (optionally up to and including one
        message) into a new ``fork`` thread whose parent is the source."""
        with self._lock:
            source = self.require_session(session_id)
            messages = self.get_messages(session_id)
            if up_to_message_id is not None:
                if up_to_message_id not in {m.id for m in messages}:
                    raise NotFoundError("message", str(up_to_message_id))
                messages = [m for m in messages if m.id <= up_to_message_id]

            fork_id = self.create_session(
                source.agent_name,
                parent_session_id=source.id,
                parent_agent=source.agent_name,
                thread_type=ThreadType.FORK,
                name=name or (f"Fork of {source.name}" if source.name else None),
            )
            for message in messages:
                self.append_message(fork_id, message.to_message())
            return fork_id

    # ------------------------------------------------------------------
    # Lineage
    # ------------------------------------------------------------------

    def thread_tree(self, root_session_id: str) -> Optional[ThreadNode]:
        root = self.get_session(root_session_id)
        if root is None:
            return None
        return self._build_tree(root, visited=set())

    def _build_tree(self, session: Session, visited: set[str]) -> ThreadNode:
        visited.add(session.id)
        node = ThreadNode(session=session)
        for child in self.children(session.id):
            if child.id not in visited:
                node.children.append(self._build_tree(child, visited))
        return node

    def thread_lineage(self, session_id: str) -> list[Session]:
        """Sessions from the root down to ``session_id`` (inclusive)."""
        lineage: list[Session] = []
        seen: set[str] = set()
        current = self.get_session(session_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            lineage.append(current)
            if current.parent_session_id is None:
                break
            current = self.get_session(current.parent_session_id)
        return list(reversed(lineage))

    def resolve_root_thread(self, session_id: str) -> Optional[str]:
        lineage = self.thread_lineage(session_id)
        return lineage[0].id if lineage else None

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def usage(self, session_id: str) -> UsageSummary:
        summary = UsageSummary()
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT usage FROM messages WHERE session_id = ? AND usage IS NOT NULL ORDER BY id",
                (session_id,),
            ).fetchall()
        for row in rows:
            usage = json.loads(row["usage"])
            model = usage.get("model") or "unknown"
            input_tokens = usage.get("input_tokens", 0)
            output_tokens = usage.get("output_tokens", 0)
            summary.add_call(
                model,
                input_tokens,
                output_tokens,
                calculate_cost(model, input_tokens, output_tokens),
            )
        return summary

    def thread_tree_usage(self, root_session_id: str) -> UsageSummary:
        tree = self.thread_tree(root_session_id)
        total = UsageSummary()
        if tree is None:
            return total
        for node in tree.walk():
            total = total + self.usage(node.session.id)
        return total

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, session_id: str, format: str = "markdown") -> Any:
        from .export import export_thread_tree_json, export_thread_tree_markdown

        if format == "markdown":
            return export_thread_tree_markdown(self, session_id)
        if format == "json":
            return export_thread_tree_json(self, session_id)
        raise ValueError(f"Unknown export format: {format}")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event(self, entry: BusEntry) -> int:
        message = entry.message
        if not isinstance(message, str):
            message = json.dumps(message, cls=PayloadEncoder)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO events (session_id, timestamp, sender, recipient, message, summary)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.session_id,
                    entry.timestamp.isoformat(),
                    entry.sender,
                    entry.recipient,
                    message,
                    entry.summary,
                ),
            )
            return cursor.lastrowid

    def get_events(self, session_id: str) -> list[dict]:
        return self._query_events("WHERE session_id = ? ORDER BY id", (session_id,))

    def recent_events(self, n: int = 50) -> list[dict]:
        events = self._query_events("ORDER BY id DESC LIMIT ?", (n,))
        return list(reversed(events))

    def events_since(self, timestamp: datetime) -> list[dict]:
        return self._query_events(
            "WHERE timestamp > ? ORDER BY id", (timestamp.isoformat(),)
        )

    def search_events(self, query: str) -> list[dict]:
        pattern = f"%{query}%"
        return self._query_events(
            "WHERE message LIKE ? OR sender LIKE ? OR recipient LIKE ? ORDER BY id",
            (pattern, pattern, pattern),
        )

    def total_events(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def _query_events(self, clause: str, params: tuple) -> list[dict]:
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT * FROM events {clause}", params).fetchall()
        return [
            {
                "id": r["id"],
                "session_id": r["session_id"],
                "timestamp": r["timestamp"],
                "from": r["sender"],
                "to": r["recipient"],
                "message": r["message"],
                "summary": r["summary"],
            }
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Environment data
    # ------------------------------------------------------------------

    def store_env_data(
        self,
        root_thread_id: str,
        key: str,
        short_description: str,
        value: Any,
        stored_by: str,
    ) -> None:
        now = _now()
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO env_data (root_thread_id, key, short_description, value,
                                      stored_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (root_thread_id, key) DO UPDATE SET
                    short_description = excluded.short_description,
                    value = excluded.value,
                    stored_by = excluded.stored_by,
                    updated_at = excluded.updated_at
                """,
                (root_thread_id, key, short_description, json.dumps(value), stored_by, now, now),
            )

    def get_env_data(self, root_thread_id: str, key: str) -> Optional[EnvDataEntry]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM env_data WHERE root_thread_id = ? AND key = ?",
                (root_thread_id, key),
            ).fetchone()
        return self._env_entry(row) if row else None

    def list_env_data(self, root_thread_id: str) -> list[EnvDataEntry]:
        """Entries sorted by key."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM env_data WHERE root_thread_id = ? ORDER BY key",
                (root_thread_id,),
            ).fetchall()
        return [self._env_entry(r) for r in rows]

    def update_env_data(
        self,
        root_thread_id: str,
        key: str,
        value: Any,
        stored_by: str,
        short_description: Optional[str] = None,
    ) -> bool:
        with self._get_connection() as conn:
            updated = conn.execute(
                """
                UPDATE env_data
                SET value = ?, stored_by = ?, updated_at = ?,
                    short_description = COALESCE(?, short_description)
                WHERE root_thread_id = ? AND key = ?
                """,
                (json.dumps(value), stored_by, _now(), short_description, root_thread_id, key),
            ).rowcount
        return bool(updated)

    def delete_env_data(self, root_thread_id: str, key: str) -> bool:
        with self._get_connection() as conn:
            deleted = conn.execute(
                "DELETE FROM env_data WHERE root_thread_id = ? AND key = ?",
                (root_thread_id, key),
            ).rowcount
        return bool(deleted)

    @staticmethod
    def _env_entry(row) -> EnvDataEntry:
        return EnvDataEntry(
            root_thread_id=row["root_thread_id"],
            key=row["key"],
            short_description=row["short_description"],
            value=json.loads(row["value"]) if row["value"] is not None else None,
            stored_by=row["stored_by"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
