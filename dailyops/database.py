"""
Database schema and management for the daily operations checklist.

Relational rendition of the checklist store:
- task_instances is UNIQUE on (template_id, day, site_id), so a day can never
  hold two instances of one template, whatever the callers do concurrently.
- audit_entries and instance_comments are append-only tables; appending is an
  INSERT, never a rewrite of the parent row.
- day_completions has a partial UNIQUE index on (site_id, day) WHERE completed = 1,
  so at most one completed record per day and site is ever durable.
"""
import json
import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Tuple

from opentelemetry import trace

from dailyops.exceptions import PreconditionFailedError, TransientStoreError
from dailyops.tracing import add_span_attribute, trace_span

logger = logging.getLogger(__name__)

# Query performance threshold (seconds) - queries slower than this will be logged
QUERY_SLOW_THRESHOLD = float(os.getenv("DB_QUERY_SLOW_THRESHOLD", "0.1"))
# Enable query logging (can be set via environment variable)
ENABLE_QUERY_LOGGING = os.getenv("DB_ENABLE_QUERY_LOGGING", "true").lower() == "true"

INSTANCE_COLUMNS = (
    "id, template_id, site_id, day, title, description, service, display_order, "
    "image_url, document_url, document_name, completed, completed_by, completed_at, "
    "created_at, updated_at"
)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS task_templates (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        service TEXT NOT NULL,
        sites TEXT NOT NULL DEFAULT '[]',
        display_order INTEGER NOT NULL DEFAULT 0,
        active INTEGER NOT NULL DEFAULT 1,
        image_url TEXT,
        document_url TEXT,
        document_name TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_instances (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        template_id TEXT NOT NULL,
        site_id TEXT NOT NULL,
        day TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        service TEXT NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0,
        image_url TEXT,
        document_url TEXT,
        document_name TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        completed_by TEXT,
        completed_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (template_id, day, site_id),
        CHECK (
            (completed = 0 AND completed_by IS NULL AND completed_at IS NULL)
            OR (completed = 1 AND completed_by IS NOT NULL AND completed_at IS NOT NULL)
        )
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        instance_id INTEGER NOT NULL REFERENCES task_instances(id),
        action TEXT NOT NULL CHECK (action IN ('created', 'completed', 'uncompleted', 'commented')),
        actor_id TEXT NOT NULL,
        actor_name TEXT NOT NULL,
        description TEXT NOT NULL,
        changes TEXT NOT NULL DEFAULT '[]',
        idempotency_key TEXT,
        timestamp TEXT NOT NULL,
        UNIQUE (instance_id, idempotency_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS instance_comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        instance_id INTEGER NOT NULL REFERENCES task_instances(id),
        content TEXT NOT NULL,
        author_id TEXT NOT NULL,
        author_name TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS day_completions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_id TEXT NOT NULL,
        day TEXT NOT NULL,
        completed INTEGER NOT NULL DEFAULT 1,
        completed_by TEXT NOT NULL,
        completed_at TEXT NOT NULL,
        cancelled_by TEXT,
        cancelled_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_instances_site_day ON task_instances(site_id, day)",
    "CREATE INDEX IF NOT EXISTS idx_audit_entries_instance ON audit_entries(instance_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_instance ON instance_comments(instance_id)",
    "CREATE INDEX IF NOT EXISTS idx_day_completions_site_day ON day_completions(site_id, day)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_day_completions_active
    ON day_completions(site_id, day) WHERE completed = 1
    """,
]


class ChecklistDatabase:
    """SQLite store for task instances, their audit trail and day completions."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection and create schema if needed.

        Args:
            db_path: SQLite file path. If None, uses DAILYOPS_DB_PATH.
        """
        self.db_path = db_path or os.getenv("DAILYOPS_DB_PATH", "/app/data/dailyops.db")
        self.db_type = "sqlite"
        self._ensure_db_directory()
        self._init_schema()

    def _ensure_db_directory(self):
        """Ensure database directory exists."""
        db_dir = os.path.dirname(os.path.abspath(self.db_path))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        # Autocommit mode; write paths open their own BEGIN IMMEDIATE transaction
        conn = sqlite3.connect(self.db_path, timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.OperationalError:
            logger.debug("WAL journal mode unavailable for %s", self.db_path)
        return conn

    @contextmanager
    def _connection(self, operation: str, **context):
        """
        Open a connection for one operation. Lock contention and I/O failures
        surface as TransientStoreError with the operation's context.
        """
        conn = None
        try:
            conn = self._get_connection()
            yield conn
        except sqlite3.OperationalError as e:
            logger.error(f"Store error during {operation}: {e}", extra={"context": context})
            raise TransientStoreError(
                f"Storage temporarily unavailable during {operation}",
                operation=operation,
                context=context,
                original_error=e,
            ) from e
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection):
        """BEGIN IMMEDIATE ... COMMIT; takes the write lock up front so read-then-write is serialized."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn.cursor()
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def _execute_with_logging(self, cursor, query: str, params: Tuple = ()):
        """
        Execute a query with performance logging and tracing.
        """
        query_type = query.strip().split(None, 1)[0].lower()
        start_time = time.time()
        with trace_span(
            f"db.{query_type}",
            attributes={
                "db.system": self.db_type,
                "db.operation": query_type,
            },
            kind=trace.SpanKind.CLIENT
        ):
            try:
                result = cursor.execute(query, params)
            except Exception:
                duration = time.time() - start_time
                logger.error(f"Query failed after {duration:.4f}s: {query.strip()[:200]}", exc_info=True)
                raise
            duration = time.time() - start_time
            add_span_attribute("db.duration_ms", duration * 1000)
            if ENABLE_QUERY_LOGGING and duration >= QUERY_SLOW_THRESHOLD:
                query_preview = query.strip()[:200]
                logger.warning(
                    f"Slow query: {duration:.4f}s - {query_preview}",
                    extra={"duration": duration, "params_count": len(params) if params else 0}
                )
                add_span_attribute("db.slow_query", True)
            return result

    def _init_schema(self):
        """Initialize database schema."""
        with self._connection("init_schema") as conn:
            with self._transaction(conn) as cursor:
                for statement in SCHEMA:
                    cursor.execute(statement)
        logger.info(f"Checklist database ready at {self.db_path}")

    def ping(self) -> None:
        with self._connection("ping") as conn:
            conn.execute("SELECT 1").fetchone()

    # ---- row conversion ----

    @staticmethod
    def _instance_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        instance = dict(row)
        instance["order"] = instance.pop("display_order")
        instance["completed"] = bool(instance["completed"])
        return instance

    @staticmethod
    def _audit_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        entry = dict(row)
        try:
            entry["changes"] = json.loads(entry.get("changes") or "[]")
        except (json.JSONDecodeError, TypeError):
            entry["changes"] = []
        return entry

    @staticmethod
    def _template_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        template = dict(row)
        template["order"] = template.pop("display_order")
        template["active"] = bool(template["active"])
        try:
            template["sites"] = json.loads(template.get("sites") or "[]")
        except (json.JSONDecodeError, TypeError):
            template["sites"] = []
        return template

    # ---- templates (read by the template source) ----

    def save_template(self, template: Dict[str, Any], now: str) -> None:
        """Insert or replace a template row. Used to seed the local catalog."""
        with self._connection("save_template", template_id=template.get("id")) as conn:
            with self._transaction(conn) as cursor:
                self._execute_with_logging(cursor, """
                    INSERT INTO task_templates (
                        id, title, description, service, sites, display_order, active,
                        image_url, document_url, document_name, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        title = excluded.title,
                        description = excluded.description,
                        service = excluded.service,
                        sites = excluded.sites,
                        display_order = excluded.display_order,
                        active = excluded.active,
                        image_url = excluded.image_url,
                        document_url = excluded.document_url,
                        document_name = excluded.document_name,
                        updated_at = excluded.updated_at
                """, (
                    template["id"],
                    template["title"],
                    template.get("description") or "",
                    template["service"],
                    json.dumps(list(template.get("sites") or [])),
                    int(template.get("order", 0)),
                    1 if template.get("active", True) else 0,
                    template.get("image_url"),
                    template.get("document_url"),
                    template.get("document_name"),
                    now,
                    now,
                ))

    def list_templates(self, active_only: bool = True) -> List[Dict[str, Any]]:
        with self._connection("list_templates") as conn:
            query = "SELECT * FROM task_templates"
            if active_only:
                query += " WHERE active = 1"
            query += " ORDER BY display_order ASC, id ASC"
            rows = self._execute_with_logging(conn.cursor(), query).fetchall()
            return [self._template_from_row(row) for row in rows]

    # ---- instances ----

    def count_instances(self, day: str, site_id: str) -> int:
        with self._connection("count_instances", day=day, site_id=site_id) as conn:
            row = self._execute_with_logging(
                conn.cursor(),
                "SELECT COUNT(*) FROM task_instances WHERE site_id = ? AND day = ?",
                (site_id, day),
            ).fetchone()
            return int(row[0])

    def count_progress(self, day: str, site_id: str) -> Tuple[int, int]:
        """Return (total, completed) for a day."""
        with self._connection("count_progress", day=day, site_id=site_id) as conn:
            row = self._execute_with_logging(conn.cursor(), """
                SELECT COUNT(*) AS total, COALESCE(SUM(completed), 0) AS done
                FROM task_instances WHERE site_id = ? AND day = ?
            """, (site_id, day)).fetchone()
            return int(row["total"]), int(row["done"])

    def list_instance_template_ids(self, day: str, site_id: str) -> List[str]:
        with self._connection("list_instance_template_ids", day=day, site_id=site_id) as conn:
            rows = self._execute_with_logging(
                conn.cursor(),
                "SELECT template_id FROM task_instances WHERE site_id = ? AND day = ?",
                (site_id, day),
            ).fetchall()
            return [row["template_id"] for row in rows]

    def create_instances(
        self,
        day: str,
        site_id: str,
        snapshots: Iterable[Dict[str, Any]],
        now: str,
        require_empty_day: bool = True,
    ) -> List[int]:
        """
        Write a day's instances in one transaction and return the new IDs.

        With ``require_empty_day`` the existence check runs inside the same
        write transaction, so two concurrent generators cannot both pass it.
        Templates that already have an instance for the day are skipped by the
        uniqueness constraint.
        """
        snapshots = list(snapshots)
        created: List[int] = []
        with self._connection("create_instances", day=day, site_id=site_id) as conn:
            with self._transaction(conn) as cursor:
                if require_empty_day:
                    row = self._execute_with_logging(
                        cursor,
                        "SELECT COUNT(*) FROM task_instances WHERE site_id = ? AND day = ?",
                        (site_id, day),
                    ).fetchone()
                    if row[0] > 0:
                        logger.info(f"Instances already exist for site {site_id} on {day}; nothing written")
                        return []
                for snapshot in snapshots:
                    self._execute_with_logging(cursor, """
                        INSERT OR IGNORE INTO task_instances (
                            template_id, site_id, day, title, description, service, display_order,
                            image_url, document_url, document_name, completed, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """, (
                        snapshot["template_id"],
                        site_id,
                        day,
                        snapshot["title"],
                        snapshot.get("description") or "",
                        snapshot["service"],
                        int(snapshot.get("order", 0)),
                        snapshot.get("image_url"),
                        snapshot.get("document_url"),
                        snapshot.get("document_name"),
                        now,
                        now,
                    ))
                    if cursor.rowcount == 1:
                        created.append(cursor.lastrowid)
        return created

    def get_instance(self, instance_id: int, include_children: bool = True) -> Optional[Dict[str, Any]]:
        with self._connection("get_instance", instance_id=instance_id) as conn:
            cursor = conn.cursor()
            row = self._execute_with_logging(
                cursor,
                f"SELECT {INSTANCE_COLUMNS} FROM task_instances WHERE id = ?",
                (instance_id,),
            ).fetchone()
            if not row:
                return None
            instance = self._instance_from_row(row)
            if include_children:
                self._attach_children(cursor, [instance])
            return instance

    def list_instances(self, day: str, site_id: str, include_children: bool = True) -> List[Dict[str, Any]]:
        """Instances of one day ordered by display order, with comments and history attached."""
        with self._connection("list_instances", day=day, site_id=site_id) as conn:
            cursor = conn.cursor()
            rows = self._execute_with_logging(cursor, f"""
                SELECT {INSTANCE_COLUMNS} FROM task_instances
                WHERE site_id = ? AND day = ?
                ORDER BY display_order ASC, id ASC
            """, (site_id, day)).fetchall()
            instances = [self._instance_from_row(row) for row in rows]
            if include_children and instances:
                self._attach_children(cursor, instances)
            return instances

    def _attach_children(self, cursor, instances: List[Dict[str, Any]]) -> None:
        by_id = {instance["id"]: instance for instance in instances}
        for instance in instances:
            instance["comments"] = []
            instance["history"] = []
        placeholders = ",".join("?" for _ in by_id)
        ids = tuple(by_id)
        for row in self._execute_with_logging(cursor, f"""
            SELECT id, instance_id, content, author_id, author_name, created_at
            FROM instance_comments WHERE instance_id IN ({placeholders}) ORDER BY id ASC
        """, ids).fetchall():
            by_id[row["instance_id"]]["comments"].append(dict(row))
        for row in self._execute_with_logging(cursor, f"""
            SELECT id, instance_id, action, actor_id, actor_name, description, changes,
                   idempotency_key, timestamp
            FROM audit_entries WHERE instance_id IN ({placeholders}) ORDER BY id ASC
        """, ids).fetchall():
            by_id[row["instance_id"]]["history"].append(self._audit_from_row(row))

    def _idempotency_key_seen(self, cursor, instance_id: int, idempotency_key: Optional[str]) -> bool:
        if not idempotency_key:
            return False
        row = self._execute_with_logging(
            cursor,
            "SELECT 1 FROM audit_entries WHERE instance_id = ? AND idempotency_key = ?",
            (instance_id, idempotency_key),
        ).fetchone()
        return row is not None

    def _insert_audit_entry(
        self,
        cursor,
        instance_id: int,
        action: str,
        actor_id: str,
        actor_name: str,
        description: str,
        changes: List[Dict[str, Any]],
        timestamp: str,
        idempotency_key: Optional[str],
    ) -> int:
        self._execute_with_logging(cursor, """
            INSERT INTO audit_entries (
                instance_id, action, actor_id, actor_name, description, changes, idempotency_key, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            instance_id, action, actor_id, actor_name, description,
            json.dumps(changes), idempotency_key, timestamp,
        ))
        return cursor.lastrowid

    def set_completion(
        self,
        instance_id: int,
        completed: bool,
        actor_id: str,
        actor_name: str,
        now: str,
        description: str,
        idempotency_key: Optional[str] = None,
    ) -> Optional[bool]:
        """
        Set the completion flag and append the matching audit entry atomically.

        Returns:
            None if the instance does not exist, False if ``idempotency_key`` was
            already applied (nothing written), True otherwise.
        """
        action = "completed" if completed else "uncompleted"
        with self._connection("set_completion", instance_id=instance_id) as conn:
            with self._transaction(conn) as cursor:
                row = self._execute_with_logging(
                    cursor, "SELECT completed FROM task_instances WHERE id = ?", (instance_id,)
                ).fetchone()
                if row is None:
                    return None
                if self._idempotency_key_seen(cursor, instance_id, idempotency_key):
                    logger.info(f"Replayed completion request {idempotency_key} on instance {instance_id} ignored")
                    return False
                previous = bool(row["completed"])
                if completed:
                    self._execute_with_logging(cursor, """
                        UPDATE task_instances
                        SET completed = 1, completed_by = ?, completed_at = ?, updated_at = ?
                        WHERE id = ?
                    """, (actor_id, now, now, instance_id))
                else:
                    self._execute_with_logging(cursor, """
                        UPDATE task_instances
                        SET completed = 0, completed_by = NULL, completed_at = NULL, updated_at = ?
                        WHERE id = ?
                    """, (now, instance_id))
                self._insert_audit_entry(
                    cursor, instance_id, action, actor_id, actor_name, description,
                    [{"field": "completed", "old_value": previous, "new_value": completed}],
                    now, idempotency_key,
                )
        return True

    def add_comment(
        self,
        instance_id: int,
        content: str,
        author_id: str,
        author_name: str,
        now: str,
        description: str,
        idempotency_key: Optional[str] = None,
    ) -> Optional[bool]:
        """
        Append a comment and its ``commented`` audit entry atomically.
        Return values follow ``set_completion``.
        """
        with self._connection("add_comment", instance_id=instance_id) as conn:
            with self._transaction(conn) as cursor:
                row = self._execute_with_logging(
                    cursor, "SELECT id FROM task_instances WHERE id = ?", (instance_id,)
                ).fetchone()
                if row is None:
                    return None
                if self._idempotency_key_seen(cursor, instance_id, idempotency_key):
                    logger.info(f"Replayed comment request {idempotency_key} on instance {instance_id} ignored")
                    return False
                self._execute_with_logging(cursor, """
                    INSERT INTO instance_comments (instance_id, content, author_id, author_name, created_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (instance_id, content, author_id, author_name, now))
                self._insert_audit_entry(
                    cursor, instance_id, "commented", author_id, author_name, description,
                    [{"field": "comment", "old_value": None, "new_value": content}],
                    now, idempotency_key,
                )
        return True

    # ---- day completions ----

    def get_day_completion(self, day: str, site_id: str) -> Optional[Dict[str, Any]]:
        """The active (completed = 1) record for a day, if any."""
        with self._connection("get_day_completion", day=day, site_id=site_id) as conn:
            row = self._execute_with_logging(conn.cursor(), """
                SELECT * FROM day_completions
                WHERE site_id = ? AND day = ? AND completed = 1
            """, (site_id, day)).fetchone()
            return self._completion_from_row(row) if row else None

    @staticmethod
    def _completion_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        record = dict(row)
        record["completed"] = bool(record["completed"])
        return record

    def complete_day(self, day: str, site_id: str, actor_id: str, now: str) -> Tuple[Dict[str, Any], bool]:
        """
        Re-check the gate and write the completion record in one transaction.

        Returns:
            (record, already_completed)

        Raises:
            PreconditionFailedError: If the day has no instances or any is pending
        """
        with self._connection("complete_day", day=day, site_id=site_id) as conn:
            with self._transaction(conn) as cursor:
                existing = self._execute_with_logging(cursor, """
                    SELECT * FROM day_completions
                    WHERE site_id = ? AND day = ? AND completed = 1
                """, (site_id, day)).fetchone()
                if existing is not None:
                    return self._completion_from_row(existing), True

                row = self._execute_with_logging(cursor, """
                    SELECT COUNT(*) AS total, COALESCE(SUM(completed), 0) AS done
                    FROM task_instances WHERE site_id = ? AND day = ?
                """, (site_id, day)).fetchone()
                total, done = int(row["total"]), int(row["done"])
                if total == 0:
                    raise PreconditionFailedError(
                        f"Day {day} has no tasks for site {site_id}",
                        day=day, site_id=site_id, total=total, completed=done,
                    )
                if done < total:
                    raise PreconditionFailedError(
                        f"Not all tasks are complete for site {site_id} on {day} ({done}/{total})",
                        day=day, site_id=site_id, total=total, completed=done,
                    )

                record_id = self._execute_with_logging(cursor, """
                    INSERT INTO day_completions (
                        site_id, day, completed, completed_by, completed_at, created_at, updated_at
                    ) VALUES (?, ?, 1, ?, ?, ?, ?)
                """, (site_id, day, actor_id, now, now, now)).lastrowid
                record = self._execute_with_logging(
                    cursor, "SELECT * FROM day_completions WHERE id = ?", (record_id,)
                ).fetchone()
                return self._completion_from_row(record), False

    def cancel_day_completion(self, day: str, site_id: str, actor_id: str, now: str) -> Optional[Dict[str, Any]]:
        """Clear the active completion record. Returns the cleared record or None."""
        with self._connection("cancel_day_completion", day=day, site_id=site_id) as conn:
            with self._transaction(conn) as cursor:
                row = self._execute_with_logging(cursor, """
                    SELECT id FROM day_completions
                    WHERE site_id = ? AND day = ? AND completed = 1
                """, (site_id, day)).fetchone()
                if row is None:
                    return None
                self._execute_with_logging(cursor, """
                    UPDATE day_completions
                    SET completed = 0, cancelled_by = ?, cancelled_at = ?, updated_at = ?
                    WHERE id = ?
                """, (actor_id, now, now, row["id"]))
                cleared = self._execute_with_logging(
                    cursor, "SELECT * FROM day_completions WHERE id = ?", (row["id"],)
                ).fetchone()
                return self._completion_from_row(cleared)
