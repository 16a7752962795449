from __future__ import annotations

import sqlite3
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pulse.models import (
    AlertRecord,
    CheckResult,
    MonitoringConfig,
    PerformanceMetric,
    Project,
    ProjectSetting,
    UptimeSummary,
    Website,
)


SCHEMA_VERSION = 1


def _utc_ts() -> float:
    return float(time.time())


def _uuid() -> str:
    return str(uuid.uuid4())


def to_ts(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return float(value.timestamp())


def from_ts(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _connect(path: str) -> sqlite3.Connection:
    p = str(path or "").strip()
    if not p:
        raise ValueError("Missing db_path")
    if p != ":memory:":
        Path(p).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(p, timeout=30, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    # WAL lets probe ticks write while the poller reads.
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.DatabaseError:
        pass
    _ensure_schema_conn(conn)
    return conn


def ensure_schema(db_path: str) -> None:
    conn = _connect(db_path)
    conn.close()


def _ensure_schema_conn(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS schema_meta (k TEXT PRIMARY KEY, v TEXT NOT NULL);")
    row = conn.execute("SELECT v FROM schema_meta WHERE k='version'").fetchone()
    cur = int(row["v"]) if row and row["v"] else 0
    if cur >= SCHEMA_VERSION:
        return

    if cur == 0:
        _apply_v1(conn)
        conn.execute("INSERT OR REPLACE INTO schema_meta (k, v) VALUES ('version', ?)", (str(SCHEMA_VERSION),))
        return

    raise RuntimeError(f"Unsupported schema version upgrade path cur={cur} target={SCHEMA_VERSION}")


def _apply_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
          id TEXT PRIMARY KEY,
          email TEXT NOT NULL,
          created_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS projects (
          id TEXT PRIMARY KEY,
          user_id TEXT REFERENCES users(id) ON DELETE SET NULL,
          name TEXT NOT NULL,
          status TEXT, -- online|offline
          created_at_ts REAL NOT NULL,
          updated_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
          project_id TEXT PRIMARY KEY REFERENCES projects(id) ON DELETE CASCADE,
          status INTEGER, -- NULL means not set
          interval_seconds INTEGER,
          notify_type TEXT,
          updated_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS websites (
          id TEXT PRIMARY KEY,
          project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
          url TEXT NOT NULL,
          created_at_ts REAL NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS checks (
          id TEXT PRIMARY KEY,
          website_id TEXT NOT NULL REFERENCES websites(id) ON DELETE CASCADE,
          checked_at_ts REAL NOT NULL,
          status INTEGER NOT NULL,
          response_time_ms REAL,
          status_code INTEGER,
          error_type TEXT,
          error_message TEXT,
          content_size INTEGER
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS performance_metrics (
          id TEXT PRIMARY KEY,
          website_id TEXT NOT NULL REFERENCES websites(id) ON DELETE CASCADE,
          recorded_at_ts REAL NOT NULL,
          response_time_ms REAL,
          status_code INTEGER,
          content_size INTEGER
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS alerts (
          id TEXT PRIMARY KEY,
          website_id TEXT NOT NULL REFERENCES websites(id) ON DELETE CASCADE,
          message TEXT NOT NULL,
          created_at_ts REAL NOT NULL,
          resolved_at_ts REAL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS uptime_logs (
          id TEXT PRIMARY KEY,
          website_id TEXT NOT NULL REFERENCES websites(id) ON DELETE CASCADE,
          window_start_ts REAL NOT NULL,
          uptime REAL NOT NULL,
          downtime REAL NOT NULL,
          checks INTEGER NOT NULL,
          failures INTEGER NOT NULL,
          avg_response_time_ms REAL,
          created_at_ts REAL NOT NULL,
          UNIQUE(website_id, window_start_ts)
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_websites_project ON websites(project_id);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_checks_website_ts ON checks(website_id, checked_at_ts);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_checks_ts ON checks(checked_at_ts);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_perf_ts ON performance_metrics(recorded_at_ts);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_alerts_open ON alerts(website_id, resolved_at_ts);")


def _bool_or_none(value: Any) -> bool | None:
    if value is None:
        return None
    return bool(int(value))


def _alert_from_row(row: sqlite3.Row) -> AlertRecord:
    return AlertRecord(
        id=str(row["id"]),
        website_id=str(row["website_id"]),
        message=str(row["message"]),
        created_at=from_ts(row["created_at_ts"]),
        resolved_at=from_ts(row["resolved_at_ts"]),
    )


def _check_from_row(row: sqlite3.Row) -> CheckResult:
    return CheckResult(
        website_id=str(row["website_id"]),
        checked_at=from_ts(row["checked_at_ts"]),
        success=bool(row["status"]),
        response_time_ms=row["response_time_ms"],
        status_code=row["status_code"],
        error_type=row["error_type"],
        error_message=row["error_message"],
        content_size=row["content_size"],
    )


# --- Configuration (projects / settings / websites) ---


def fetch_config(db_path: str) -> MonitoringConfig:
    conn = _connect(db_path)
    try:
        project_rows = conn.execute(
            """
            SELECT p.id, p.name, p.user_id,
                   s.project_id AS setting_project_id, s.status AS setting_status,
                   s.interval_seconds, s.notify_type
            FROM projects p
            LEFT JOIN settings s ON s.project_id=p.id
            ORDER BY p.id
            """
        ).fetchall()
        website_rows = conn.execute("SELECT id, project_id, url FROM websites ORDER BY id").fetchall()
    finally:
        conn.close()

    websites: dict[str, list[Website]] = {}
    for r in website_rows:
        websites.setdefault(str(r["project_id"]), []).append(
            Website(id=str(r["id"]), project_id=str(r["project_id"]), url=str(r["url"]))
        )

    projects: list[Project] = []
    for r in project_rows:
        setting = None
        if r["setting_project_id"] is not None:
            setting = ProjectSetting(
                status=_bool_or_none(r["setting_status"]),
                interval=r["interval_seconds"],
                notify_type=r["notify_type"],
            )
        projects.append(
            Project(
                id=str(r["id"]),
                name=str(r["name"]),
                user_id=r["user_id"],
                setting=setting,
                websites=websites.get(str(r["id"]), []),
            )
        )
    return MonitoringConfig(projects=projects)


def website_exists(db_path: str, *, website_id: str) -> bool:
    conn = _connect(db_path)
    try:
        row = conn.execute("SELECT 1 FROM websites WHERE id=?", (website_id,)).fetchone()
        return row is not None
    finally:
        conn.close()


def is_monitoring_enabled(db_path: str, *, project_id: str) -> bool:
    conn = _connect(db_path)
    try:
        row = conn.execute("SELECT status FROM settings WHERE project_id=?", (project_id,)).fetchone()
        if row is None:
            return True
        return _bool_or_none(row["status"]) is not False
    finally:
        conn.close()


def update_project_status(db_path: str, *, project_id: str, status: str) -> None:
    conn = _connect(db_path)
    try:
        conn.execute(
            "UPDATE projects SET status=?, updated_at_ts=? WHERE id=?",
            (status, _utc_ts(), project_id),
        )
    finally:
        conn.close()


def get_notification_recipient(db_path: str, *, project_id: str) -> str | None:
    conn = _connect(db_path)
    try:
        row = conn.execute(
            "SELECT u.email FROM projects p JOIN users u ON u.id=p.user_id WHERE p.id=?",
            (project_id,),
        ).fetchone()
        if not row or not row["email"]:
            return None
        return str(row["email"])
    finally:
        conn.close()


def create_user(db_path: str, *, email: str, user_id: str | None = None) -> str:
    conn = _connect(db_path)
    try:
        uid = user_id or _uuid()
        conn.execute(
            "INSERT INTO users (id, email, created_at_ts) VALUES (?, ?, ?)",
            (uid, email.strip(), _utc_ts()),
        )
        return uid
    finally:
        conn.close()


def create_project(
    db_path: str,
    *,
    name: str,
    user_id: str | None = None,
    project_id: str | None = None,
) -> str:
    conn = _connect(db_path)
    try:
        pid = project_id or _uuid()
        now = _utc_ts()
        conn.execute(
            "INSERT INTO projects (id, user_id, name, status, created_at_ts, updated_at_ts) VALUES (?, ?, ?, NULL, ?, ?)",
            (pid, user_id, name.strip(), now, now),
        )
        return pid
    finally:
        conn.close()


def get_project_status(db_path: str, *, project_id: str) -> str | None:
    conn = _connect(db_path)
    try:
        row = conn.execute("SELECT status FROM projects WHERE id=?", (project_id,)).fetchone()
        return row["status"] if row else None
    finally:
        conn.close()


def set_project_setting(
    db_path: str,
    *,
    project_id: str,
    status: bool | None = None,
    interval: int | None = None,
    notify_type: str | None = None,
) -> None:
    conn = _connect(db_path)
    try:
        conn.execute(
            """
            INSERT INTO settings (project_id, status, interval_seconds, notify_type, updated_at_ts)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(project_id) DO UPDATE SET
              status=excluded.status,
              interval_seconds=excluded.interval_seconds,
              notify_type=excluded.notify_type,
              updated_at_ts=excluded.updated_at_ts
            """,
            (project_id, None if status is None else int(bool(status)), interval, notify_type, _utc_ts()),
        )
    finally:
        conn.close()


def add_website(db_path: str, *, project_id: str, url: str, website_id: str | None = None) -> str:
    conn = _connect(db_path)
    try:
        wid = website_id or _uuid()
        conn.execute(
            "INSERT INTO websites (id, project_id, url, created_at_ts) VALUES (?, ?, ?, ?)",
            (wid, project_id, url.strip(), _utc_ts()),
        )
        return wid
    finally:
        conn.close()


def update_website_url(db_path: str, *, website_id: str, url: str) -> bool:
    conn = _connect(db_path)
    try:
        cur = conn.execute("UPDATE websites SET url=? WHERE id=?", (url.strip(), website_id))
        return cur.rowcount > 0
    finally:
        conn.close()


def delete_website(db_path: str, *, website_id: str) -> bool:
    conn = _connect(db_path)
    try:
        cur = conn.execute("DELETE FROM websites WHERE id=?", (website_id,))
        return cur.rowcount > 0
    finally:
        conn.close()


# --- Checks and performance ---


def append_check(db_path: str, *, check: CheckResult) -> str:
    conn = _connect(db_path)
    try:
        cid = _uuid()
        conn.execute(
            """
            INSERT INTO checks (
              id, website_id, checked_at_ts, status, response_time_ms, status_code,
              error_type, error_message, content_size
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                cid,
                check.website_id,
                to_ts(check.checked_at),
                int(bool(check.success)),
                check.response_time_ms,
                check.status_code,
                check.error_type,
                check.error_message,
                check.content_size,
            ),
        )
        return cid
    finally:
        conn.close()


def append_performance(db_path: str, *, metric: PerformanceMetric) -> str:
    conn = _connect(db_path)
    try:
        mid = _uuid()
        conn.execute(
            """
            INSERT INTO performance_metrics (id, website_id, recorded_at_ts, response_time_ms, status_code, content_size)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                mid,
                metric.website_id,
                to_ts(metric.recorded_at),
                metric.response_time_ms,
                metric.status_code,
                metric.content_size,
            ),
        )
        return mid
    finally:
        conn.close()


def list_checks(
    db_path: str,
    *,
    website_id: str,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[CheckResult]:
    where = ["website_id=?"]
    params: list[Any] = [website_id]
    if since is not None:
        where.append("checked_at_ts >= ?")
        params.append(to_ts(since))
    if until is not None:
        where.append("checked_at_ts < ?")
        params.append(to_ts(until))

    conn = _connect(db_path)
    try:
        rows = conn.execute(
            f"SELECT * FROM checks WHERE {' AND '.join(where)} ORDER BY checked_at_ts ASC",
            tuple(params),
        ).fetchall()
        return [_check_from_row(r) for r in rows]
    finally:
        conn.close()


def count_performance(db_path: str, *, website_id: str) -> int:
    conn = _connect(db_path)
    try:
        row = conn.execute("SELECT COUNT(*) AS n FROM performance_metrics WHERE website_id=?", (website_id,)).fetchone()
        return int(row["n"])
    finally:
        conn.close()


def delete_checks_older_than(db_path: str, *, before: datetime) -> int:
    conn = _connect(db_path)
    try:
        cur = conn.execute("DELETE FROM checks WHERE checked_at_ts < ?", (to_ts(before),))
        return int(cur.rowcount)
    finally:
        conn.close()


def delete_performance_older_than(db_path: str, *, before: datetime) -> int:
    conn = _connect(db_path)
    try:
        cur = conn.execute("DELETE FROM performance_metrics WHERE recorded_at_ts < ?", (to_ts(before),))
        return int(cur.rowcount)
    finally:
        conn.close()


# --- Alerts ---


def find_open_alert(db_path: str, *, website_id: str) -> AlertRecord | None:
    conn = _connect(db_path)
    try:
        row = conn.execute(
            """
            SELECT * FROM alerts
            WHERE website_id=? AND resolved_at_ts IS NULL
            ORDER BY created_at_ts ASC
            LIMIT 1
            """,
            (website_id,),
        ).fetchone()
        return _alert_from_row(row) if row else None
    finally:
        conn.close()


def create_alert(db_path: str, *, website_id: str, message: str, created_at: datetime | None = None) -> AlertRecord:
    conn = _connect(db_path)
    try:
        aid = _uuid()
        ts = to_ts(created_at) if created_at is not None else _utc_ts()
        conn.execute(
            "INSERT INTO alerts (id, website_id, message, created_at_ts, resolved_at_ts) VALUES (?, ?, ?, ?, NULL)",
            (aid, website_id, message, ts),
        )
        return AlertRecord(id=aid, website_id=website_id, message=message, created_at=from_ts(ts))
    finally:
        conn.close()


def resolve_alert(db_path: str, *, alert_id: str, resolved_at: datetime | None = None) -> bool:
    conn = _connect(db_path)
    try:
        ts = to_ts(resolved_at) if resolved_at is not None else _utc_ts()
        cur = conn.execute(
            "UPDATE alerts SET resolved_at_ts=? WHERE id=? AND resolved_at_ts IS NULL",
            (ts, alert_id),
        )
        return cur.rowcount > 0
    finally:
        conn.close()


def resolve_open_alerts(db_path: str, *, website_id: str, resolved_at: datetime | None = None) -> int:
    conn = _connect(db_path)
    try:
        ts = to_ts(resolved_at) if resolved_at is not None else _utc_ts()
        cur = conn.execute(
            "UPDATE alerts SET resolved_at_ts=? WHERE website_id=? AND resolved_at_ts IS NULL",
            (ts, website_id),
        )
        return int(cur.rowcount)
    finally:
        conn.close()


def list_alerts(db_path: str, *, website_id: str) -> list[AlertRecord]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT * FROM alerts WHERE website_id=? ORDER BY created_at_ts ASC",
            (website_id,),
        ).fetchall()
        return [_alert_from_row(r) for r in rows]
    finally:
        conn.close()


# --- Uptime summaries ---


def append_uptime_summary(db_path: str, *, summary: UptimeSummary) -> str:
    conn = _connect(db_path)
    try:
        sid = _uuid()
        conn.execute(
            """
            INSERT INTO uptime_logs (
              id, website_id, window_start_ts, uptime, downtime, checks, failures,
              avg_response_time_ms, created_at_ts
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                sid,
                summary.website_id,
                to_ts(summary.window_start),
                float(summary.uptime),
                float(summary.downtime),
                int(summary.checks),
                int(summary.failures),
                summary.avg_response_time_ms,
                _utc_ts(),
            ),
        )
        return sid
    finally:
        conn.close()


def list_uptime_summaries(db_path: str, *, website_id: str) -> list[UptimeSummary]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT * FROM uptime_logs WHERE website_id=? ORDER BY window_start_ts ASC",
            (website_id,),
        ).fetchall()
        return [
            UptimeSummary(
                website_id=str(r["website_id"]),
                window_start=from_ts(r["window_start_ts"]),
                uptime=float(r["uptime"]),
                downtime=float(r["downtime"]),
                checks=int(r["checks"]),
                failures=int(r["failures"]),
                avg_response_time_ms=r["avg_response_time_ms"],
            )
            for r in rows
        ]
    finally:
        conn.close()
