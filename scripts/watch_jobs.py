"""Watch the analysis job table and print each status transition as it happens."""

from __future__ import annotations

import argparse
import sqlite3
import time
from datetime import datetime
from pathlib import Path
from typing import Dict

from app.clients.job_store import AnalysisJobStore
from app.core.config import get_settings


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def poll_job_statuses(
    conn: sqlite3.Connection,
    previous: Dict[str, str],
) -> Dict[str, str]:
    """Print jobs whose status differs from ``previous`` and return the new snapshot."""
    rows = conn.execute(
        "SELECT id, owner_id, status, error_message, resolved_at FROM analysis_jobs "
        "ORDER BY created_at",
    ).fetchall()
    current: Dict[str, str] = {}
    for row in rows:
        job_id = row["id"]
        status = row["status"]
        current[job_id] = status
        if previous.get(job_id) == status:
            continue
        line = f"[{_timestamp()}] JOB {job_id} user={row['owner_id']} status → {status.upper()}"
        if row["resolved_at"]:
            line += f" | resolved_at={row['resolved_at']}"
        if row["error_message"]:
            line += f" | error='{row['error_message']}'"
        print(line)
    return current


def watch(db_path: Path, poll_interval: float = 1.0) -> None:
    # Creates the table when the service has not run yet.
    AnalysisJobStore(db_path)

    _print_header("Watching analysis jobs (Ctrl+C to exit)")
    seen: Dict[str, str] = {}
    while True:
        try:
            with _connect(db_path) as conn:
                seen = poll_job_statuses(conn, seen)
        except sqlite3.Error as exc:
            print(f"[{_timestamp()}] SQLite error: {exc}")
        time.sleep(poll_interval)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--db", type=Path, default=None, help="Override DATABASE_PATH.")
    parser.add_argument("--interval", type=float, default=1.0)
    args = parser.parse_args(argv)
    db_path = (args.db or get_settings().database_path).expanduser()
    watch(db_path, poll_interval=args.interval)


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        main()
    except KeyboardInterrupt:
        print("\nStopped watching.")
