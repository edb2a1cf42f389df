from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..core.enums import MonitoringOutcome
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_json, parse_stored_datetime, to_json
from ..monitoring.model import MonitoringEvent
from .model import AttendanceRecord, ProgressReport
from .repository import AttendanceRepository

_COLUMNS = (
    "worker_id, work_date, clock_in_time, clock_out_time, working_minutes, events, progress_reports, "
    "pruned_event_count, pruned_present_count"
)


def _row_to_record(r: Dict[str, Any]) -> AttendanceRecord:
    worker_id = int(r["worker_id"])
    work_date = r["work_date"]
    events = tuple(
        MonitoringEvent(
            timestamp=parse_stored_datetime(e["timestamp"]),
            outcome=MonitoringOutcome(e["outcome"]),
            evidence_ref=e.get("evidence_ref"),
            note=e.get("note"),
        )
        for e in from_json(r["events"], [])
    )
    reports = tuple(
        ProgressReport(
            worker_id=worker_id,
            work_date=work_date,
            summary=p["summary"],
            submitted_at=parse_stored_datetime(p["submitted_at"]),
            tasks_completed=int(p.get("tasks_completed", 0)),
        )
        for p in from_json(r["progress_reports"], [])
    )
    return AttendanceRecord(
        worker_id=worker_id,
        work_date=work_date,
        clock_in_time=r.get("clock_in_time"),
        clock_out_time=r.get("clock_out_time"),
        events=events,
        progress_reports=reports,
        working_minutes=int(r.get("working_minutes") or 0),
        pruned_event_count=int(r.get("pruned_event_count") or 0),
        pruned_present_count=int(r.get("pruned_present_count") or 0),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_worker_and_date(self, worker_id: int, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE worker_id=%s AND work_date=%s",
                (int(worker_id), work_date),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def save(self, record: AttendanceRecord) -> None:
        events = [
            {"timestamp": e.timestamp, "outcome": e.outcome, "evidence_ref": e.evidence_ref, "note": e.note}
            for e in record.events
        ]
        reports = [
            {"summary": p.summary, "submitted_at": p.submitted_at, "tasks_completed": p.tasks_completed}
            for p in record.progress_reports
        ]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO attendance_records({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    clock_in_time=VALUES(clock_in_time), clock_out_time=VALUES(clock_out_time),
                    working_minutes=VALUES(working_minutes), events=VALUES(events),
                    progress_reports=VALUES(progress_reports),
                    pruned_event_count=VALUES(pruned_event_count),
                    pruned_present_count=VALUES(pruned_present_count)
                """,
                (
                    record.worker_id,
                    record.work_date,
                    record.clock_in_time,
                    record.clock_out_time,
                    record.working_minutes,
                    to_json(events),
                    to_json(reports),
                    record.pruned_event_count,
                    record.pruned_present_count,
                ),
            )

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE work_date=%s ORDER BY worker_id", (work_date,))
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_with_events_before(self, cutoff: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM attendance_records
                WHERE work_date < %s AND JSON_LENGTH(events) > 0
                ORDER BY work_date, worker_id
                """,
                (cutoff,),
            )
            return [_row_to_record(r) for r in fetchall(cur)]
