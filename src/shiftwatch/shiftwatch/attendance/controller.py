from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import date_arg, int_field, json_body
from ..container import Container
from .model import AttendanceRecord


def record_to_dict(r: AttendanceRecord) -> dict:
    return {
        "worker_id": r.worker_id,
        "work_date": r.work_date.isoformat(),
        "clock_in_time": r.clock_in_time.isoformat() if r.clock_in_time else None,
        "clock_out_time": r.clock_out_time.isoformat() if r.clock_out_time else None,
        "working_hours": str(r.working_hours),
        "present_count": r.present_count,
        "event_count": r.event_count,
        "progress_reports": len(r.progress_reports),
        "events": [
            {"timestamp": e.timestamp.isoformat(), "outcome": e.outcome.value, "evidence_ref": e.evidence_ref}
            for e in r.events
        ],
    }


def register(app: Flask, container: Container) -> None:
    @app.route("/api/workers/<int:worker_id>/clock-in", methods=["POST"], endpoint="clock_in")
    def clock_in(worker_id: int):
        record = container.attendance_service.clock_in(worker_id, now=container.timers.now())
        return jsonify({"success": True, "attendance": record_to_dict(record)}), 201

    @app.route("/api/workers/<int:worker_id>/clock-out", methods=["POST"], endpoint="clock_out")
    def clock_out(worker_id: int):
        record = container.attendance_service.clock_out(worker_id, now=container.timers.now())
        return jsonify({"success": True, "attendance": record_to_dict(record)})

    @app.route("/api/workers/<int:worker_id>/progress-reports", methods=["POST"], endpoint="progress_report")
    def progress_report(worker_id: int):
        data = json_body()
        report = container.attendance_service.submit_progress_report(
            worker_id,
            data.get("summary"),
            tasks_completed=int_field(data, "tasks_completed"),
            now=container.timers.now(),
        )
        return jsonify({"success": True, "submitted_at": report.submitted_at.isoformat()}), 201

    @app.route("/api/workers/<int:worker_id>/attendance", methods=["GET"], endpoint="attendance_detail")
    def attendance_detail(worker_id: int):
        work_date = date_arg(default=container.timers.now().date())
        record = container.attendance_service.get_record(worker_id, work_date)
        return jsonify({"success": True, "attendance": record_to_dict(record) if record else None})
