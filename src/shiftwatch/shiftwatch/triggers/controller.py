from __future__ import annotations

from dataclasses import asdict

from flask import Flask, jsonify

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..common.http import json_body
from ..container import Container
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    """Manual triggers; the same entry points the wall-clock orchestrator uses."""

    def _work_date():
        value = json_body().get("date")
        if not value:
            return container.timers.now().date()
        try:
            return parse_iso_date(str(value))
        except ValueError:
            raise ValidationError("'date' must be YYYY-MM-DD")

    @app.route("/api/triggers/day-start", methods=["POST"], endpoint="trigger_day_start")
    def trigger_day_start():
        work_date = _work_date()
        planned = container.orchestrator.trigger_day_start(work_date)
        return jsonify({"date": work_date.isoformat(), "planned": {str(k): v for k, v in planned.items()}})

    @app.route("/api/triggers/end-of-day", methods=["POST"], endpoint="trigger_end_of_day")
    def trigger_end_of_day():
        report = container.orchestrator.trigger_end_of_day(_work_date())
        body = asdict(report)
        body["work_date"] = report.work_date.isoformat()
        return jsonify(body)

    @app.route("/api/triggers/sweep", methods=["POST"], endpoint="trigger_sweep")
    def trigger_sweep():
        value = json_body().get("now")
        try:
            now = parse_iso_datetime(str(value)) if value else container.timers.now()
        except ValueError:
            raise ValidationError("'now' must be an ISO timestamp")
        return jsonify(asdict(container.orchestrator.trigger_sweep(now)))
