from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import date_arg
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/workers/<int:worker_id>/efficiency", methods=["GET"], endpoint="worker_efficiency")
    def worker_efficiency(worker_id: int):
        work_date = date_arg(default=container.timers.now().date())
        score = container.orchestrator.get_efficiency_score(worker_id, work_date)
        return jsonify({"worker_id": worker_id, "date": work_date.isoformat(), "efficiency": score})
