from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/workers/<int:worker_id>/deactivate", methods=["POST"], endpoint="worker_deactivate")
    def worker_deactivate(worker_id: int):
        cancelled = container.worker_service.deactivate(worker_id)
        return jsonify({"success": True, "worker_id": worker_id, "cancelled_captures": cancelled})

    @app.route("/api/payers/<int:payer_id>", methods=["GET"], endpoint="payer_detail")
    def payer_detail(payer_id: int):
        payer = container.payer_service.get(payer_id)
        return jsonify({"payer_id": payer.payer_id, "full_name": payer.full_name, "balance": str(payer.balance)})

    @app.route("/api/payers/<int:payer_id>/top-up", methods=["POST"], endpoint="payer_top_up")
    def payer_top_up(payer_id: int):
        payer = container.payer_service.top_up(payer_id, json_body().get("amount"))
        return jsonify({"success": True, "payer_id": payer.payer_id, "balance": str(payer.balance)})
