from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import current_actor, json_body
from ..container import Container
from .model import Payment


def payment_to_dict(p: Payment) -> dict:
    return {
        "payment_id": p.payment_id,
        "reference": p.reference,
        "worker_id": p.worker_id,
        "payer_id": p.payer_id,
        "work_date": p.work_date.isoformat(),
        "amount": str(p.amount),
        "currency": p.currency,
        "efficiency_score": p.efficiency_score,
        "status": p.status.value,
        "deadline": p.deadline.isoformat(),
        "decline_reason": p.decline_reason,
        "admin_review_note": p.admin_review_note,
        "transfer_ref": p.transfer_ref,
        "failure_reason": p.failure_reason,
        "reversed": p.reversed_at is not None,
        "history": [
            {
                "from": h.from_status.value,
                "to": h.to_status.value,
                "actor": h.actor,
                "at": h.at.isoformat(),
                "note": h.note,
            }
            for h in p.history
        ],
    }


def register(app: Flask, container: Container) -> None:
    @app.route("/api/payments/<int:payment_id>", methods=["GET"], endpoint="payment_detail")
    def payment_detail(payment_id: int):
        return jsonify({"success": True, "payment": payment_to_dict(container.payment_service.get(payment_id))})

    @app.route("/api/payments/<int:payment_id>/<action>", methods=["POST"], endpoint="payment_transition")
    def payment_transition(payment_id: int, action: str):
        payment = container.payment_service.transition_payment(payment_id, action, current_actor(), json_body())
        container.drainer.drain()
        return jsonify({"success": True, "payment": payment_to_dict(payment)})

    @app.route("/api/transfers/webhook", methods=["POST"], endpoint="transfer_webhook")
    def transfer_webhook():
        data = json_body()
        success = data.get("status") == "success" if "status" in data else bool(data.get("success"))
        payment = container.payment_service.on_transfer_result(
            str(data.get("reference") or ""),
            success=success,
            transfer_ref=data.get("transfer_ref"),
            error=data.get("error"),
        )
        container.drainer.drain()
        return jsonify({"success": True, "payment": payment_to_dict(payment)})
