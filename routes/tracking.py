"""Public order tracking page data."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify


tracking_bp = Blueprint("zaikon_tracking", __name__)


def _components() -> dict:
    return current_app.extensions["zaikon_components"]


@tracking_bp.get("/track/<token>")
def track_order(token: str):
    components = _components()
    view = components["tracking_service"].resolve_token(token)
    if view is None:
        return jsonify({"error": "Tracking link is invalid or has expired."}), 404
    view["eta"] = components["eta_service"].get_remaining_eta(view["order_id"])
    return jsonify(view)
