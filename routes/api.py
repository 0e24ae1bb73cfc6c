"""Operational API used by the POS, KDS and rider screens."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from zaikon_pos.services.errors import INVALID_INPUT, NOT_FOUND, NotFoundError, StorageFailure
from zaikon_pos.services.order_events import DispatchOptions
from zaikon_pos.services.order_status_service import TransitionOptions
from zaikon_pos.services.rider_payout import RiderRates, calculate_pay, determine_slab
from zaikon_pos.utils.pagination import normalize_paging

from .admin import is_authenticated


api_bp = Blueprint("zaikon_api", __name__, url_prefix="/api")

ERROR_STATUS = {NOT_FOUND: 404, INVALID_INPUT: 400}


def _components() -> Dict[str, Any]:
    return current_app.extensions["zaikon_components"]


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _result_response(result):
    body = result.to_dict()
    if result.success:
        return jsonify(body)
    return jsonify(body), ERROR_STATUS.get(result.error, 400)


@api_bp.before_request
def guard_api():
    if not is_authenticated():
        return jsonify({"error": "Admin login required."}), 401
    return None


@api_bp.errorhandler(StorageFailure)
def storage_failure(exc):
    return jsonify({"error": str(exc)}), 500


@api_bp.errorhandler(NotFoundError)
def not_found(exc):
    return jsonify({"error": str(exc)}), 404


@api_bp.post("/orders")
def create_order():
    payload = _payload()
    try:
        created = _components()["order_service"].create_order(
            order_data=payload.get("order") or {},
            items=payload.get("items") or [],
            delivery_data=payload.get("delivery"),
            source=payload.get("source") or "pos",
            actor_user_id=payload.get("actor_user_id"),
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    created["tracking_url"] = _components()["tracking_service"].tracking_url(created["tracking_token"])
    return jsonify(created), 201


@api_bp.get("/orders/<int:order_id>")
def get_order(order_id: int):
    order = _components()["order_service"].get_order(order_id)
    if not order:
        return jsonify({"error": f"Order not found: #{order_id}"}), 404
    return jsonify(order)


@api_bp.post("/orders/<int:order_id>/status")
def transition_status(order_id: int):
    payload = _payload()
    result = _components()["status_service"].transition_status(
        order_id,
        payload.get("status"),
        payload.get("source") or "api",
        payload.get("actor_user_id"),
        TransitionOptions(force=bool(payload.get("force")), notes=payload.get("notes")),
    )
    return _result_response(result)


@api_bp.post("/orders/<int:order_id>/events")
def dispatch_event(order_id: int):
    payload = _payload()
    result = _components()["event_dispatcher"].dispatch(
        order_id,
        payload.get("event"),
        DispatchOptions(
            source=payload.get("source") or "api",
            actor_user_id=payload.get("actor_user_id"),
            rider_id=payload.get("rider_id"),
            notes=payload.get("notes"),
        ),
    )
    return _result_response(result)


@api_bp.get("/orders/<int:order_id>/history")
def status_history(order_id: int):
    paging = normalize_paging(request.args.get("page"), request.args.get("page_size"), max_page_size=50)
    history = _components()["status_service"].get_status_history(order_id, limit=paging.page_size, offset=paging.offset)
    return jsonify({"order_id": order_id, "page": paging.page, "page_size": paging.page_size, "history": history})


@api_bp.get("/orders/<int:order_id>/eta")
def remaining_eta(order_id: int):
    eta = _components()["eta_service"].get_remaining_eta(order_id)
    if eta is None:
        return jsonify({"error": f"Order not found: #{order_id}"}), 404
    return jsonify(eta)


@api_bp.post("/orders/<int:order_id>/eta/extend")
def extend_eta(order_id: int):
    payload = _payload()
    kind = payload.get("kind") or "cooking"
    service = _components()["eta_service"]
    if kind not in ("cooking", "delivery"):
        return jsonify({"error": "kind must be 'cooking' or 'delivery'"}), 400
    extend = service.extend_cooking_eta if kind == "cooking" else service.extend_delivery_eta
    try:
        new_eta = extend(order_id, payload.get("minutes"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"order_id": order_id, "kind": kind, "eta_minutes": new_eta})


@api_bp.post("/riders/payout-quote")
def payout_quote():
    payload = _payload()
    raw = payload.get("rider") or {}
    rider = RiderRates(
        payout_type=raw.get("payout_type") or "per_km",
        per_delivery_rate=raw.get("per_delivery_rate"),
        per_km_rate=raw.get("per_km_rate"),
        base_rate=raw.get("base_rate"),
    )
    distance = payload.get("distance_km")
    try:
        amount = calculate_pay(rider, distance)
        slab = determine_slab(distance)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"amount": float(amount), "slab": slab, "distance_km": distance})
