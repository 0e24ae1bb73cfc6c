"""Admin routes: login and order maintenance."""

from __future__ import annotations

import json

from flask import Blueprint, current_app, jsonify, request, session

from zaikon_pos.config import ALLOWED_HOT_KEYS, refresh_non_sensitive, requires_restart
from zaikon_pos.services.errors import StorageFailure
from zaikon_pos.services.logging import log_event


admin_bp = Blueprint("zaikon_admin", __name__, url_prefix="/admin")

SESSION_KEY = "zaikon_admin"


def _components() -> dict:
    return current_app.extensions["zaikon_components"]


def _config():
    return current_app.config["ZAIKON_CONFIG"]


def is_authenticated() -> bool:
    return bool(session.get(SESSION_KEY))


@admin_bp.before_request
def guard_private_routes():
    if request.endpoint and request.endpoint != "zaikon_admin.login_submit":
        if not is_authenticated():
            return jsonify({"error": "Admin login required."}), 401
    return None


@admin_bp.errorhandler(StorageFailure)
def storage_failure(exc):
    return jsonify({"error": str(exc)}), 500


@admin_bp.post("/login")
def login_submit():
    payload = request.get_json(silent=True) or request.form
    username = (payload.get("username") or "").strip()
    password = (payload.get("password") or "").strip()
    cfg = _config()
    if username == cfg.admin_username and password == cfg.admin_password:
        session[SESSION_KEY] = True
        log_event("info", "admin.login", username=username)
        return jsonify({"status": "ok"})
    log_event("warning", "admin.login_failed", username=username)
    return jsonify({"status": "error", "message": "Invalid username or password."}), 401


@admin_bp.post("/logout")
def logout():
    session.pop(SESSION_KEY, None)
    return jsonify({"status": "ok"})


@admin_bp.get("/health-check")
def health_check():
    issues = _components()["health_service"].health_check()
    return jsonify({"count": len(issues), "issues": [i.to_dict() for i in issues]})


@admin_bp.post("/auto-repair")
def auto_repair():
    payload = request.get_json(silent=True) or {}
    # dry run unless explicitly disabled
    dry_run = payload.get("dry_run", True) is not False
    results = _components()["health_service"].auto_repair(dry_run=dry_run)
    return jsonify({"dry_run": dry_run, **results.to_dict()})


@admin_bp.post("/auto-complete")
def auto_complete():
    payload = request.get_json(silent=True) or {}
    try:
        hours = int(payload.get("hours") or _config().core.auto_complete_hours)
    except (TypeError, ValueError):
        return jsonify({"error": "hours must be an integer"}), 400
    if hours <= 0:
        return jsonify({"error": "hours must be > 0"}), 400
    return jsonify(_components()["health_service"].auto_complete_stale_orders(hours=hours))


@admin_bp.get("/transition-stats")
def transition_stats():
    try:
        stats = _components()["status_service"].get_transition_stats(
            request.args.get("date_from"), request.args.get("date_to")
        )
    except ValueError:
        return jsonify({"error": "dates must use YYYY-MM-DD"}), 400
    return jsonify(stats)


@admin_bp.get("/settings/data")
def get_settings():
    core = _config().core
    return jsonify(
        {
            "status": "ok",
            "settings": {
                "CURRENCY": core.currency,
                "DEFAULT_COOKING_ETA": core.default_cooking_eta,
                "DEFAULT_DELIVERY_ETA": core.default_delivery_eta,
                "ETA_EXTENSION_MINUTES": core.eta_extension_minutes,
                "AUTO_COMPLETE_HOURS": core.auto_complete_hours,
                "TRACKING_BASE_URL": core.tracking_base_url,
            },
        }
    )


@admin_bp.post("/settings/data")
def update_settings():
    """Apply hot-reloadable settings and persist them to data/settings.json."""
    payload = request.get_json(silent=True) or {}
    settings = payload.get("settings") or {}
    if not settings:
        return jsonify({"status": "error", "message": "No settings provided"}), 400

    cfg = _config()
    try:
        cfg.core = refresh_non_sensitive(settings, cfg.core)
    except ValueError as exc:
        return jsonify({"status": "error", "message": str(exc)}), 400

    applied = {k: v for k, v in settings.items() if k in ALLOWED_HOT_KEYS}
    stored = {}
    if cfg.settings_file.exists():
        try:
            stored = json.loads(cfg.settings_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log_event("warning", "admin.settings_unreadable", error=str(exc))
    stored.update(applied)
    cfg.settings_file.write_text(json.dumps(stored, indent=2, ensure_ascii=False), encoding="utf-8")

    # services built at startup keep their ETA defaults until restart
    ignored = sorted(k for k in settings if k not in ALLOWED_HOT_KEYS)
    log_event("info", "admin.settings_updated", applied=sorted(applied), ignored=ignored)
    return jsonify(
        {
            "status": "ok",
            "applied": applied,
            "ignored": ignored,
            "requires_restart": requires_restart(ignored) or bool(set(applied) - {"CURRENCY"}),
        }
    )
