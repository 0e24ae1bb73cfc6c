"""Zaikon POS order tracking Flask application."""

from __future__ import annotations

import json
import secrets

import click
from flask import Flask
from sqlalchemy import create_engine

from config import PosAppConfig
from routes import admin, api, tracking
from zaikon_pos.db.session import make_session_factory, init_db
from zaikon_pos.services import (
    EtaService,
    OrderEventDispatcher,
    OrderHealthService,
    OrderService,
    OrderStatusService,
    TrackingTokenService,
)
from zaikon_pos.services.logging import configure_logging, log_event
from zaikon_pos.utils.clock import utc_now


def build_components(config: PosAppConfig, session_factory, clock=utc_now, random_bytes=secrets.token_bytes) -> dict:
    core = config.core
    status_service = OrderStatusService(
        session_factory,
        clock,
        default_cooking_eta=core.default_cooking_eta,
        default_delivery_eta=core.default_delivery_eta,
    )
    dispatcher = OrderEventDispatcher(session_factory, clock, status_service)
    tracking_service = TrackingTokenService(session_factory, random_bytes, core.tracking_base_url)
    return {
        "status_service": status_service,
        "event_dispatcher": dispatcher,
        "tracking_service": tracking_service,
        "health_service": OrderHealthService(session_factory, clock, status_service, dispatcher),
        "eta_service": EtaService(
            session_factory,
            clock,
            default_cooking_eta=core.default_cooking_eta,
            default_delivery_eta=core.default_delivery_eta,
            overtime_extension=core.eta_extension_minutes,
        ),
        "order_service": OrderService(
            session_factory,
            clock,
            tracking_service,
            default_cooking_eta=core.default_cooking_eta,
            default_delivery_eta=core.default_delivery_eta,
        ),
    }


def create_app(config: PosAppConfig = None, engine=None, clock=utc_now, random_bytes=secrets.token_bytes) -> Flask:
    config = config or PosAppConfig.load()
    configure_logging(config.core.log_level)

    if engine is None:
        engine = create_engine(config.core.database_url, future=True)
    init_db(engine)
    session_factory = make_session_factory(engine)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["ZAIKON_CONFIG"] = config
    app.extensions["zaikon_components"] = build_components(config, session_factory, clock, random_bytes)

    app.register_blueprint(tracking.tracking_bp)
    app.register_blueprint(admin.admin_bp)
    app.register_blueprint(api.api_bp)
    _register_commands(app)

    log_event("info", "app.started", database=engine.url.render_as_string(hide_password=True))
    return app


def _register_commands(app: Flask) -> None:
    def components() -> dict:
        return app.extensions["zaikon_components"]

    @app.cli.command("health-check")
    def health_check_command():
        """List orders with missing timestamps or invalid statuses."""
        issues = components()["health_service"].health_check()
        click.echo(json.dumps([i.to_dict() for i in issues], indent=2))

    @app.cli.command("auto-repair")
    @click.option("--apply", is_flag=True, help="Write fixes instead of reporting them.")
    def auto_repair_command(apply):
        results = components()["health_service"].auto_repair(dry_run=not apply)
        click.echo(json.dumps(results.to_dict(), indent=2, default=str))

    @app.cli.command("auto-complete")
    @click.option("--hours", type=int, default=None, help="Age threshold in hours.")
    def auto_complete_command(hours):
        """Close orders left open longer than the threshold."""
        hours = hours or app.config["ZAIKON_CONFIG"].core.auto_complete_hours
        results = components()["health_service"].auto_complete_stale_orders(hours=hours)
        click.echo(json.dumps(results, indent=2, default=str))


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=6055, debug=False)


if __name__ == "__main__":
    main()
