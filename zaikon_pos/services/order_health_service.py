"""Consistency checks and repairs for order status data.

``health_check`` finds orders whose status implies a lifecycle timestamp that
is missing, and orders whose stored status is outside the valid vocabulary.
``auto_repair`` fixes what ``health_check`` reports; with ``dry_run=True``
it only reads and reports, so it can be called repeatedly for inspection.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.session import get_session
from ..utils.clock import utc_now
from .audit_repository import AuditRepository
from .errors import StorageFailure
from .logging import log_event
from .order_events import DispatchOptions, OrderEvent, OrderEventDispatcher
from .order_repository import OrderRepository
from .order_status_service import OrderStatusService, TransitionOptions
from .status_policy import (
    TERMINAL_STATUSES,
    VALID_STATUSES,
    OrderStatus,
    StatusSource,
    normalize_legacy_status,
)


SYSTEM_ACTOR = 0
SCAN_LIMIT = 100

TIMESTAMP_CHECKS = (
    (OrderStatus.COOKING.value, "cooking_started_at", "cooking_no_timestamp"),
    (OrderStatus.DISPATCHED.value, "dispatched_at", "dispatched_no_timestamp"),
    (OrderStatus.READY.value, "ready_at", "ready_no_timestamp"),
)
MISSING_TIMESTAMP_ISSUES = frozenset(check[2] for check in TIMESTAMP_CHECKS)
INVALID_STATUS = "invalid_status"


@dataclass
class Issue:
    order_id: int
    order_number: Optional[str]
    issue_type: str
    status: Optional[str]
    missing_field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RepairResults:
    checked: int = 0
    fixed: int = 0
    skipped: int = 0
    errors: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class OrderHealthService:
    def __init__(
        self,
        session_factory=get_session,
        clock: Callable[[], datetime] = utc_now,
        status_service: Optional[OrderStatusService] = None,
        dispatcher: Optional[OrderEventDispatcher] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._status_service = status_service or OrderStatusService(session_factory, clock)
        self._dispatcher = dispatcher or OrderEventDispatcher(session_factory, clock, self._status_service)

    def health_check(self) -> List[Issue]:
        issues: List[Issue] = []
        with self._session_factory() as session:
            orders = OrderRepository(session)
            for status, ts_field, issue_type in TIMESTAMP_CHECKS:
                for order in orders.find_missing_timestamp(status, ts_field, limit=SCAN_LIMIT):
                    issues.append(
                        Issue(
                            order_id=order.id,
                            order_number=order.order_number,
                            issue_type=issue_type,
                            status=order.order_status,
                            missing_field=ts_field,
                        )
                    )
            for order in orders.find_invalid_status(VALID_STATUSES, limit=SCAN_LIMIT):
                issues.append(
                    Issue(
                        order_id=order.id,
                        order_number=order.order_number,
                        issue_type=INVALID_STATUS,
                        status=order.order_status,
                    )
                )
        return issues

    def auto_repair(self, dry_run: bool = True) -> RepairResults:
        """Fix what ``health_check`` reports.

        A dry run reports one scan. A real run rescans in batches of
        ``SCAN_LIMIT`` until no unattempted issue is left, so more than one
        batch of broken orders still converges; an order that failed once is
        not retried in the same run.
        """
        results = RepairResults()
        if dry_run:
            issues = self.health_check()
            results.checked = len(issues)
            for issue in issues:
                self._report(issue, results)
            return results

        attempted = set()
        while True:
            batch = [i for i in self.health_check() if (i.order_id, i.issue_type) not in attempted]
            if not batch:
                break
            results.checked += len(batch)
            for issue in batch:
                attempted.add((issue.order_id, issue.issue_type))
                if issue.issue_type in MISSING_TIMESTAMP_ISSUES:
                    self._repair_timestamp(issue, results)
                elif issue.issue_type == INVALID_STATUS:
                    self._repair_status(issue, normalize_legacy_status(issue.status), results)

        if results.checked:
            log_event(
                "info",
                "health.auto_repair",
                checked=results.checked,
                fixed=results.fixed,
                skipped=results.skipped,
                errors=results.errors,
            )
        return results

    @staticmethod
    def _report(issue: Issue, results: RepairResults) -> None:
        if issue.issue_type in MISSING_TIMESTAMP_ISSUES:
            results.details.append(
                {"order_id": issue.order_id, "action": "would_set_timestamp", "field": issue.missing_field}
            )
        else:
            results.details.append(
                {
                    "order_id": issue.order_id,
                    "action": "would_fix_status",
                    "from": issue.status,
                    "to": normalize_legacy_status(issue.status),
                }
            )
        results.skipped += 1

    def _repair_timestamp(self, issue: Issue, results: RepairResults) -> None:
        ts_field = issue.missing_field
        try:
            with self._session_factory() as session:
                orders = OrderRepository(session)
                order = orders.get(issue.order_id, for_update=True)
                if order is None or order.order_status != issue.status or getattr(order, ts_field) is not None:
                    results.skipped += 1
                    results.details.append(
                        {"order_id": issue.order_id, "action": "skipped", "reason": "order changed since scan"}
                    )
                    return
                now = self._clock()
                orders.update_status_fields(issue.order_id, {ts_field: now, "updated_at": now})
                # self-transition marks the repair in the audit trail
                AuditRepository(session).append(
                    order_id=issue.order_id,
                    status_from=issue.status,
                    status_to=issue.status,
                    source=StatusSource.SYSTEM.value,
                    actor_user_id=SYSTEM_ACTOR,
                    notes=f"auto-repair: {issue.issue_type}, set {ts_field}",
                    created_at=now,
                )
        except SQLAlchemyError as exc:
            results.errors += 1
            results.details.append({"order_id": issue.order_id, "action": "error", "error": str(exc)})
            log_event("error", "health.repair_failed", order_id=issue.order_id, issue=issue.issue_type, error=str(exc))
            return

        results.fixed += 1
        results.details.append({"order_id": issue.order_id, "action": "set_timestamp", "field": ts_field})
        log_event("info", "health.repaired", order_id=issue.order_id, issue=issue.issue_type, field_fixed=ts_field)

    def _repair_status(self, issue: Issue, target: str, results: RepairResults) -> None:
        try:
            transition = self._status_service.transition_status(
                issue.order_id,
                target,
                StatusSource.SYSTEM,
                SYSTEM_ACTOR,
                TransitionOptions(force=True, notes=f"auto-repair: invalid status '{issue.status}'"),
            )
        except StorageFailure as exc:
            results.errors += 1
            results.details.append({"order_id": issue.order_id, "action": "error", "error": str(exc)})
            return

        if transition.success:
            results.fixed += 1
            results.details.append(
                {"order_id": issue.order_id, "action": "fixed_status", "from": issue.status, "to": target}
            )
        else:
            results.errors += 1
            results.details.append({"order_id": issue.order_id, "action": "error", "error": transition.message})

    def auto_complete_stale_orders(self, hours: int = 2) -> Dict[str, Any]:
        """Close orders left open longer than ``hours``.

        Delivery orders become ``delivered``, everything else ``completed``.
        Safe to run repeatedly: terminal orders are never selected.
        """
        results: Dict[str, Any] = {"total_processed": 0, "completed": 0, "errors": 0, "details": []}
        cutoff = self._clock() - timedelta(hours=hours)
        with self._session_factory() as session:
            stale = [
                (o.id, o.order_number, o.order_status, o.order_type)
                for o in OrderRepository(session).find_open_before(cutoff, TERMINAL_STATUSES, limit=SCAN_LIMIT)
            ]

        for order_id, order_number, old_status, order_type in stale:
            results["total_processed"] += 1
            event = OrderEvent.ORDER_DELIVERED if order_type == "delivery" else OrderEvent.ORDER_COMPLETED
            try:
                outcome = self._dispatcher.dispatch(
                    order_id,
                    event,
                    DispatchOptions(
                        source=StatusSource.SYSTEM,
                        actor_user_id=SYSTEM_ACTOR,
                        notes=f"auto-completed: open longer than {hours}h",
                    ),
                )
            except StorageFailure as exc:
                results["errors"] += 1
                results["details"].append({"order_id": order_id, "order_number": order_number, "action": "error", "error": str(exc)})
                continue
            if outcome.success:
                results["completed"] += 1
                results["details"].append(
                    {
                        "order_id": order_id,
                        "order_number": order_number,
                        "old_status": old_status,
                        "new_status": outcome.data["new_status"],
                        "action": "completed",
                    }
                )
            else:
                results["errors"] += 1
                results["details"].append(
                    {"order_id": order_id, "order_number": order_number, "action": "error", "error": outcome.message}
                )

        if results["total_processed"]:
            log_event("info", "health.auto_complete", hours=hours, **{k: results[k] for k in ("total_processed", "completed", "errors")})
        return results
