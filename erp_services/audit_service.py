"""
ConsistencyAuditService -- Service wrapper for audits and reconciliation.

Composes the document store (snapshot reads, single-document writes), the
pure audit pipeline, and the pure ReconciliationPolicy.

Architecture: erp_services -- imperative shell.
    The service loads a snapshot, hands it to the engines, and applies the
    corrective actions the policy returns, one write at a time.

Invariants enforced:
    - The engines never see the store; they receive the snapshot mapping.
    - A failed write is raised as ReconciliationWriteFailedError with the
      store's exception chained; it is never swallowed.
    - Re-audits happen only after a batch of writes has finished.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from erp_config import AuditConfiguration, get_active_config
from erp_config.bridges import build_policy, build_vocabulary
from erp_engines.audit import AuditReport, audit_snapshot
from erp_engines.reconciliation import ActionPlan, CorrectiveAction
from erp_kernel.exceptions import (
    DocumentStoreError,
    ReconciliationWriteFailedError,
    UnsupportedActionError,
)
from erp_kernel.logging_config import LogContext, get_logger

from erp_services.document_store import DocumentStore

logger = get_logger("services.audit")


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of one reconcile() call."""

    report: AuditReport
    plan: ActionPlan
    applied: tuple[CorrectiveAction, ...] = ()
    dry_run: bool = False

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def report_only_count(self) -> int:
        return len(self.plan.report_only)


@dataclass(frozen=True)
class ReauditResult:
    """Outcome of reconcile_and_reaudit()."""

    rounds: tuple[ReconciliationResult, ...]
    final_report: AuditReport
    remaining_actions: int = 0

    @property
    def converged(self) -> bool:
        """True when the final report has no actionable issues left."""
        return self.remaining_actions == 0


class ConsistencyAuditService:
    """Service that audits the production store and applies corrections.

    Contract:
        - ``audit()`` reads a snapshot and returns the report.
        - ``plan()`` turns a report into corrective actions (no writes).
        - ``reconcile()`` applies the plan one document at a time.
        - ``reconcile_and_reaudit()`` repeats audit and reconcile until no
          actionable issues remain or ``max_rounds`` is reached.

    Non-goals:
        - Does NOT lock the store; concurrent writers can invalidate a
          snapshot.  Callers serialize reconcile runs.
        - Does NOT fix report-only issues (unknown statuses, missing
          timestamps).
    """

    def __init__(
        self,
        store: DocumentStore,
        config: AuditConfiguration | None = None,
        organization_id: str | None = None,
        actor_id: str | None = None,
    ) -> None:
        self._store = store
        self._config = config or get_active_config()
        self._vocabulary = build_vocabulary(self._config)
        self._policy = build_policy(self._config)
        self._organization_id = organization_id
        self._actor_id = actor_id

    @property
    def config(self) -> AuditConfiguration:
        return self._config

    # -----------------------------------------------------------------
    # Audit
    # -----------------------------------------------------------------

    def audit(self) -> AuditReport:
        """Load a snapshot from the store and audit it."""
        with self._context():
            snapshot = self._store.load_snapshot()
            settings = self._config.audit
            report = audit_snapshot(
                snapshot,
                vocabulary=self._vocabulary,
                profit_tolerance=settings.profit_tolerance,
                display_limit=settings.display_limit,
                enabled_checks=settings.enabled_checks,
                parallel=settings.parallel,
            )
            logger.info("audit_completed", extra={
                "snapshot_digest": report.snapshot_digest,
                "total_issues": report.total_issues,
                "high": report.high_count,
                "medium": report.medium_count,
                "low": report.low_count,
            })
            return report

    def plan(self, report: AuditReport) -> ActionPlan:
        """Corrective actions for a report, HIGH severity first."""
        return self._policy.plan_actions(report.all_issues)

    # -----------------------------------------------------------------
    # Reconciliation
    # -----------------------------------------------------------------

    def reconcile(
        self,
        report: AuditReport | None = None,
        dry_run: bool = False,
    ) -> ReconciliationResult:
        """Apply the corrective actions for a report.

        Audits first when no report is given.  With ``dry_run`` the plan is
        returned and nothing is written.

        Raises:
            ReconciliationWriteFailedError: the store rejected a write.
                Earlier writes of the batch stay applied.
        """
        with self._context():
            if report is None:
                report = self.audit()
            plan = self.plan(report)

            if dry_run:
                logger.info("reconcile_dry_run", extra={
                    "planned": len(plan),
                    "report_only": len(plan.report_only),
                })
                return ReconciliationResult(report=report, plan=plan, dry_run=True)

            applied: list[CorrectiveAction] = []
            for action in plan.actions:
                self._apply(action, applied_count=len(applied))
                applied.append(action)

            logger.info("reconcile_completed", extra={
                "applied": len(applied),
                "report_only": len(plan.report_only),
            })
            return ReconciliationResult(
                report=report,
                plan=plan,
                applied=tuple(applied),
            )

    def reconcile_and_reaudit(self, max_rounds: int | None = None) -> ReauditResult:
        """Alternate audit and reconcile until nothing actionable remains.

        Each round re-reads the store, so later rounds act on the effects
        of earlier writes (e.g. a project roll-up after its products were
        repaired).
        """
        rounds_allowed = (
            self._config.reconciliation.max_rounds if max_rounds is None else max_rounds
        )
        if rounds_allowed < 1:
            raise ValueError(f"max_rounds must be >= 1, got {rounds_allowed}")

        rounds: list[ReconciliationResult] = []
        with self._context():
            report = self.audit()
            remaining = 0
            for _ in range(rounds_allowed):
                result = self.reconcile(report)
                rounds.append(result)
                if result.plan.is_empty:
                    break
                report = self.audit()
            else:
                remaining = len(self.plan(report))

            logger.info("reaudit_finished", extra={
                "rounds": len(rounds),
                "remaining_issues": report.total_issues,
                "remaining_actions": remaining,
            })
            return ReauditResult(
                rounds=tuple(rounds),
                final_report=report,
                remaining_actions=remaining,
            )

    def _apply(self, action: CorrectiveAction, applied_count: int) -> None:
        try:
            revision = self._store.update(
                action.target_collection,
                action.target_id,
                action.document_updates(),
            )
        except (DocumentStoreError, UnsupportedActionError, SQLAlchemyError) as exc:
            logger.error("corrective_write_failed", extra={
                "target_collection": action.target_collection,
                "target_id": action.target_id,
                "reason": action.reason.value,
                "applied_count": applied_count,
                "error": str(exc),
            })
            raise ReconciliationWriteFailedError(
                target_collection=action.target_collection,
                target_id=action.target_id,
                reason=action.reason.value,
                applied_count=applied_count,
                action=action,
            ) from exc

        logger.info("corrective_write_applied", extra={
            "target_collection": action.target_collection,
            "target_id": action.target_id,
            "reasons": [r.value for r in action.reasons],
            "revision": revision,
        })

    def _context(self):
        return LogContext.bind(
            audit_run_id=str(uuid4()) if not LogContext.get_all().get("audit_run_id") else None,
            organization_id=self._organization_id,
            actor_id=self._actor_id,
        )
