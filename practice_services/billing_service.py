"""
PracticeBillingService -- transaction-owning facade over the practice kernel.

Responsibility:
    Expose the operations a host application calls (create works, generate
    periods, mutate tasks, change invoice status, delete invoices and
    periods, post journal vouchers, query balances) and run each one as a
    single database transaction: the kernel services only flush, this
    service commits on success and rolls back on failure.

Architecture position:
    Services -- orchestration over kernel services.  Wires TaskTracker ->
    BillingEngine so that "task completed -> counters recomputed -> billing
    decided" always happens in the same transaction.

Invariants enforced:
    - One operation, one transaction.  A failure anywhere rolls back the
      task update, the recount, the invoice, and any ledger effects
      together.
    - Billing is evaluated only on the ``became_complete`` edge of a
      recount, or on explicit completion.
    - ``set_invoice_status`` never raises for a rejected transition; the
      error code and message come back in the result.

Failure modes:
    - Kernel exceptions propagate after rollback for every operation except
      ``set_invoice_status``.

Audit relevance:
    Every operation runs inside ``LogContext.bind`` with a fresh
    correlation id, so all kernel events it emits can be grouped.

Usage:
    service = PracticeBillingService(session, clock=clock, config=config)
    result = service.mark_task_completed(task_id, actor_id)
    if result.billing and result.billing.invoiced:
        ...
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice_config import PracticeConfig, get_active_config
from practice_config.bridges import build_kernel_settings
from practice_kernel.domain.clock import Clock, SystemClock
from practice_kernel.domain.dtos import (
    BillingDecision,
    CompletionChange,
    InvoiceRemoval,
    InvoiceTransitionResult,
    JournalLine,
    OwnerKind,
    OwnerRef,
    PeriodDeletion,
    PostingResult,
    TaskMutationResult,
)
from practice_kernel.domain.invoice_transitions import InvoiceStatus
from practice_kernel.domain.recurrence import RecurrencePattern, validate_anchor_day
from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import PracticeKernelError
from practice_kernel.logging_config import LogContext, get_logger
from practice_kernel.models.directory import TaskTemplate
from practice_kernel.models.task import TaskStatus
from practice_kernel.models.work import Work
from practice_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerSelector,
    TrialBalanceRow,
)
from practice_kernel.selectors.period_selector import PeriodRow, PeriodSelector
from practice_kernel.services.billing_engine import BillingEngine
from practice_kernel.services.invoice_lifecycle import InvoiceLifecycle
from practice_kernel.services.ledger_posting import LedgerPostingService
from practice_kernel.services.numbering_service import NumberingService
from practice_kernel.services.period_generator import PeriodGenerator
from practice_kernel.services.task_tracker import TaskTracker

logger = get_logger("services.billing")


class PracticeBillingService:
    """
    Facade for recurring periods, task completion, billing, and the ledger.

    Transaction boundary: with ``auto_commit=True`` (the default) every
    public mutator commits on success and rolls back on failure.  With
    ``auto_commit=False`` the caller owns the boundary (batch runners,
    tests that inspect uncommitted state).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
        config: PracticeConfig | None = None,
        auto_commit: bool = True,
    ):
        if settings is None:
            settings = build_kernel_settings(config or get_active_config())
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings
        self._auto_commit = auto_commit

        self._tracker = TaskTracker(session, self._clock)
        self._billing = BillingEngine(session, self._clock, settings)
        self._generator = PeriodGenerator(session, self._clock, settings)
        self._invoices = InvoiceLifecycle(session, self._clock, settings)
        self._ledger = LedgerPostingService(session)
        self._numbering = NumberingService(session, settings)
        self._ledger_selector = LedgerSelector(session)
        self._period_selector = PeriodSelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def settings(self) -> KernelSettings:
        return self._settings

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    @contextmanager
    def _transaction(self, operation: str, **context: object) -> Iterator[None]:
        with LogContext.bind(correlation_id=str(uuid4()), **context):
            try:
                yield
                if self._auto_commit:
                    self._session.commit()
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "operation_rolled_back",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise

    def _actor(self, actor_id: UUID | None) -> UUID:
        return actor_id or self._settings.system_actor_id

    # =========================================================================
    # Works and periods
    # =========================================================================

    def create_work(
        self,
        *,
        customer_id: UUID,
        service_id: UUID,
        title: str,
        start_date: date,
        actor_id: UUID | None = None,
        is_recurring: bool = False,
        recurrence_pattern: str | None = None,
        anchor_day: int | None = None,
        billing_amount: Decimal | None = None,
        auto_bill: bool = True,
    ) -> Work:
        """
        Create a work.

        A recurring work gets its first period (and any already-elapsed
        catch-up periods) in the same transaction.  A one-off work gets the
        service's task templates as work-level tasks.
        """
        actor = self._actor(actor_id)
        with self._transaction("create_work", actor_id=actor):
            pattern = None
            if is_recurring:
                pattern = RecurrencePattern.parse(recurrence_pattern).value
                validate_anchor_day(
                    anchor_day if anchor_day is not None else start_date.day, pattern
                )

            work = Work(
                customer_id=customer_id,
                service_id=service_id,
                title=title,
                is_recurring=is_recurring,
                recurrence_pattern=pattern,
                anchor_day=anchor_day,
                start_date=start_date,
                billing_amount=billing_amount,
                auto_bill=auto_bill,
                created_by_id=actor,
            )
            self._session.add(work)
            self._session.flush()

            if is_recurring:
                self._generator.generate_for_work(work.id, self._clock.today(), actor)
            else:
                self._seed_work_tasks(work, actor)

            logger.info(
                "work_created",
                extra={
                    "work_id": str(work.id),
                    "is_recurring": is_recurring,
                    "recurrence_pattern": pattern,
                },
            )
        return work

    def generate_periods_if_due(self, now: date | datetime | None = None) -> int:
        """Create every due-and-missing period for all active recurring works."""
        today = self._as_date(now)
        with self._transaction("generate_periods_if_due"):
            results = self._generator.generate_all_due(today)
        return sum(result.created_count for result in results)

    def complete_period(
        self, period_id: UUID, actor_id: UUID | None = None
    ) -> BillingDecision:
        """
        Explicitly complete a period and run the billing decision.

        The only way a zero-task period gets billed.
        """
        return self._complete_owner(OwnerRef(OwnerKind.PERIOD, period_id), actor_id)

    def complete_work(self, work_id: UUID, actor_id: UUID | None = None) -> BillingDecision:
        """Explicit completion for a one-off work."""
        return self._complete_owner(OwnerRef(OwnerKind.WORK, work_id), actor_id)

    def delete_period(self, period_id: UUID) -> PeriodDeletion:
        """
        Delete a period with its invoice, ledger effects, receipt, tasks,
        and documents.
        """
        with self._transaction("delete_period", period_id=period_id):
            period = self._generator.get_period(period_id)
            removal = None
            if period.invoice_id is not None:
                removal = self._invoices.delete_invoice(period.invoice_id)
            tasks_removed = self._generator.remove_period(period)
        return PeriodDeletion(
            period_id=period_id,
            tasks_removed=tasks_removed,
            invoice_removal=removal,
        )

    # =========================================================================
    # Tasks
    # =========================================================================

    def mark_task_completed(
        self, task_id: UUID, actor_id: UUID | None = None
    ) -> TaskMutationResult:
        return self.set_task_status(task_id, TaskStatus.COMPLETED, actor_id)

    def mark_task_pending(
        self, task_id: UUID, actor_id: UUID | None = None
    ) -> TaskMutationResult:
        return self.set_task_status(task_id, TaskStatus.PENDING, actor_id)

    def set_task_status(
        self,
        task_id: UUID,
        status: TaskStatus | str,
        actor_id: UUID | None = None,
    ) -> TaskMutationResult:
        """Change a task's status, recount its owner, and bill on completion."""
        actor = self._actor(actor_id)
        with self._transaction("set_task_status", actor_id=actor):
            change = self._tracker.set_status(task_id, status, actor)
            billing = self._on_change(change, actor)
        return TaskMutationResult(task_id=task_id, change=change, billing=billing)

    def add_task(
        self,
        owner: OwnerRef,
        title: str,
        actor_id: UUID | None = None,
        *,
        priority: str = "medium",
        estimated_hours: Decimal | None = None,
        assignee_id: UUID | None = None,
        due_date: date | None = None,
    ) -> TaskMutationResult:
        """Add a task to a period or one-off work; the owner is recounted."""
        actor = self._actor(actor_id)
        with self._transaction("add_task", actor_id=actor):
            task, change = self._tracker.add_task(
                owner,
                title,
                actor,
                priority=priority,
                estimated_hours=estimated_hours,
                assignee_id=assignee_id,
                due_date=due_date,
            )
        return TaskMutationResult(task_id=task.id, change=change)

    def delete_task(
        self, task_id: UUID, actor_id: UUID | None = None
    ) -> TaskMutationResult:
        """
        Delete a task.  Removing the last open task completes the owner and
        so may bill it.
        """
        actor = self._actor(actor_id)
        with self._transaction("delete_task", actor_id=actor):
            change = self._tracker.delete_task(task_id, actor)
            billing = self._on_change(change, actor)
        return TaskMutationResult(task_id=task_id, change=change, billing=billing)

    # =========================================================================
    # Invoices
    # =========================================================================

    def set_invoice_status(
        self,
        invoice_id: UUID,
        new_status: InvoiceStatus | str,
        actor_id: UUID | None = None,
    ) -> InvoiceTransitionResult:
        """
        Move an invoice to ``new_status``.

        A rejected transition (illegal edge, unknown invoice, missing
        source, ledger imbalance) is rolled back and returned as a result
        with ``error_code`` set.
        """
        actor = self._actor(actor_id)
        try:
            with self._transaction(
                "set_invoice_status", actor_id=actor, invoice_id=invoice_id
            ):
                return self._invoices.change_status(invoice_id, new_status, actor)
        except PracticeKernelError as exc:
            return InvoiceTransitionResult(
                invoice_id=invoice_id,
                from_status=self._current_status(invoice_id),
                to_status=self._status_or_none(new_status),
                applied=False,
                error_code=exc.code,
                error_message=str(exc),
            )

    def delete_invoice(self, invoice_id: UUID) -> InvoiceRemoval:
        """Delete an invoice and reset its owner so it can be billed again."""
        with self._transaction("delete_invoice", invoice_id=invoice_id):
            return self._invoices.delete_invoice(invoice_id)

    # =========================================================================
    # Ledger
    # =========================================================================

    def post_journal_voucher(
        self,
        lines: Sequence[JournalLine],
        actor_id: UUID | None = None,
        transaction_date: date | None = None,
    ) -> PostingResult:
        """Post a balanced manual journal voucher under a new JV number."""
        actor = self._actor(actor_id)
        with self._transaction("post_journal_voucher", actor_id=actor):
            return self._ledger.post_journal(
                voucher_number=self._numbering.next_journal_number(),
                lines=lines,
                transaction_date=transaction_date or self._clock.today(),
                actor_id=actor,
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def list_periods(self, work_id: UUID | None = None) -> list[PeriodRow]:
        return self._period_selector.list_periods(self._clock.today(), work_id)

    def account_balance(self, account_code: str) -> AccountBalance | None:
        return self._ledger_selector.account_balance_by_code(account_code)

    def trial_balance(self, as_of_date: date | None = None) -> list[TrialBalanceRow]:
        return self._ledger_selector.trial_balance(as_of_date)

    # =========================================================================
    # Internals
    # =========================================================================

    def _on_change(
        self, change: CompletionChange, actor_id: UUID
    ) -> BillingDecision | None:
        if not change.became_complete:
            return None
        return self._billing.on_completion_reached(change.owner, actor_id)

    def _complete_owner(
        self, owner: OwnerRef, actor_id: UUID | None
    ) -> BillingDecision:
        actor = self._actor(actor_id)
        context = {"period_id" if owner.kind == OwnerKind.PERIOD else "work_id": owner.owner_id}
        with self._transaction("complete_owner", actor_id=actor, **context):
            self._tracker.complete_owner(owner, actor)
            return self._billing.on_completion_reached(owner, actor)

    def _seed_work_tasks(self, work: Work, actor_id: UUID) -> None:
        templates = self._session.execute(
            select(TaskTemplate)
            .where(TaskTemplate.service_id == work.service_id, TaskTemplate.is_active.is_(True))
            .order_by(TaskTemplate.sort_order)
        ).scalars().all()
        owner = OwnerRef(OwnerKind.WORK, work.id)
        for template in templates:
            self._tracker.add_task(
                owner,
                template.title,
                actor_id,
                priority=template.priority,
                estimated_hours=template.estimated_hours,
                sort_order=template.sort_order,
            )

    def _as_date(self, value: date | datetime | None) -> date:
        if value is None:
            return self._clock.today()
        if isinstance(value, datetime):
            return value.date()
        return value

    def _current_status(self, invoice_id: UUID) -> InvoiceStatus | None:
        status = self._invoices.current_status(invoice_id)
        return InvoiceStatus(status) if status is not None else None

    @staticmethod
    def _status_or_none(value: InvoiceStatus | str) -> InvoiceStatus | None:
        try:
            return InvoiceStatus(value)
        except ValueError:
            return None
