"""
Typed Exception Hierarchy for the Practice Kernel.

===============================================================================
ERROR CONTRACT
===============================================================================

Every error in the kernel:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example:
    try:
        lifecycle.change_status(invoice_id, InvoiceStatus.SENT)
    except InvalidInvoiceTransitionError as e:
        api_response(code=e.code, current=e.from_status, requested=e.to_status)

===============================================================================
WHAT IS *NOT* AN EXCEPTION
===============================================================================

Duplicate-prevention outcomes are successful no-ops and are reported through
result objects, never raised:

    - Period already exists for (work, due_date)  -> existing period returned
    - Owner already billed                          -> BillingOutcome.ALREADY_BILLED
    - Source key already posted                     -> PostingStatus.ALREADY_POSTED

Configuration gaps (missing price, missing cash/bank account) are also not
exceptions on the automatic paths: they degrade to documented defaults and
emit a WARNING log.  They ARE exceptions when a caller explicitly asks for
the missing thing (e.g. resolving a ledger mapping for a manual journal).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PracticeKernelError (base)
    |
    +-- ConfigurationError
    |   +-- LedgerMappingMissingError
    |   +-- InvalidRecurrenceError
    |
    +-- WorkError
    |   +-- WorkNotFoundError
    |   +-- WorkNotRecurringError
    |   +-- WorkIsRecurringError
    |   +-- WorkInactiveError
    |
    +-- PeriodError
    |   +-- PeriodNotFoundError
    |   +-- PeriodHasOpenTasksError
    |
    +-- TaskError
    |   +-- TaskNotFoundError
    |   +-- InvalidTaskStatusError
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- InvalidInvoiceTransitionError
    |
    +-- ReferentialIntegrityError
    |   +-- InvoiceSourceMissingError
    |
    +-- LedgerError
        +-- UnbalancedEntryError
        +-- InvalidLedgerLineError
        +-- LedgerImbalanceError
        +-- AccountNotFoundError
        +-- AccountInactiveError
        +-- InvalidPostingAmountError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | LEDGER_MAPPING_MISSING      | Required account mapping not configured
                | INVALID_RECURRENCE          | Unknown pattern or anchor day outside 1-31
----------------|-----------------------------|-----------------------------------------
Work            | WORK_NOT_FOUND              | Work ID doesn't exist
                | WORK_NOT_RECURRING          | Period operation on a one-off work
                | WORK_IS_RECURRING           | Work-level billing on a recurring work
                | WORK_INACTIVE               | Period generation on a deactivated work
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_NOT_FOUND            | Period ID doesn't exist
                | PERIOD_HAS_OPEN_TASKS       | Explicit completion with open tasks
----------------|-----------------------------|-----------------------------------------
Task            | TASK_NOT_FOUND              | Task ID doesn't exist
                | INVALID_TASK_STATUS         | Unknown task status value
----------------|-----------------------------|-----------------------------------------
Invoice         | INVOICE_NOT_FOUND           | Invoice ID doesn't exist
                | INVALID_INVOICE_TRANSITION  | (from, to) edge not allowed
----------------|-----------------------------|-----------------------------------------
Referential     | INVOICE_SOURCE_MISSING      | Invoice's work/period no longer exists
----------------|-----------------------------|-----------------------------------------
Ledger          | UNBALANCED_ENTRY            | Manual journal debits != credits
                | INVALID_LEDGER_LINE         | Line with both/neither side non-zero
                | LEDGER_IMBALANCE            | Entries under one source key unbalanced
                | ACCOUNT_NOT_FOUND           | Account ID/code doesn't exist
                | ACCOUNT_INACTIVE            | Posting to a deactivated account
                | INVALID_POSTING_AMOUNT      | Posting amount <= 0

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain exceptions should be catchable as a group. Inheriting from
   built-in types mixes domain errors with programming errors.

2. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type, so InvalidInvoiceTransitionError.code
   is usable without instantiation (API docs, result objects).

3. WHY STORE ALL CONTEXT AS ATTRIBUTES?
   Exceptions are logged as JSON (see logging_config.StructuredFormatter,
   which lifts every public attribute into the log record) and surfaced
   through InvoiceTransitionResult.  Attributes survive; messages don't.

===============================================================================
"""


class PracticeKernelError(Exception):
    """
    Base exception for all practice kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRACTICE_KERNEL_ERROR"


# Configuration exceptions


class ConfigurationError(PracticeKernelError):
    """Base exception for tenant configuration gaps."""

    code: str = "CONFIGURATION_ERROR"


class LedgerMappingMissingError(ConfigurationError):
    """A ledger role (receivable, income, cash) has no usable account."""

    code: str = "LEDGER_MAPPING_MISSING"

    def __init__(self, role: str, account_code: str | None = None):
        self.role = role
        self.account_code = account_code
        detail = f" (code {account_code})" if account_code else ""
        super().__init__(f"No ledger account configured for {role}{detail}")


class InvalidRecurrenceError(ConfigurationError):
    """Recurrence pattern or anchor day cannot produce periods."""

    code: str = "INVALID_RECURRENCE"

    def __init__(self, pattern: str | None, anchor_day: int | None, reason: str):
        self.pattern = pattern
        self.anchor_day = anchor_day
        self.reason = reason
        super().__init__(
            f"Invalid recurrence pattern={pattern!r} anchor_day={anchor_day}: {reason}"
        )


# Work exceptions


class WorkError(PracticeKernelError):
    """Base exception for work-related errors."""

    code: str = "WORK_ERROR"


class WorkNotFoundError(WorkError):
    """Work was not found."""

    code: str = "WORK_NOT_FOUND"

    def __init__(self, work_id: str):
        self.work_id = work_id
        super().__init__(f"Work not found: {work_id}")


class WorkNotRecurringError(WorkError):
    """Period operation requested for a non-recurring work."""

    code: str = "WORK_NOT_RECURRING"

    def __init__(self, work_id: str):
        self.work_id = work_id
        super().__init__(f"Work {work_id} is not recurring")


class WorkIsRecurringError(WorkError):
    """Work-level task or billing operation requested for a recurring work.

    A recurring work is billed only through its periods.
    """

    code: str = "WORK_IS_RECURRING"

    def __init__(self, work_id: str):
        self.work_id = work_id
        super().__init__(f"Work {work_id} is recurring; bill its periods instead")


class WorkInactiveError(WorkError):
    """Period generation requested for a deactivated work."""

    code: str = "WORK_INACTIVE"

    def __init__(self, work_id: str):
        self.work_id = work_id
        super().__init__(f"Work {work_id} is inactive")


# Period exceptions


class PeriodError(PracticeKernelError):
    """Base exception for period-related errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotFoundError(PeriodError):
    """Period was not found."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"Period not found: {period_id}")


class PeriodHasOpenTasksError(PeriodError):
    """Explicit completion requested while tasks remain open."""

    code: str = "PERIOD_HAS_OPEN_TASKS"

    def __init__(self, period_id: str, total_tasks: int, completed_tasks: int):
        self.period_id = period_id
        self.total_tasks = total_tasks
        self.completed_tasks = completed_tasks
        super().__init__(
            f"Period {period_id} has open tasks "
            f"({completed_tasks}/{total_tasks} completed)"
        )


# Task exceptions


class TaskError(PracticeKernelError):
    """Base exception for task-related errors."""

    code: str = "TASK_ERROR"


class TaskNotFoundError(TaskError):
    """Task was not found."""

    code: str = "TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class InvalidTaskStatusError(TaskError):
    """Task status value is not recognised."""

    code: str = "INVALID_TASK_STATUS"

    def __init__(self, task_id: str, status: str):
        self.task_id = task_id
        self.status = status
        super().__init__(f"Invalid status {status!r} for task {task_id}")


# Invoice exceptions


class InvoiceError(PracticeKernelError):
    """Base exception for invoice-related errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvalidInvoiceTransitionError(InvoiceError):
    """Requested invoice status edge is not in the transition table."""

    code: str = "INVALID_INVOICE_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


# Referential integrity exceptions


class ReferentialIntegrityError(PracticeKernelError):
    """Base exception for dangling references between documents."""

    code: str = "REFERENTIAL_INTEGRITY_ERROR"


class InvoiceSourceMissingError(ReferentialIntegrityError):
    """The work or period an invoice was billed from no longer exists."""

    code: str = "INVOICE_SOURCE_MISSING"

    def __init__(self, invoice_id: str, work_id: str | None, period_id: str | None):
        self.invoice_id = invoice_id
        self.work_id = work_id
        self.period_id = period_id
        super().__init__(
            f"Invoice {invoice_id} references missing source "
            f"(work={work_id}, period={period_id})"
        )


# Ledger exceptions


class LedgerError(PracticeKernelError):
    """Base exception for ledger posting errors."""

    code: str = "LEDGER_ERROR"


class UnbalancedEntryError(LedgerError):
    """Journal voucher debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Unbalanced entry: debits={debits}, credits={credits}")


class InvalidLedgerLineError(LedgerError):
    """A ledger line must carry exactly one non-zero, non-negative side."""

    code: str = "INVALID_LEDGER_LINE"

    def __init__(self, line_index: int, reason: str):
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Invalid ledger line {line_index}: {reason}")


class LedgerImbalanceError(LedgerError):
    """Entries under one source key do not balance; refusing to touch them."""

    code: str = "LEDGER_IMBALANCE"

    def __init__(self, source_key: str, debits: str, credits: str):
        self.source_key = source_key
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Ledger entries for {source_key} are unbalanced: "
            f"debits={debits}, credits={credits}"
        )


class AccountNotFoundError(LedgerError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class AccountInactiveError(LedgerError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account is inactive: {account_id}")


class InvalidPostingAmountError(LedgerError):
    """Posting amount must be strictly positive."""

    code: str = "INVALID_POSTING_AMOUNT"

    def __init__(self, source_key: str, amount: str):
        self.source_key = source_key
        self.amount = amount
        super().__init__(f"Invalid posting amount {amount} for {source_key}")
