"""
AccountResolver -- maps ledger roles to concrete accounts.

Responsibility:
    Resolve the receivable, income, and cash/bank accounts an automatic
    posting needs, honouring per-customer and per-service overrides, and
    create a customer's own receivable ledger on first need when the tenant
    has enabled it.

Architecture position:
    Kernel > Services.  Used by the billing engine (to stamp accounts on a
    new invoice) and by the invoice lifecycle controller (at posting time).

Invariants enforced:
    - Resolution order, receivable: customer's own account, then an
      auto-created customer account, then the tenant receivable account.
    - Resolution order, income: service income account, then tenant income.
    - A missing mapping resolves to None; the caller decides whether that
      is a skip-with-warning (automatic paths) or an error.

Failure modes:
    - LedgerMappingMissingError from ``require()`` only.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from practice_kernel.domain.settings import KernelSettings
from practice_kernel.exceptions import LedgerMappingMissingError
from practice_kernel.logging_config import get_logger
from practice_kernel.models.directory import Customer, Service
from practice_kernel.models.ledger import Account, AccountType, NormalBalance
from practice_kernel.services.base import BaseService

logger = get_logger("services.account_resolver")

RECEIVABLE = "receivable"
INCOME = "income"
CASH = "cash"


class AccountResolver(BaseService):
    """
    Role-to-account resolution for automatic postings.

    Non-goals:
        - Chart-of-accounts maintenance beyond creating customer ledgers.
    """

    def __init__(self, session: Session, settings: KernelSettings):
        super().__init__(session)
        self._roles = settings.ledger
        self._actor_id = settings.system_actor_id

    def by_code(self, code: str | None) -> Account | None:
        if not code:
            return None
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def _code_for(self, role: str) -> str | None:
        return {
            RECEIVABLE: self._roles.receivable_code,
            INCOME: self._roles.income_code,
            CASH: self._roles.cash_code,
        }[role]

    def tenant_account(self, role: str) -> Account | None:
        return self.by_code(self._code_for(role))

    def require(self, role: str) -> Account:
        account = self.tenant_account(role)
        if account is None:
            raise LedgerMappingMissingError(role, self._code_for(role))
        return account

    def receivable_for(self, customer: Customer) -> Account | None:
        """Customer's receivable ledger, created on first need if enabled."""
        if customer.receivable_account_id is not None:
            return self.session.get(Account, customer.receivable_account_id)

        if self._roles.auto_create_customer_accounts:
            return self._create_customer_account(customer)

        return self.tenant_account(RECEIVABLE)

    def income_for(self, service: Service) -> Account | None:
        if service.income_account_id is not None:
            return self.session.get(Account, service.income_account_id)
        return self.tenant_account(INCOME)

    def cash(self) -> Account | None:
        return self.tenant_account(CASH)

    def _create_customer_account(self, customer: Customer) -> Account:
        code = f"{self._roles.customer_account_prefix}{customer.code}"
        account = self.by_code(code)
        if account is None:
            account = Account(
                code=code,
                name=f"{customer.name} - Receivable",
                account_type=AccountType.ASSET.value,
                normal_balance=NormalBalance.DEBIT.value,
                created_by_id=self._actor_id,
            )
            self.session.add(account)
            self.session.flush()
            logger.info(
                "customer_ledger_created",
                extra={"customer_id": str(customer.id), "account_code": code},
            )
        customer.receivable_account_id = account.id
        self.session.flush()
        return account
