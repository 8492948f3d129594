"""
Config -> Kernel Bridges.

Converts a ``PracticeConfig`` into the ``KernelSettings`` the kernel
services are constructed with.  This lives in practice_config (the
producer) because the kernel must NEVER import practice_config.

Usage:
    from practice_config import get_active_config
    from practice_config.bridges import build_kernel_settings

    settings = build_kernel_settings(get_active_config())
"""

from __future__ import annotations

from practice_config.schema import PracticeConfig
from practice_kernel.domain.billing_policy import PaymentTerms
from practice_kernel.domain.settings import KernelSettings, LedgerRoles, NumberFormat


def build_kernel_settings(config: PracticeConfig) -> KernelSettings:
    ledger = config.ledger
    return KernelSettings(
        ledger=LedgerRoles(
            receivable_code=ledger.receivable_account_code,
            income_code=ledger.income_account_code,
            cash_code=ledger.cash_account_code,
            auto_create_customer_accounts=ledger.auto_create_customer_accounts,
            customer_account_prefix=ledger.customer_account_prefix,
        ),
        number_formats={
            name: NumberFormat(
                prefix=rule.prefix,
                suffix=rule.suffix,
                width=rule.width,
                zero_pad=rule.zero_pad,
                starting_number=rule.starting_number,
            )
            for name, rule in config.numbering.items()
        },
        default_payment_terms=PaymentTerms(config.billing.default_payment_terms),
        max_catch_up_periods=config.periods.max_catch_up_periods,
        system_actor_id=config.system_actor_id,
    )
