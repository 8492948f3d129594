"""
practice_services -- transaction-owning orchestration over the kernel.

Dependency direction:
    practice_services/ -> practice_kernel/, practice_config/  (allowed)
    practice_kernel/   -> practice_services/                  (FORBIDDEN)
"""

from practice_services.billing_service import PracticeBillingService

__all__ = ["PracticeBillingService"]
