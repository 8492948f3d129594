"""
Module: practice_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors are
    the read side of the kernel: structured access to periods, invoices,
    and ledger balances without any mutation.
Architecture position: Kernel > Selectors.  May import from db/ and
    models/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush, or commit.
    - Results are frozen dataclasses or plain values, not ORM rows.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Base class for all selectors.

    Contract:
        Accept a caller-owned Session, run read-only queries, return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
