"""
NumberingService -- document numbers for invoices and vouchers.

Formats the next counter value of a document type with that type's
NumberFormat (``INV-000001``, ``RCT-000001``, ``JV-000001``).  Numbers are
unique per tenant because the counter row is locked; they are never
derived from counting existing documents.
"""

from sqlalchemy.orm import Session

from practice_kernel.domain.settings import KernelSettings
from practice_kernel.logging_config import get_logger
from practice_kernel.services.sequence_service import SequenceService

logger = get_logger("services.numbering")

INVOICE = "invoice"
RECEIPT = "receipt"
JOURNAL = "journal"


class NumberingService:
    def __init__(self, session: Session, settings: KernelSettings):
        self._sequences = SequenceService(session)
        self._settings = settings

    def next_number(self, document_type: str) -> str:
        counter = self._sequences.next_value(f"doc_{document_type}")
        number = self._settings.number_format(document_type).render(counter)
        logger.debug(
            "document_number_allocated",
            extra={"document_type": document_type, "number": number},
        )
        return number

    def next_invoice_number(self) -> str:
        return self.next_number(INVOICE)

    def next_receipt_number(self) -> str:
        return self.next_number(RECEIPT)

    def next_journal_number(self) -> str:
        return self.next_number(JOURNAL)
