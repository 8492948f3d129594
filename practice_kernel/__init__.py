"""
Practice Kernel - recurring periods and auto-billing

The transactional core of the practice back office:
- Deterministic period generation for recurring works
- Task counters with a derived completion flag
- Exactly-once invoice emission per billing owner
- Invoice status edges driving double-entry ledger postings
- Complete reversal keyed on source documents
"""

__version__ = "0.1.0"
