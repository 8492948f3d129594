"""
practice_batch -- Scheduled batch processing for the practice kernel.

Runs period generation for every active recurring work as a batch with
per-item SAVEPOINT isolation, driven by an in-process daily scheduler.

Architecture:
    practice_batch/ is a top-level package.  Nothing in practice_kernel/
    or practice_services/ imports from practice_batch.

Invariants:
    - SAVEPOINT isolation per item: one work's failure never rolls back
      the periods created for another.
    - Clock injection: the run date comes from the injected clock.
    - At most one scheduled run per calendar day per scheduler.
    - Graceful shutdown: stop() is honoured between items.
"""
