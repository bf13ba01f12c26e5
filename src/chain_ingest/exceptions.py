"""
Exception hierarchy for chain-ingest.

Remote-store errors are recovered inside the writers; source errors
propagate and abort a run.
"""

from __future__ import annotations


class ChainIngestError(Exception):
    """Base class for all chain-ingest errors."""


class BlockFileError(ChainIngestError):
    """A block file could not be read or parsed."""


class StoreError(ChainIngestError):
    """A remote store rejected or failed an operation."""


class TransientStoreError(StoreError):
    """A store operation failed in a way that is safe to retry."""


class BatchConstraintError(StoreError):
    """A batch violated the table store's atomic-batch rules."""


class RetryExhaustedError(ChainIngestError):
    """A bounded retry policy gave up on a work unit."""

    def __init__(self, what: str, attempts: int, last_error: BaseException | None = None):
        self.what = what
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{what} failed after {attempts} attempts: {last_error}")


class DeliveryError(ChainIngestError):
    """Work units were dropped, so the cursor cannot safely advance."""
