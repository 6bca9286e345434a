"""Services for the stock kernel (write side)."""

from stock_kernel.services.sequence_service import SequenceService

__all__ = [
    "SequenceService",
]
