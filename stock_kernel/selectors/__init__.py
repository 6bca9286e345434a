"""Read-only query selectors."""

from stock_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
