"""
Stock Kernel

Domain core of the stock adjustment workflow:
- Immutable adjustment documents with derived totals
- Typed, code-carrying exceptions
- Structured JSON logging
- Injectable clock
- SQLAlchemy base/engine for the optional persistence adapter
"""

__version__ = "0.1.0"
