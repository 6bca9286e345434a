"""
Stock Modules.

Thin orchestration layers over the Stock Kernel and Engines.
Each module contains:
- Workflows (state machines)
- Lifecycle functions (pure transitions over frozen documents)
- Configuration schemas
- ORM models, selectors and a persistence service

Modules:
- Adjustment: stock adjustment drafts, approval, reporting
"""
