"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the read side of the adapter: structured access to persisted
    documents without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py.
    Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, NOT raw ORM
      model instances.
    - Session ownership: the caller owns the session and its transaction scope.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from stock_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Subclasses implement the domain-specific queries; this class only holds
    the caller's session.
    """

    def __init__(self, session: Session):
        self.session = session
