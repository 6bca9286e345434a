"""
Canonical workflow types (``stock_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  A ``Workflow`` declares
its states and transitions once; the lifecycle code asks it which
transition an action maps to instead of re-checking status flags ad hoc.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    Descriptive only: the lifecycle code evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    requires_approval: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state '{self.initial_state}' is not a state of {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.action} {t.from_state}->{t.to_state} "
                    f"references an unknown state in {self.name}"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Terminal state '{t.from_state}' has outgoing transition {t.action}"
                )

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)
