"""
Canonical workflow types (``sourcing_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for aggregate state machines.  The RFQ and Bid modules
declare their lifecycles as ``Workflow`` instances so that Guard, Transition
and Workflow are defined once, and every status change is resolved through
``require_transition``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.

Both are checked by ``validate_workflow``; module tests assert that every
declared workflow is structurally sound.
"""

from __future__ import annotations

from dataclasses import dataclass

from sourcing_kernel.exceptions import StateTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the lifecycle manager does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``system=True`` marks a transition that is never requested by a user but
    applied lazily from wall-clock time (auto-close, auto-expiry).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    system: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an aggregate lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        """Find the transition for ``action`` leaving ``current_state``."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def actions_from(self, current_state: str) -> tuple[str, ...]:
        """User-facing actions available from ``current_state``."""
        return tuple(
            t.action
            for t in self.transitions
            if t.from_state == current_state and not t.system
        )

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


def require_transition(
    workflow: Workflow,
    entity_id: object,
    current_state: str,
    action: str,
    reason: str | None = None,
) -> Transition:
    """
    Resolve ``action`` from ``current_state`` or raise.

    Raises:
        StateTransitionError: if the workflow declares no such transition.
    """
    transition = workflow.find_transition(current_state, action)
    if transition is None:
        raise StateTransitionError(
            workflow.name,
            str(entity_id),
            current_state,
            action,
            reason or f"allowed actions: {', '.join(workflow.actions_from(current_state)) or 'none'}",
        )
    return transition


def validate_workflow(workflow: Workflow) -> list[str]:
    """Return structural problems with ``workflow`` (empty list when sound)."""
    problems: list[str] = []
    states = set(workflow.states)
    if workflow.initial_state not in states:
        problems.append(f"initial state {workflow.initial_state!r} not declared")
    for t in workflow.transitions:
        if t.from_state not in states:
            problems.append(f"{t.action}: unknown from_state {t.from_state!r}")
        if t.to_state not in states:
            problems.append(f"{t.action}: unknown to_state {t.to_state!r}")
    for terminal in workflow.terminal_states:
        if terminal not in states:
            problems.append(f"terminal state {terminal!r} not declared")
    return problems
