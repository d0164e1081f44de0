"""
Nexus Workflow Primitive - Order State Machine Schema
=====================================================
A frozen table of which status may follow which. The Orders Engine
builds its lifecycle graph (LOGGED → TECHNICAL_REVIEW → ... → FULFILLED)
on top of it; services consult it before every status change.

Terminal statuses have no forward edges. Leaving one is only possible
through a declared reversal, e.g. cancelling the payment that
fulfilled an order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet


# ══════════════════════════════════════════════════════════════
# WORKFLOW DEFINITION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Statuses and allowed transitions of one workflow.

    Fields:
        name:            Identifier for this workflow type (e.g. "CustomerOrder")
        initial_state:   Starting state for all new instances
        terminal_states: States from which no forward transition is allowed
        transitions:     Dict of {from_state → frozenset(allowed_to_states)}
        reversals:       Dict of {from_state → frozenset(to_states)} allowed
                         only when the caller declares a reversal
    """
    name: str
    initial_state: str
    terminal_states: FrozenSet[str]
    transitions: Dict[str, FrozenSet[str]]
    reversals: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Workflow name must be non-empty.")
        if not self.initial_state:
            raise ValueError("initial_state must be non-empty.")
        if self.initial_state not in self.transitions:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in transitions."
            )
        for state in self.terminal_states:
            if self.transitions.get(state):
                raise ValueError(
                    f"Terminal state '{state}' must not declare forward transitions."
                )
        for source, targets in list(self.transitions.items()) + list(self.reversals.items()):
            unknown = set(targets) - self.states
            if unknown:
                raise ValueError(
                    f"Transitions from '{source}' name undeclared states: {sorted(unknown)}."
                )

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def allowed_next_states(self, from_state: str) -> FrozenSet[str]:
        return self.transitions.get(from_state, frozenset())

    def is_valid_transition(
        self,
        from_state: str,
        to_state: str,
        *,
        reversal: bool = False,
    ) -> bool:
        """True when from_state may move to to_state."""
        if to_state in self.allowed_next_states(from_state):
            return True
        if reversal:
            return to_state in self.reversals.get(from_state, frozenset())
        return False

