"""
Nexus Documents - Numbering Provider
=====================================
Protocol + InMemory implementation for sequence state management.

Doctrine:
- Provider is a dependency injection point (testable, swappable).
- Sequence state mutation is atomic per doc_type.
- A number once handed out is never handed out again, even if the
  action that asked for it is later refused.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Protocol

from core.documents.numbering.engine import SequenceState
from core.documents.numbering.models import DEFAULT_POLICIES, NumberingPolicy


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class NumberingProvider(Protocol):
    def get_and_advance(self, *, doc_type: str, issued_at: datetime) -> str:
        """Atomically get the next document number and advance the sequence."""
        ...


# ---------------------------------------------------------------------------
# InMemory Provider (deterministic, thread-safe)
# ---------------------------------------------------------------------------

class InMemoryNumberingProvider:
    """
    Thread-safe in-memory numbering provider.

    Policies are registered at construction time; sequence states can be
    seeded from a snapshot so a restarted process keeps counting.
    """

    def __init__(
        self,
        policies: tuple[NumberingPolicy, ...] = DEFAULT_POLICIES,
        states: Dict[str, dict] | None = None,
    ):
        self._lock = threading.Lock()
        self._policies: dict[str, NumberingPolicy] = {}
        self._states: dict[str, SequenceState] = {}

        for policy in policies:
            self._policies[policy.doc_type] = policy
            seeded = (states or {}).get(policy.doc_type)
            self._states[policy.doc_type] = (
                SequenceState.from_dict(policy, seeded) if seeded else SequenceState(policy)
            )

    def get_and_advance(self, *, doc_type: str, issued_at: datetime) -> str:
        with self._lock:
            policy = self._policies.get(doc_type)
            if policy is None:
                raise ValueError(f"No numbering policy registered for '{doc_type}'.")
            doc_number, new_state = self._states[doc_type].next_number(issued_at)
            self._states[doc_type] = new_state
            return doc_number

    def snapshot(self) -> Dict[str, dict]:
        """Serializable sequence states, keyed by doc_type."""
        with self._lock:
            return {doc_type: state.to_dict() for doc_type, state in self._states.items()}
