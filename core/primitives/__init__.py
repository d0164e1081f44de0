"""
Nexus Core Primitives - Reusable Building Blocks
=================================================
Engine-agnostic building blocks consumed by the Nexus engines. They are:

- Pure Python (no framework dependency)
- Immutable (frozen dataclasses)
- Deterministic (same input → same output)

Primitives:
    actor     - who performed an action, and with which roles
    workflow  - state machine schema (states, transitions, reversals)
"""
