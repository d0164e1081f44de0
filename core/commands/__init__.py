"""
Nexus Command Layer - Public API
=================================
Rejection model and typed errors shared by all engines.
"""

from core.commands.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    InvalidTransition,
    OrderLifecycleError,
    PermissionDenied,
    PersistenceFailure,
    ValidationError,
    error_for,
)
from core.commands.rejection import ReasonCode, RejectionReason

__all__ = [
    "RejectionReason",
    "ReasonCode",
    "OrderLifecycleError",
    "ValidationError",
    "InvalidTransition",
    "PermissionDenied",
    "EntityNotFound",
    "ConcurrencyConflict",
    "PersistenceFailure",
    "error_for",
]
