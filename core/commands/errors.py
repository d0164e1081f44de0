"""
Nexus Command Layer - Typed Errors
===================================
Every refused or failed action surfaces as one of these exceptions.
All of them leave the stored entity exactly as it was.

    ValidationError      - bad input (missing memo, non-positive amount,
                           duplicate reference). Actor corrects and resubmits.
    InvalidTransition    - action not permitted from the current state.
    PermissionDenied     - actor lacks a role for the action.
    EntityNotFound       - unknown order / customer / supplier / item.
    ConcurrencyConflict  - version precondition failed. Refetch and retry.
    PersistenceFailure   - external store failed. Surfaced as-is, never retried.
"""

from __future__ import annotations

from core.commands.rejection import ReasonCode, RejectionReason


class OrderLifecycleError(Exception):
    """Base error for lifecycle operations. Carries a RejectionReason."""

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        super().__init__(reason.message)

    @property
    def code(self) -> str:
        return self.reason.code


class ValidationError(OrderLifecycleError):
    pass


class InvalidTransition(OrderLifecycleError):
    pass


class PermissionDenied(OrderLifecycleError):
    pass


class EntityNotFound(OrderLifecycleError):
    pass


class ConcurrencyConflict(OrderLifecycleError):
    """Stored version differs from the version the caller worked on."""

    def __init__(self, entity_id: str, expected_version: int, actual_version: int):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(RejectionReason(
            code=ReasonCode.VERSION_CONFLICT,
            message=(
                f"'{entity_id}' was modified concurrently: expected version "
                f"{expected_version}, found {actual_version}. Refetch and retry."
            ),
            policy_name="version_must_match_policy",
        ))


class PersistenceFailure(OrderLifecycleError):
    """The external store could not complete a read or write."""

    def __init__(self, message: str):
        super().__init__(RejectionReason(
            code=ReasonCode.PERSISTENCE_UNAVAILABLE,
            message=message,
            policy_name="store",
        ))


_ERRORS_BY_CODE = {
    ReasonCode.ORDER_NOT_FOUND: EntityNotFound,
    ReasonCode.ITEM_NOT_FOUND: EntityNotFound,
    ReasonCode.COMPONENT_NOT_FOUND: EntityNotFound,
    ReasonCode.CUSTOMER_NOT_FOUND: EntityNotFound,
    ReasonCode.SUPPLIER_NOT_FOUND: EntityNotFound,
    ReasonCode.PERMISSION_DENIED: PermissionDenied,
    ReasonCode.INVALID_TRANSITION: InvalidTransition,
    ReasonCode.TERMINAL_STATE: InvalidTransition,
    ReasonCode.ALREADY_IN_HOLD: InvalidTransition,
    ReasonCode.NOT_IN_HOLD: InvalidTransition,
    ReasonCode.ALREADY_BLACKLISTED: InvalidTransition,
    ReasonCode.NOT_BLACKLISTED: InvalidTransition,
}


def error_for(reason: RejectionReason) -> OrderLifecycleError:
    """Map a policy rejection onto its typed error. Unknown codes are validation errors."""
    error_cls = _ERRORS_BY_CODE.get(reason.code, ValidationError)
    return error_cls(reason)
