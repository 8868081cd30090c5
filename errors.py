from typing import Any, Dict, Optional


class ReconciliationError(Exception):
    """Base error for the reconciliation core.

    Carries a stable dotted `code` so callers can tell store inconsistencies
    apart from write races and from bad input.
    """

    code = "reconciliation.error"
    status_code = 500

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.meta = dict(meta or {})

    def to_public_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.meta:
            payload["meta"] = self.meta
        return payload


class IntegrityFault(ReconciliationError):
    """Matched rows exist but none of them resolves to a primary contact."""

    code = "store.integrity_fault"
    status_code = 500


class ConflictFault(ReconciliationError):
    """The (email, phoneNumber) pair is already stored. Safe to retry."""

    code = "store.conflict"
    status_code = 409


class StoreUnavailable(ReconciliationError):
    code = "store.unavailable"
    status_code = 503
