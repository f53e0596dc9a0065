"""
Error taxonomy for the ledger core

- ValidationError: the caller sent something the ledger refuses. The operation
  is rejected and nothing is mutated. Always names the single blocking field.
- InvariantViolation: a derived quantity no longer reconciles with its inputs.
  Never a user error; if one is raised there is a defect upstream.
"""

from typing import Optional, Dict


class LedgerError(Exception):
    """Base class for every error raised by the ledger core"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class ValidationError(LedgerError):
    """Rejected operation, recoverable by the caller"""

    def __init__(self, field: str, message: str, code: Optional[str] = None):
        super().__init__(code or f"invalid_{field}", message)
        self.field = field

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


class InvariantViolation(LedgerError):
    """Derived state does not reconcile"""

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}
