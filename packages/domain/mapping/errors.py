"""
Error kinds for the mapping pipeline

NotInitialized and DimensionMismatch are contract violations and propagate.
MissingSignConvention and MalformedTransaction are per-transaction problems:
stages catch them, log them and return a zero-confidence result.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from packages.domain.mapping.schemas import MappingResult


class ErrorKind(str, Enum):
    """Closed set of failure causes"""
    NOT_INITIALIZED = "not_initialized"
    DIMENSION_MISMATCH = "dimension_mismatch"
    MISSING_SIGN_CONVENTION = "missing_sign_convention"
    MALFORMED_TRANSACTION = "malformed_transaction"
    STAGE_FAILURE = "stage_failure"


class MappingError(Exception):
    """Base error carrying a kind and structured context"""
    kind: ErrorKind = ErrorKind.STAGE_FAILURE

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, **self.context}


class NotInitializedError(MappingError):
    """Raised when mapping is requested before initialize() completed"""
    kind = ErrorKind.NOT_INITIALIZED


class DimensionMismatchError(MappingError):
    """Raised when two vectors built from different vocabularies are compared"""
    kind = ErrorKind.DIMENSION_MISMATCH


class MissingSignConventionError(MappingError):
    """The accounting standard has no sign convention for an account type"""
    kind = ErrorKind.MISSING_SIGN_CONVENTION


class MalformedTransactionError(MappingError):
    """Transaction lacks a debit or a credit entry"""
    kind = ErrorKind.MALFORMED_TRANSACTION


@dataclass
class StageOutcome:
    """
    Result of running one cascade stage.

    error_kind is None for a clean run (including "no match"); it is set
    when the stage failed and its result was downgraded to zero confidence.
    """
    result: MappingResult
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_kind is not None

    @classmethod
    def no_match(cls) -> "StageOutcome":
        return cls(result=MappingResult.unmapped())

    @classmethod
    def from_error(cls, exc: Exception) -> "StageOutcome":
        kind = exc.kind if isinstance(exc, MappingError) else ErrorKind.STAGE_FAILURE
        return cls(result=MappingResult.unmapped(), error_kind=kind, error=str(exc))
