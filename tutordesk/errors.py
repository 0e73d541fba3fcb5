"""Directory error taxonomy and response helpers.

Every error the engine raises derives from DirectoryError and carries a
machine-readable code plus the HTTP status the API layer answers with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class QueryStage(str, Enum):
    """Stage of a directory query that touched the store."""

    SEARCH = "search"
    AGGREGATE = "aggregate"
    HYDRATE = "hydrate"
    COUNT = "count"


@dataclass(frozen=True)
class BlockingReference:
    """Why a single account cannot be deleted."""

    account_id: int
    reason: str


class DirectoryError(Exception):
    """Base directory error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(DirectoryError):
    """Malformed caller input, rejected before any store access."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error", 422)


class StoreReadError(DirectoryError):
    """Reading from the store failed during a specific query stage."""

    retryable = False

    def __init__(
        self,
        stage: QueryStage,
        message: str | None = None,
        code: str = "store_read_error",
        http_status: int = 503,
    ):
        self.stage = QueryStage(stage)
        super().__init__(
            message or f"Directory {self.stage.value} stage failed",
            code,
            http_status,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["stage"] = self.stage.value
        data["retryable"] = self.retryable
        return data


class QueryTimeoutError(StoreReadError):
    """A stage did not finish before the operation deadline."""

    retryable = True

    def __init__(self, stage: QueryStage, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            stage,
            f"Directory {QueryStage(stage).value} stage timed out after {timeout_seconds:g}s",
            code="timeout",
            http_status=504,
        )


class StoreWriteError(DirectoryError):
    """Writing to the store failed; nothing was applied."""

    def __init__(self, message: str):
        super().__init__(message, "store_write_error", 503)


class ReferentialIntegrityError(DirectoryError):
    """Delete refused because accounts still own dependent records."""

    def __init__(self, blocking: list[BlockingReference]):
        self.blocking = blocking
        ids = ", ".join(str(account_id) for account_id in self.blocking_ids)
        super().__init__(
            f"Cannot delete accounts with dependent records: {ids}",
            "referential_integrity",
            409,
        )

    @property
    def blocking_ids(self) -> list[int]:
        """Blocking account ids, each once, in report order."""
        return list(dict.fromkeys(ref.account_id for ref in self.blocking))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["blocking"] = [
            {"id": ref.account_id, "reason": ref.reason} for ref in self.blocking
        ]
        return data


def error_response(error: DirectoryError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {"error": error.to_dict()}


__all__ = [
    "BlockingReference",
    "DirectoryError",
    "QueryStage",
    "QueryTimeoutError",
    "ReferentialIntegrityError",
    "StoreReadError",
    "StoreWriteError",
    "ValidationError",
    "error_response",
]
