"""Models for asynchronous GCE zone operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Self

from google.cloud import compute_v1

__all__ = [
    "DiskOperation",
    "OperationErrorDetail",
    "OperationStatus",
]


class OperationStatus(Enum):
    """Status of a GCE zone operation."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class OperationErrorDetail:
    """One error reported by a completed operation."""

    code: str
    """Error type identifier, such as ``QUOTA_EXCEEDED``."""

    message: str
    """Human-readable error message."""


@dataclass(frozen=True, slots=True)
class DiskOperation:
    """Status of a disk resize operation.

    Only lives for the duration of one resize attempt.
    """

    name: str
    """Name of the operation, used to poll for its status."""

    status: OperationStatus
    """Current status."""

    errors: list[OperationErrorDetail | None] = field(default_factory=list)
    """Errors reported by the operation, only meaningful once done."""

    @classmethod
    def from_operation(cls, operation: compute_v1.Operation) -> Self:
        """Convert a compute API operation.

        Parameters
        ----------
        operation
            Operation returned by the compute API.

        Returns
        -------
        DiskOperation
            Corresponding status.
        """
        status_name = getattr(operation.status, "name", str(operation.status))
        try:
            status = OperationStatus(status_name)
        except ValueError:
            status = OperationStatus.UNKNOWN
        errors: list[OperationErrorDetail | None] = [
            OperationErrorDetail(code=e.code, message=e.message)
            for e in operation.error.errors
        ]
        return cls(name=operation.name, status=status, errors=errors)

    @property
    def done(self) -> bool:
        """Whether the operation has reached its terminal state."""
        return self.status == OperationStatus.DONE
