"""EPA operation result models.

This module defines the value types returned by every EPA transport and
synchronization operation, so that remote failures are represented as data
rather than raised.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a single create or update call against the EPA.

    Attributes:
        success: Whether the EPA accepted the patient
        epa_id: Identifier assigned by the EPA (present only on success)
        message: Human-readable message suitable for direct display

    Example:
        >>> result = SyncResult.ok("EPA-99", "Patient transferred successfully")
        >>> result.success
        True
    """

    success: bool
    epa_id: Optional[str]
    message: str

    @classmethod
    def ok(cls, epa_id: str, message: str) -> "SyncResult":
        return cls(success=True, epa_id=epa_id, message=message)

    @classmethod
    def failed(cls, message: str) -> "SyncResult":
        return cls(success=False, epa_id=None, message=message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.epa_id is not None:
            data["epaId"] = self.epa_id
        return data


@dataclass(frozen=True)
class BulkSyncResult:
    """Aggregated outcome of a bulk synchronization.

    Attributes:
        success_count: Number of patients accepted by the EPA
        failed_count: Number of patients rejected or not transmitted
    """

    success_count: int = 0
    failed_count: int = 0

    @property
    def total(self) -> int:
        """Number of patients attempted."""
        return self.success_count + self.failed_count

    def to_dict(self) -> Dict[str, int]:
        return {
            "success": self.success_count,
            "failed": self.failed_count,
            "total": self.total,
        }
