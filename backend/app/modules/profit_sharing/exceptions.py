"""
Profit sharing error taxonomy.

- InputError: malformed record. Aggregation skips it; edits surface it.
- ConflictError: a conditional write lost against a concurrent change.
- InvalidTransitionError: the lifecycle rejects the action outright.
- CollaboratorFailure: notification/document side effect failed after commit.
"""

from dataclasses import dataclass
from typing import Optional


class ProfitSharingError(Exception):
    """Base class for profit sharing errors."""


class InputError(ProfitSharingError):
    """Malformed award or valuation."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


class NotFoundError(ProfitSharingError):
    """Referenced record does not exist."""


class ConflictError(ProfitSharingError):
    """Expected pre-state did not match; caller must reload and retry."""

    def __init__(self, award_id: str, expected_status: str):
        super().__init__(
            f"Award {award_id} is no longer '{expected_status}'; it was modified concurrently"
        )
        self.award_id = award_id
        self.expected_status = expected_status


class InvalidTransitionError(ProfitSharingError):
    """Action not permitted from the record's current state."""


class AccessDeniedError(InvalidTransitionError):
    """Actor is not allowed to perform the transition."""


@dataclass(frozen=True)
class CollaboratorFailure:
    """Non-fatal side-effect failure reported back with a committed transition."""
    collaborator: str
    award_id: str
    message: str

    def __str__(self) -> str:
        return f"{self.collaborator} failed for award {self.award_id}: {self.message}"
