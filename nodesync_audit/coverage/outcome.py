"""
Validation Outcomes for NodeSync Coverage

Outcome codes recorded by NodeSync for each validated token range, and the
labels used when reporting them.
"""

from enum import IntEnum
from typing import Optional


class ValidationOutcome(IntEnum):
    """NodeSync validation outcome codes, in increasing order of severity."""
    IN_SYNC = 0
    REPAIRED = 1
    PARTIALLY_IN_SYNC = 2
    PARTIALLY_REPAIRED = 3
    UNVALIDATED = 4
    FAILED = 5

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def from_code(cls, code: int) -> Optional["ValidationOutcome"]:
        """
        Look up an outcome by its numeric code.

        Args:
            code: Raw outcome code as stored by NodeSync

        Returns:
            Matching outcome, or None if the code is not recognized
        """
        try:
            return cls(code)
        except ValueError:
            return None


_DESCRIPTIONS = {
    ValidationOutcome.IN_SYNC: "fully in sync",
    ValidationOutcome.REPAIRED: "fully repaired",
    ValidationOutcome.PARTIALLY_IN_SYNC: "partially in sync",
    ValidationOutcome.PARTIALLY_REPAIRED: "partially repaired",
    ValidationOutcome.UNVALIDATED: "validation uncompleted",
    ValidationOutcome.FAILED: "failed",
}


def describe_outcome(code: int) -> str:
    """
    Build the human-readable label for an outcome code.

    Unknown codes are labelled rather than rejected so a single odd row
    never stops a report.

    Args:
        code: Raw outcome code

    Returns:
        Label such as ``"0 (fully in sync)"`` or ``"invalid outcome code (9)"``
    """
    outcome = ValidationOutcome.from_code(code)

    if outcome is None:
        return f"invalid outcome code ({code})"

    return f"{int(outcome)} ({outcome.description})"


def outcome_name(code: int) -> str:
    """Short metric-friendly name for an outcome code (``in_sync``, ``unknown``...)."""
    outcome = ValidationOutcome.from_code(code)
    return outcome.name.lower() if outcome is not None else "unknown"
