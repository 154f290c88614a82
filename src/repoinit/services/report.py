"""Outcome records produced by the operation processor."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class OutcomeStatus(StrEnum):
    """What applying one operation did to the repository."""

    CREATED = "created"
    EXISTS = "exists"
    DELETED = "deleted"
    ABSENT = "absent"
    DISABLED = "disabled"
    ENABLED = "enabled"
    REGISTERED = "registered"
    UNCHANGED = "unchanged"
    UPDATED = "updated"

    @property
    def changed(self) -> bool:
        """Whether this status implies a pending write."""
        return self not in _NO_CHANGE


_NO_CHANGE = frozenset({OutcomeStatus.EXISTS, OutcomeStatus.ABSENT, OutcomeStatus.UNCHANGED})


class OperationOutcome(BaseModel):
    """Result of one applied operation."""

    model_config = {"frozen": True}

    index: int
    kind: str
    target: str
    status: OutcomeStatus


class ApplyReport(BaseModel):
    """Outcomes of a fully applied batch, in operation order."""

    model_config = {"frozen": True}

    outcomes: list[OperationOutcome] = Field(default_factory=list)

    @property
    def changed(self) -> int:
        return sum(1 for o in self.outcomes if o.status.changed)

    def counts(self) -> dict[str, int]:
        """Number of outcomes per status, only for statuses that occurred."""
        result: dict[str, int] = {}
        for outcome in self.outcomes:
            result[outcome.status.value] = result.get(outcome.status.value, 0) + 1
        return result
