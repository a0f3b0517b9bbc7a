"""Stage run and budget status schemas."""

from typing import Literal

from pydantic import BaseModel

ItemOutcome = Literal["created", "rejected", "skipped"]


class StageSummary(BaseModel):
    """Counters returned by every stage run."""

    processed: int = 0
    created: int = 0
    rejected: int = 0
    skipped: int = 0
    stopped_early: bool = False

    def record(self, outcome: ItemOutcome) -> None:
        """Count one item outcome."""
        if outcome == "created":
            self.created += 1
        elif outcome == "rejected":
            self.rejected += 1
        else:
            self.skipped += 1


class BudgetStatus(BaseModel):
    """Result of a daily budget check."""

    exceeded: bool
    spent_today: float
    limit: float


class CostSummary(BaseModel):
    """Today's spend broken down by stage and model."""

    total: float = 0.0
    by_stage: dict[str, float] = {}
    by_model: dict[str, float] = {}
    api_calls: int = 0


class StatusResponse(BaseModel):
    """Schema for the budget status query."""

    spent_today: float
    limit: float
    exceeded: bool
    api_calls: int
    by_stage: dict[str, float] = {}
    by_model: dict[str, float] = {}


class StageRunResponse(BaseModel):
    """Schema for a triggered stage run."""

    stage: str
    summary: StageSummary
