"""Deadline budgets for a pipeline run.

A run has one hard deadline for the whole job; stages run under their own
shorter budgets. Persisting the outcome gets a separate budget that is
applied after the job deadline has already expired, so the error state of
a cancelled run still reaches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class PipelineDeadlines:
    job: timedelta = timedelta(minutes=10)
    download: timedelta = timedelta(minutes=5)
    thumbnail: timedelta = timedelta(seconds=60)
    live_preview: timedelta = timedelta(seconds=120)
    transcode: timedelta = timedelta(minutes=2)
    persist: timedelta = timedelta(seconds=10)
    delete: timedelta = timedelta(seconds=10)
    lock_ttl: timedelta = timedelta(minutes=30)

    def __post_init__(self) -> None:
        for name in self.__dataclass_fields__:
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"{name} deadline must be positive")
        if self.lock_ttl < self.job:
            raise ValueError("lock_ttl must cover the whole job deadline")

    @classmethod
    def from_seconds(cls, *, job: float | None = None, persist: float | None = None) -> "PipelineDeadlines":
        defaults = cls()
        return cls(
            job=timedelta(seconds=job) if job else defaults.job,
            persist=timedelta(seconds=persist) if persist else defaults.persist,
        )


def stage_budget(deadline: timedelta, *, job_started_at: datetime, job_deadline: timedelta, now: datetime) -> float:
    """Seconds left for a stage: its own budget, capped by what remains of the job."""

    remaining = job_started_at + job_deadline - now
    budget = min(deadline, remaining)
    return max(budget.total_seconds(), 0.0)


__all__ = ["PipelineDeadlines", "stage_budget"]
