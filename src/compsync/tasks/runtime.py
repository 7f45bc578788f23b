"""Runtime dataclasses shared by sync stages and the orchestrator."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Literal

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from compsync.scrape.fetch import PageFetcher
    from compsync.tasks.throttle import Throttle

StageStatus = Literal["success", "failed", "skipped"]

SessionScope = Callable[[], AbstractContextManager[Session]]


@dataclass(frozen=True)
class StageContext:
    """
    Collaborators handed to a stage runner.

    session_scope opens a unit of work (commit on success, rollback on
    error); throttle paces the stage's outbound fetches.
    """

    run_id: str
    stage_name: str
    started_at: datetime
    fetcher: PageFetcher
    session_scope: SessionScope
    throttle: Throttle
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class StageResult:
    """Outcome of one stage within a sync run."""

    stage_name: str
    status: StageStatus
    started_at: datetime
    ended_at: datetime
    metrics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def duration_s(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_s": self.duration_s,
            "metrics": self.metrics,
            "error": self.error,
        }


class StageSkipped(Exception):
    """Raised by a runner that has nothing to do (e.g. a source is not configured)."""
