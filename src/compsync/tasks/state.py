"""
Per-stage run state.

Each stage is Idle, Running or Failed. The board holding these tokens is
owned by whoever schedules runs (the orchestrator or a scheduler loop) and
is passed in explicitly, so two orchestrators in one process (e.g. tests)
never share state.

A trigger for a stage that is already Running is skipped, not queued.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class Idle:
    """Not running. last_finished_at is None if the stage never ran."""
    last_finished_at: datetime | None = None


@dataclass(frozen=True)
class Running:
    run_id: str
    started_at: datetime


@dataclass(frozen=True)
class Failed:
    error: str
    failed_at: datetime


StageState = Union[Idle, Running, Failed]


class StageStateBoard:
    """Current state token for every stage name."""

    def __init__(self) -> None:
        self._states: dict[str, StageState] = {}
        self._lock = threading.Lock()

    def get(self, stage_name: str) -> StageState:
        with self._lock:
            return self._states.get(stage_name, Idle())

    def is_running(self, stage_name: str) -> bool:
        return isinstance(self.get(stage_name), Running)

    def try_start(self, stage_name: str, run_id: str) -> bool:
        """Move to Running unless already Running. False means skip."""
        with self._lock:
            if isinstance(self._states.get(stage_name), Running):
                return False
            self._states[stage_name] = Running(run_id=run_id, started_at=datetime.utcnow())
            return True

    def finish(self, stage_name: str) -> None:
        with self._lock:
            self._states[stage_name] = Idle(last_finished_at=datetime.utcnow())

    def fail(self, stage_name: str, error: str) -> None:
        with self._lock:
            self._states[stage_name] = Failed(error=error, failed_at=datetime.utcnow())

    def snapshot(self) -> dict[str, StageState]:
        with self._lock:
            return dict(self._states)
