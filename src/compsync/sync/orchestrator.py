"""
Sync orchestrator.

Runs the registered stages one after another. Each stage is its own failure
domain: an exception inside a stage is caught here, recorded as
"<Label> sync failed: <message>", and the next stage still runs. Nothing is
retried; the next scheduled run is the retry.

Overlap protection uses a StageStateBoard owned by the caller. A stage that
is already Running on the board (e.g. a slow earnings sync when the next
cron tick fires in the same process) is skipped for this run.

Usage:
    async with PlaywrightFetcher() as fetcher:
        orchestrator = SyncOrchestrator(build_default_registry(), fetcher)
        report = await orchestrator.run()
    print(report.summary_text())
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Callable, Optional

from compsync.db.session import get_session
from compsync.scrape.fetch import PageFetcher
from compsync.sync.notify import Notifier
from compsync.tasks.runtime import SessionScope, StageContext, StageResult, StageSkipped
from compsync.tasks.stages import StageDefinition, StageRegistry
from compsync.tasks.state import StageStateBoard
from compsync.tasks.throttle import Sleep, Throttle

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_run_id(now: Optional[datetime] = None) -> str:
    stamp = (now or _utc_now()).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


@dataclass
class SyncRunReport:
    """Per-stage outcomes of one run plus its wall-clock time."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    elapsed_s: float = 0.0
    results: list[StageResult] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def successes(self) -> list[StageResult]:
        return [r for r in self.results if r.status == "success"]

    @property
    def failures(self) -> list[StageResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def skipped(self) -> list[StageResult]:
        return [r for r in self.results if r.status == "skipped"]

    @property
    def errors(self) -> list[str]:
        return [r.error for r in self.failures if r.error]

    @property
    def status(self) -> str:
        if not self.failures:
            return "success"
        return "partial" if self.successes else "failed"

    def _label(self, stage_name: str) -> str:
        return self.labels.get(stage_name, stage_name)

    def summary_text(self) -> str:
        """Plain-text summary handed to the notifier."""
        lines = [
            f"Sync run {self.run_id} finished in {self.elapsed_s:.1f}s: "
            f"{len(self.successes)} succeeded, {len(self.failures)} failed, "
            f"{len(self.skipped)} skipped",
        ]
        for result in self.results:
            label = self._label(result.stage_name)
            if result.status == "success":
                counts = " ".join(
                    f"{key}={value}" for key, value in result.metrics.items()
                    if isinstance(value, int) and not isinstance(value, bool)
                )
                lines.append(f"  {label}: ok ({result.duration_s:.1f}s) {counts}".rstrip())
            elif result.status == "skipped":
                lines.append(f"  {label}: skipped ({result.error})")
            else:
                lines.append(f"  {label}: FAILED")
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "elapsed_s": self.elapsed_s,
            "stages": [r.to_dict() for r in self.results],
            "errors": self.errors,
        }


class SyncOrchestrator:
    """
    Sequential stage runner with per-stage failure isolation.

    Args:
        registry: Stages and their order
        fetcher: Outbound fetch collaborator shared by all stages
        session_scope: Unit-of-work factory handed to stages
        notifier: Receives the run summary (optional)
        state: Per-stage state board; pass the same board to every
            orchestrator that must not overlap
        sleep: Sleep used by the throttles (tests pass a no-op)
        on_stage_result: Called after each stage, e.g. to persist it
    """

    def __init__(
        self,
        registry: StageRegistry,
        fetcher: PageFetcher,
        session_scope: SessionScope = get_session,
        notifier: Optional[Notifier] = None,
        state: Optional[StageStateBoard] = None,
        sleep: Sleep = asyncio.sleep,
        on_stage_result: Optional[Callable[[StageResult], None]] = None,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.session_scope = session_scope
        self.notifier = notifier
        self.state = state if state is not None else StageStateBoard()
        self._sleep = sleep
        self._on_stage_result = on_stage_result

    async def run(
        self,
        stages: Optional[list[str]] = None,
        skip: Optional[set[str]] = None,
        options: Optional[dict[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> SyncRunReport:
        """Run the selected stages (registry defaults if None) and notify."""
        selected = self.registry.resolve(include=stages, skip=skip)
        started_at = _utc_now()
        report = SyncRunReport(
            run_id=run_id or new_run_id(started_at),
            started_at=started_at,
            labels={s.name: s.display_name for s in selected},
        )
        logger.info(
            "Sync run %s starting: %s", report.run_id, ", ".join(s.name for s in selected),
        )

        started_perf = perf_counter()
        for stage in selected:
            result = await self.run_stage(stage, report.run_id, options or {})
            report.results.append(result)
            if self._on_stage_result is not None:
                self._on_stage_result(result)

        report.elapsed_s = perf_counter() - started_perf
        report.ended_at = _utc_now()

        summary = report.summary_text()
        logger.info(summary)
        if self.notifier is not None:
            await self.notifier.send(summary)
        return report

    async def run_stage(
        self,
        stage: StageDefinition,
        run_id: str,
        options: dict[str, Any],
    ) -> StageResult:
        started_at = _utc_now()

        if not self.state.try_start(stage.name, run_id):
            logger.warning("Stage %s is already running; skipping", stage.name)
            return StageResult(
                stage_name=stage.name,
                status="skipped",
                started_at=started_at,
                ended_at=_utc_now(),
                error="already running",
            )

        ctx = StageContext(
            run_id=run_id,
            stage_name=stage.name,
            started_at=started_at,
            fetcher=self.fetcher,
            session_scope=self.session_scope,
            throttle=Throttle(stage.delay_seconds, sleep=self._sleep),
            options=options,
        )

        logger.info("[Stage %s] Starting", stage.name)
        try:
            outcome = stage.runner(ctx)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except StageSkipped as e:
            self.state.finish(stage.name)
            logger.info("[Stage %s] Skipped: %s", stage.name, e)
            return StageResult(
                stage_name=stage.name,
                status="skipped",
                started_at=started_at,
                ended_at=_utc_now(),
                error=str(e),
            )
        except Exception as e:
            error = f"{stage.display_name} sync failed: {e}"
            self.state.fail(stage.name, error)
            logger.error("[Stage %s] %s", stage.name, error, exc_info=True)
            return StageResult(
                stage_name=stage.name,
                status="failed",
                started_at=started_at,
                ended_at=_utc_now(),
                error=error,
            )

        self.state.finish(stage.name)
        result = StageResult(
            stage_name=stage.name,
            status="success",
            started_at=started_at,
            ended_at=_utc_now(),
            metrics=dict(outcome or {}),
        )
        logger.info("[Stage %s] Done in %.1fs", stage.name, result.duration_s)
        return result
