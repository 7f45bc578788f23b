#!/usr/bin/env python3
"""
Run the sync pipeline.

Examples:
    # All stages
    python scripts/run_sync.py

    # Only transfers and schedule
    python scripts/run_sync.py --stages transfers,schedule

    # Everything except earnings
    python scripts/run_sync.py --skip-stages earnings

    # One player's earnings (IGN, wiki URL, player id or account id)
    python scripts/run_sync.py --player Bugha
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from compsync.db import PipelineRun, PipelineStageRun, get_engine, get_session
from compsync.logging_config import configure_logging
from compsync.scrape.fetch import PlaywrightFetcher
from compsync.sync import SyncOrchestrator, build_default_registry, build_notifier, new_run_id
from compsync.tasks import StageResult, sync_run_lock

logger = logging.getLogger("run_sync")


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def _save_run_started(run_id: str, started_at: datetime) -> None:
    with get_session() as session:
        session.add(PipelineRun(run_id=run_id, started_at=started_at, status="running"))


def _save_stage_result(run_id: str, result: StageResult) -> None:
    with get_session() as session:
        session.add(
            PipelineStageRun(
                run_id=run_id,
                stage_name=result.stage_name,
                started_at=result.started_at,
                ended_at=result.ended_at,
                status=result.status,
                metrics_json=result.metrics,
                error_text=result.error,
            )
        )


def _save_run_finished(run_id: str, ended_at: datetime, status: str, summary: dict[str, Any]) -> None:
    with get_session() as session:
        run = session.query(PipelineRun).filter(PipelineRun.run_id == run_id).first()
        if run is None:
            raise RuntimeError(f"PipelineRun not found for run_id={run_id}")
        run.ended_at = ended_at
        run.status = status
        run.summary_json = summary


def _split(value: str | None) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run sync stages in sequence.")
    parser.add_argument(
        "--stages",
        default=None,
        help="Comma-separated stage list. Default: all stages (earnings only with --player).",
    )
    parser.add_argument(
        "--skip-stages",
        default="",
        help="Comma-separated stage names to skip.",
    )
    parser.add_argument(
        "--player",
        default=None,
        help="Sync earnings for one player (IGN, wiki URL, player id or account id).",
    )
    parser.add_argument(
        "--year",
        type=int,
        default=None,
        help="Tournament listing year for the tournaments stage.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Cap on organizations/players fetched per stage (for testing).",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write the run report JSON to this path.",
    )
    parser.add_argument(
        "--lock-name",
        default="compsync_sync_pipeline",
        help="Advisory lock namespace.",
    )
    parser.add_argument(
        "--lock-timeout-seconds",
        type=float,
        default=5.0,
        help="Advisory lock acquisition timeout.",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL.",
    )
    return parser.parse_args(argv)


def build_options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.player:
        options["player"] = args.player
    if args.year:
        options["year"] = args.year
    if args.limit:
        options["limit"] = args.limit
    return options


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level)

    registry = build_default_registry()
    include = _split(args.stages) or (["earnings"] if args.player else None)
    skip = set(_split(args.skip_stages))
    try:
        registry.resolve(include=include, skip=skip)
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return 2

    run_id = new_run_id()
    try:
        with sync_run_lock(
            get_engine(),
            args.lock_name,
            timeout_seconds=args.lock_timeout_seconds,
        ):
            report_started = datetime.utcnow()
            _save_run_started(run_id, report_started)

            async with PlaywrightFetcher(headless=False if args.headed else None) as fetcher:
                orchestrator = SyncOrchestrator(
                    registry,
                    fetcher,
                    notifier=build_notifier(),
                    on_stage_result=lambda result: _save_stage_result(run_id, result),
                )
                report = await orchestrator.run(
                    stages=include,
                    skip=skip,
                    options=build_options(args),
                    run_id=run_id,
                )
    except TimeoutError as exc:
        logger.error("Sync failed to acquire lock: %s", exc)
        return 2

    summary = report.to_dict()
    _save_run_finished(run_id, report.ended_at, report.status, summary)
    if args.metrics_json:
        _write_json(Path(args.metrics_json), summary)

    logger.info("Sync %s finished with status=%s", run_id, report.status)
    return 1 if report.failures else 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
