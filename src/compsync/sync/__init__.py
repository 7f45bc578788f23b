"""
Sync pipeline: stage runners, the default registry and the orchestrator.

Stages, in order: tournaments, teams, players, reference, transfers,
schedule, earnings.
"""

from compsync.sync.notify import DiscordWebhookNotifier, LoggingNotifier, Notifier, build_notifier
from compsync.sync.orchestrator import SyncOrchestrator, SyncRunReport, new_run_id
from compsync.sync.registry import build_default_registry

__all__ = [
    "DiscordWebhookNotifier",
    "LoggingNotifier",
    "Notifier",
    "build_notifier",
    "SyncOrchestrator",
    "SyncRunReport",
    "new_run_id",
    "build_default_registry",
]
