"""Task runtime primitives shared by the sync orchestrator and scripts."""

from compsync.tasks.locks import advisory_lock_key, sync_run_lock
from compsync.tasks.runtime import StageContext, StageResult, StageSkipped
from compsync.tasks.stages import StageDefinition, StageRegistry
from compsync.tasks.state import Failed, Idle, Running, StageStateBoard
from compsync.tasks.throttle import Throttle

__all__ = [
    "advisory_lock_key",
    "sync_run_lock",
    "StageContext",
    "StageResult",
    "StageSkipped",
    "StageDefinition",
    "StageRegistry",
    "Idle",
    "Running",
    "Failed",
    "StageStateBoard",
    "Throttle",
]
