"""Stage registry for the sync pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from compsync.tasks.runtime import StageContext

# A runner returns its metrics; raising marks the stage failed
StageRunner = Callable[[StageContext], "dict[str, Any] | Awaitable[dict[str, Any]]"]


@dataclass(frozen=True)
class StageDefinition:
    """A named, independently failable unit of the sync."""

    name: str
    runner: StageRunner
    label: str = ""
    description: str = ""
    delay_seconds: float = 0.0
    enabled_by_default: bool = True

    @property
    def display_name(self) -> str:
        """Human label used in run reports, e.g. "Transfer"."""
        return self.label or self.name.replace("_", " ").capitalize()


class StageRegistry:
    """Ordered registry of stages; registration order is execution order."""

    def __init__(self) -> None:
        self._stages: dict[str, StageDefinition] = {}

    def register(self, stage: StageDefinition) -> None:
        if stage.name in self._stages:
            raise ValueError(f"Stage already registered: {stage.name}")
        self._stages[stage.name] = stage

    def get(self, stage_name: str) -> StageDefinition:
        try:
            return self._stages[stage_name]
        except KeyError as exc:
            known = ", ".join(self._stages)
            raise KeyError(f"Unknown stage: {stage_name} (known: {known})") from exc

    def names(self) -> list[str]:
        return list(self._stages)

    def default_stage_names(self) -> list[str]:
        return [name for name, stage in self._stages.items() if stage.enabled_by_default]

    def resolve(
        self,
        include: list[str] | None = None,
        skip: set[str] | None = None,
    ) -> list[StageDefinition]:
        """
        Stages to run, always in registration order.

        Unknown names in include or skip raise KeyError so a typo on the
        command line does not silently drop a stage.
        """
        skipped = skip or set()
        for name in [*(include or []), *skipped]:
            self.get(name)

        wanted = set(include) if include else set(self.default_stage_names())
        return [
            stage for name, stage in self._stages.items()
            if name in wanted and name not in skipped
        ]
