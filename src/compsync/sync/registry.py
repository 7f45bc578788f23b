"""The default, ordered set of sync stages."""

from compsync.config import settings
from compsync.sync import stages
from compsync.tasks.stages import StageDefinition, StageRegistry


def build_default_registry() -> StageRegistry:
    """
    All seven stages in execution order.

    The order matters only for freshness: rosters create the players that
    the player and earnings stages then walk.
    """
    registry = StageRegistry()
    registry.register(StageDefinition(
        name="tournaments",
        runner=stages.sync_tournaments,
        label="Tournament",
        description="Tournament listings for the current year.",
        delay_seconds=settings.tournament_delay,
    ))
    registry.register(StageDefinition(
        name="teams",
        runner=stages.sync_teams,
        label="Team",
        description="Organizations and their rosters.",
        delay_seconds=settings.team_delay,
    ))
    registry.register(StageDefinition(
        name="players",
        runner=stages.sync_players,
        label="Player",
        description="Infobox IGN refresh and account id reconciliation.",
        delay_seconds=settings.player_delay,
    ))
    registry.register(StageDefinition(
        name="reference",
        runner=stages.sync_reference,
        label="Reference",
        description="Platform live-data event results.",
        delay_seconds=settings.reference_delay,
    ))
    registry.register(StageDefinition(
        name="transfers",
        runner=stages.sync_transfers,
        label="Transfer",
        description="Transfer portal for the current month.",
        delay_seconds=settings.transfer_delay,
    ))
    registry.register(StageDefinition(
        name="schedule",
        runner=stages.sync_schedule,
        label="Schedule",
        description="Upcoming tournaments.",
        delay_seconds=settings.schedule_delay,
    ))
    registry.register(StageDefinition(
        name="earnings",
        runner=stages.sync_earnings,
        label="Earnings",
        description="Per-player prize earnings from wiki results tables.",
        delay_seconds=settings.earnings_delay,
    ))
    return registry
