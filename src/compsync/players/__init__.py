"""
Player identity management module.

The wiki knows players by in-game name (IGN); the platform APIs know them by
an opaque 32-character account id. The two never reference each other, so
PlayerIdentityService bridges them by counting which account id shows up
under a player's IGNs in platform results.

Lookup order in resolve_player_identity (least to most ambiguous):
1. Platform account id
2. Internal player UUID
3. Wiki URL
4. Current or historical IGN
"""

from compsync.players.identity import PlayerIdentityService, PlayerNotFoundError

__all__ = [
    "PlayerIdentityService",
    "PlayerNotFoundError",
]
