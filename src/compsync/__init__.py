"""
CompSync - competitive gaming results reconciliation.

Ingests tournament results, prize earnings, rosters and transfers published
on a community wiki and on platform live-data APIs, and reconciles them into
one record set keyed by stable entity identifiers.

Main components:
- scrape: Document parsers (field normalizers, table extraction, tournament
  naming) and the Playwright fetcher
- services: Idempotent upserts for earnings and the other synced entities
- players: Cross-source player identity (IGN <-> platform account id)
- orgs: Organization name to slug resolution
- tasks: Stage registry, state tokens, throttle and run lock
- sync: Stage implementations and the sync orchestrator
"""

__version__ = "1.0.0"
