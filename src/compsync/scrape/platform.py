"""
Parser for the platform's live-data event payload.

The platform reports results per event window, keyed by account id:

    {
      "events": [
        {
          "eventId": "epicgames_S25_FNCS_EU",
          "eventWindows": [
            {
              "eventWindowId": "S25_FNCS_EU_Round1",
              "entries": [
                {"accountId": "<32 hex>", "displayName": "Bugha",
                 "rank": 1, "pointsEarned": 412},
                ...
              ]
            }
          ]
        }
      ]
    }

A bare list of events or a single event object is also accepted, and the
older "windows" / "leaderboard" / "score" key names are read as fallbacks.
Entries without an account id or display name are dropped.
"""

import logging
from typing import Any, Iterator, Optional

from compsync.scrape.base import ScrapedPlatformResult

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _iter_events(payload: Any) -> Iterator[dict]:
    if isinstance(payload, list):
        events = payload
    elif isinstance(payload, dict) and "events" in payload:
        events = payload.get("events") or []
    elif isinstance(payload, dict):
        events = [payload]
    else:
        events = []

    for event in events:
        if isinstance(event, dict):
            yield event


def parse_platform_results(payload: Any) -> list[ScrapedPlatformResult]:
    """Flatten an event payload into one result per (window, account)."""
    results: list[ScrapedPlatformResult] = []
    seen: set[tuple[str, str]] = set()

    for event in _iter_events(payload):
        event_id = str(event.get("eventId") or "").strip()
        if not event_id:
            continue

        windows = event.get("eventWindows") or event.get("windows") or []
        for window in windows:
            if not isinstance(window, dict):
                continue
            window_id = str(window.get("eventWindowId") or window.get("windowId") or "").strip()
            if not window_id:
                continue

            entries = window.get("entries") or window.get("leaderboard") or []
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                account_id = str(entry.get("accountId") or "").strip()
                display_name = str(entry.get("displayName") or "").strip()
                if not account_id or not display_name:
                    continue

                key = (window_id, account_id)
                if key in seen:
                    continue
                seen.add(key)

                points = entry.get("pointsEarned")
                if points is None:
                    points = entry.get("score")

                results.append(ScrapedPlatformResult(
                    event_id=event_id,
                    window_id=window_id,
                    account_id=account_id,
                    display_name=display_name,
                    rank=_as_int(entry.get("rank")),
                    points=_as_int(points),
                ))

    logger.debug("Parsed %d platform results", len(results))
    return results
