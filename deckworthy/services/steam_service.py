"""
Steam catalog and store metadata
"""
import logging
import time
from typing import Callable, List, Optional

import requests

from deckworthy.constants import (
    STEAM_API_BASE,
    STEAM_MAX_APP_ID,
    STEAM_RATE_LIMIT,
    STEAM_RATE_LIMIT_COOLDOWN,
    STEAM_RATE_LIMIT_RETRIES,
    STEAM_REQUEST_DELAY,
    STEAM_STORE_API,
    STEAM_STORE_APP_URL,
)
from deckworthy.exceptions import UpstreamException
from deckworthy.records import GameRecord, SyncProgress, SyncResult
from deckworthy.repositories import GamesRepository
from deckworthy.services import http, log_progress

logger = logging.getLogger("main")

# Steam allows 100,000 requests/day; stay well below the store's per-minute throttle
rate_limiter = http.RateLimiter(*STEAM_RATE_LIMIT)
session = requests.Session()


def fetch_all_apps() -> List[dict]:
    """Full Steam app catalog as [{appid, name}, ...]"""
    data = http.fetch_with_policy(f"{STEAM_API_BASE}/ISteamApps/GetAppList/v2/", timeout=30.0, session=session)
    apps = (data.get("applist") or {}).get("apps") if isinstance(data, dict) else None
    if not isinstance(apps, list):
        raise UpstreamException("Invalid response from Steam API")
    return apps


def _descriptions(items):
    values = [item.get("description") for item in items or [] if item.get("description")]
    return values or None


def map_app_details(app_id: int, payload) -> Optional[GameRecord]:
    """Map an appdetails payload; None when Steam has no data or the app is not a game"""
    entry = payload.get(str(app_id)) if isinstance(payload, dict) else None
    if not entry or not entry.get("success") or not entry.get("data"):
        return None

    details = entry["data"]
    if details.get("type") != "game":
        return None
    if not details.get("name"):
        logger.warning(f"Steam app {app_id} has no name, skipping")
        return None

    return GameRecord(
        app_id=app_id,
        name=details["name"],
        short_description=details.get("short_description") or None,
        header_image_url=details.get("header_image") or None,
        steam_url=STEAM_STORE_APP_URL.format(app_id=app_id),
        release_date=(details.get("release_date") or {}).get("date") or None,
        developers=details.get("developers") or None,
        publishers=details.get("publishers") or None,
        genres=_descriptions(details.get("genres")),
        tags=_descriptions(details.get("categories")),
        is_free=bool(details.get("is_free")),
    )


def fetch_app_details(app_id: int, rate_limit_retries: int = STEAM_RATE_LIMIT_RETRIES) -> Optional[GameRecord]:
    """
    Store metadata for one app.

    When Steam answers 429 the same id is retried after a cooldown while the
    retry budget lasts; after that the RequestFailed propagates like any
    other failure.
    """
    url = f"{STEAM_STORE_API}/appdetails"
    params = {"appids": app_id, "cc": "us"}
    retries_left = rate_limit_retries

    while True:
        try:
            payload = rate_limiter.execute(
                http.fetch_with_policy, url, params=params, retries=2, timeout=10.0, session=session
            )
            break
        except http.RequestFailed as e:
            if e.status_code != 429 or retries_left <= 0:
                raise
            retries_left -= 1
            logger.warning(f"Rate limited by Steam, waiting {STEAM_RATE_LIMIT_COOLDOWN}s before retrying {app_id}")
            http.sleep(STEAM_RATE_LIMIT_COOLDOWN)

    return map_app_details(app_id, payload)


def fetch_and_store_games(
    db_session,
    app_ids: List[int],
    on_progress: Optional[Callable[[SyncProgress], None]] = None,
    delay: float = STEAM_REQUEST_DELAY,
) -> SyncResult:
    """Fetch and upsert each id in turn. Failures are counted, never raised."""
    games = GamesRepository(db_session)
    result = SyncResult()
    total = len(app_ids)

    for index, app_id in enumerate(app_ids, start=1):
        try:
            record = fetch_app_details(app_id)
            if record:
                games.upsert_game(record)
                result.success += 1
                outcome = "success"
            else:
                logger.debug(f"Skipped Steam app {app_id}")
                result.skipped += 1
                outcome = "skipped"
        except Exception as e:
            logger.error(f"Failed to process game {app_id}: {e}")
            result.failed += 1
            result.errors.append(f"{app_id}: {e}")
            outcome = "failed"

        if on_progress:
            on_progress(SyncProgress(current=index, total=total, app_id=app_id, outcome=outcome))

        # Be nice to Steam's servers
        if delay and index < total:
            http.sleep(delay)

    return result


def sync_popular_games(db_session, limit: int = 2000, on_progress=log_progress) -> SyncResult:
    """Sync the first `limit` catalog entries; low app ids are mostly older, well-known games"""
    started = time.time()
    logger.info(f"Starting Steam sync for {limit} popular games...")

    apps = fetch_all_apps()
    logger.info(f"Found {len(apps)} total Steam apps")

    # Ids above the cutoff are mostly DLC and tools
    app_ids = sorted(
        {app["appid"] for app in apps if isinstance(app.get("appid"), int) and app["appid"] < STEAM_MAX_APP_ID}
    )[:limit]
    logger.info(f"Processing {len(app_ids)} games...")

    result = fetch_and_store_games(db_session, app_ids, on_progress=on_progress)
    result.duration = time.time() - started
    logger.info(
        f"Steam sync complete: {result.success} games added, {result.skipped} skipped, "
        f"{result.failed} failed in {result.duration:.1f}s"
    )
    return result


def sync_specific_games(db_session, app_ids: List[int], on_progress=log_progress) -> SyncResult:
    started = time.time()
    logger.info(f"Syncing {len(app_ids)} specific games...")
    result = fetch_and_store_games(db_session, list(app_ids), on_progress=on_progress)
    result.duration = time.time() - started
    logger.info(f"Sync complete in {result.duration:.1f}s")
    return result
