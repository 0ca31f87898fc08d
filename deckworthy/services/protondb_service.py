"""
ProtonDB Steam Deck compatibility summaries
"""
import logging
import time
from typing import Callable, List, Optional

import requests

from deckworthy.constants import FALLBACK_TIER, PROTON_TIERS, PROTONDB_API_BASE, PROTONDB_RATE_LIMIT
from deckworthy.records import RatingRecord, SyncProgress, SyncResult
from deckworthy.repositories import GamesRepository, RatingsRepository
from deckworthy.services import http, log_progress

logger = logging.getLogger("main")

# ProtonDB publishes no limits, stay conservative
rate_limiter = http.RateLimiter(*PROTONDB_RATE_LIMIT)
session = requests.Session()


def normalize_tier(value, app_id=None):
    if not value:
        return None
    tier = str(value).strip().lower()
    if tier not in PROTON_TIERS:
        logger.warning(f"Unknown ProtonDB tier {value!r} for {app_id}, storing as {FALLBACK_TIER}")
        return FALLBACK_TIER
    return tier


def map_summary(app_id: int, payload) -> Optional[RatingRecord]:
    if not isinstance(payload, dict) or not payload.get("tier"):
        return None

    score = payload.get("score")
    return RatingRecord(
        app_id=app_id,
        tier=normalize_tier(payload["tier"], app_id),
        confidence=payload.get("confidence") or None,
        score=float(score) if score is not None else None,
        total_reports=int(payload.get("total") or 0),
        trending_tier=normalize_tier(payload.get("trendingTier"), app_id),
    )


def fetch_game_rating(app_id: int) -> Optional[RatingRecord]:
    """Rating summary for one game, None when ProtonDB has no reports for it"""
    url = f"{PROTONDB_API_BASE}/reports/summaries/{app_id}.json"
    try:
        payload = rate_limiter.execute(http.fetch_with_policy, url, retries=2, timeout=5.0, session=session)
    except http.RequestFailed as e:
        if e.status_code == 404:
            logger.info(f"No ProtonDB data for game {app_id}")
            return None
        raise
    return map_summary(app_id, payload)


def fetch_and_store_ratings(
    db_session,
    app_ids: List[int],
    on_progress: Optional[Callable[[SyncProgress], None]] = None,
) -> SyncResult:
    ratings = RatingsRepository(db_session)
    result = SyncResult()
    total = len(app_ids)

    for index, app_id in enumerate(app_ids, start=1):
        try:
            record = fetch_game_rating(app_id)
            if record:
                ratings.upsert_rating(record)
                result.success += 1
                outcome = "success"
            else:
                result.skipped += 1
                outcome = "skipped"
        except Exception as e:
            logger.error(f"Failed to process game {app_id}: {e}")
            result.failed += 1
            result.errors.append(f"{app_id}: {e}")
            outcome = "failed"

        if on_progress:
            on_progress(SyncProgress(current=index, total=total, app_id=app_id, outcome=outcome))

    return result


def sync_all_ratings(
    db_session,
    limit: Optional[int] = None,
    update_stale_only: bool = True,
    stale_hours: int = 168,
    on_progress=log_progress,
) -> SyncResult:
    """Refresh ratings of unrated and stale games, or of every game when update_stale_only is False"""
    started = time.time()
    logger.info("Starting ProtonDB sync...")

    if update_stale_only:
        app_ids = RatingsRepository(db_session).get_app_ids_needing_sync(stale_hours=stale_hours, limit=limit)
    else:
        app_ids = GamesRepository(db_session).get_app_ids(limit=limit)
    logger.info(f"Found {len(app_ids)} games to sync")

    if not app_ids:
        logger.info("No games need updating")
        return SyncResult(duration=0.0)

    result = fetch_and_store_ratings(db_session, app_ids, on_progress=on_progress)
    result.duration = time.time() - started
    logger.info(
        f"ProtonDB sync complete: {result.success} updated, {result.skipped} skipped, "
        f"{result.failed} failed in {result.duration:.1f}s"
    )
    return result
