"""
Sync job entrypoints shared by the CLI and the scheduler.

Each run happens inside an application context, writes the source's row of
the sync status register and updates the sync metrics. Overlapping runs of
the same source are skipped.
"""
import logging
import threading

from deckworthy.constants import SOURCE_ITAD, SOURCE_PROTONDB, SOURCE_STEAM, SYNC_STATUS_FAILED, SYNC_STATUS_SUCCESS
from deckworthy.db import db
from deckworthy.metrics import record_sync
from deckworthy.repositories import BundlesRepository, PricesRepository, SyncLogRepository
from deckworthy.services import itad_service, protondb_service, steam_service
from deckworthy.settings import require_setting

logger = logging.getLogger("main")

_locks = {
    SOURCE_STEAM: threading.Lock(),
    SOURCE_PROTONDB: threading.Lock(),
    SOURCE_ITAD: threading.Lock(),
}


def get_sync_settings(app):
    return app.config["DECKWORTHY_SETTINGS"]["sync"]


def is_running(source):
    return _locks[source].locked()


def _result_status(result):
    """A run that processed ids but stored nothing while some failed is a failed run"""
    if result.failed and not result.success:
        return SYNC_STATUS_FAILED
    return SYNC_STATUS_SUCCESS


def _run(app, source, sync):
    lock = _locks[source]
    if not lock.acquire(blocking=False):
        logger.warning(f"{source} sync already in progress, skipping")
        return None

    try:
        with app.app_context():
            sync_log = SyncLogRepository(db.session)
            try:
                result = sync(db.session)
            except Exception as e:
                db.session.rollback()
                logger.error(f"{source} sync failed: {e}", exc_info=True)
                record_sync(source, None, SYNC_STATUS_FAILED)
                try:
                    sync_log.record(source, SYNC_STATUS_FAILED, 0, error=str(e))
                except Exception as audit_error:
                    db.session.rollback()
                    logger.error(f"Could not record failed {source} sync: {audit_error}")
                raise

            status = _result_status(result)
            error = "; ".join(result.errors[:5]) if result.failed else None
            sync_log.record(source, status, result.success, error=error)
            record_sync(source, result, status)
            return result
    finally:
        lock.release()


def run_games_sync(app, limit=None, app_ids=None):
    """Sync Steam metadata for explicit ids, or for the first `limit` catalog games"""
    if app_ids:
        return _run(app, SOURCE_STEAM, lambda session: steam_service.sync_specific_games(session, app_ids))

    limit = limit or get_sync_settings(app)["games_limit"]
    return _run(app, SOURCE_STEAM, lambda session: steam_service.sync_popular_games(session, limit=limit))


def run_ratings_sync(app, limit=None, update_stale_only=True):
    stale_hours = get_sync_settings(app)["protondb_stale_hours"]
    return _run(
        app,
        SOURCE_PROTONDB,
        lambda session: protondb_service.sync_all_ratings(
            session, limit=limit, update_stale_only=update_stale_only, stale_hours=stale_hours
        ),
    )


def run_prices_sync(app, limit=None):
    """Refresh prices; a missing ITAD key fails before any request or audit write"""
    api_key = require_setting(app.config["DECKWORTHY_SETTINGS"], "apis", "itad_api_key")
    return _run(app, SOURCE_ITAD, lambda session: itad_service.sync_all_prices(session, limit=limit, api_key=api_key))


def prune_price_history(app, days=None):
    """Delete price history older than the retention period; returns the number of rows removed"""
    days = days or app.config["DECKWORTHY_SETTINGS"]["database"]["history_retention_days"]
    with app.app_context():
        removed = PricesRepository(db.session).clean_old_history(days_to_keep=days)
    logger.info(f"Pruned {removed} price history rows older than {days} days")
    return removed


def deactivate_expired_bundles(app):
    with app.app_context():
        changed = BundlesRepository(db.session).deactivate_expired_bundles()
    if changed:
        logger.info(f"Deactivated {changed} expired bundles")
    return changed
