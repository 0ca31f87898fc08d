"""
IsThereAnyDeal multi-store prices.

ITAD knows games by its own ids, so every fetch runs in two phases: Steam app
ids are first looked up in batches, then current deals are fetched for the
resolved ids in smaller batches. Historical prices are not fetched from ITAD;
history is built locally from our own observations.
"""
import logging
import time
from typing import Callable, Dict, List, Optional

import requests

from deckworthy.constants import (
    ITAD_API_BASE,
    ITAD_LOOKUP_BATCH_SIZE,
    ITAD_PRICES_BATCH_SIZE,
    ITAD_RATE_LIMIT,
    ITAD_STEAM_SHOP_ID,
)
from deckworthy.records import PriceRecord, SyncProgress, SyncResult
from deckworthy.repositories import GamesRepository, PricesRepository
from deckworthy.services import http, log_progress
from deckworthy.settings import load_settings, require_setting
from deckworthy.utils import chunked, ensure_utc

logger = logging.getLogger("main")

# ITAD allows 1000 requests per minute, leave a buffer
rate_limiter = http.RateLimiter(*ITAD_RATE_LIMIT)
session = requests.Session()


def get_api_key():
    """ITAD key from settings; raises ConfigurationError when it is not configured"""
    return require_setting(
        load_settings(), "apis", "itad_api_key", hint="Request a key at https://isthereanydeal.com/apps/my/"
    )


def _post(path, api_key, body, **params):
    return rate_limiter.execute(
        http.fetch_with_policy,
        f"{ITAD_API_BASE}/{path}",
        method="POST",
        params={"key": api_key, **params},
        json=body,
        retries=2,
        timeout=30.0,
        session=session,
    )


def _shop_key(app_id):
    return f"app/{app_id}"


def lookup_game_ids(app_ids: List[int], api_key: Optional[str] = None, failed: Optional[list] = None) -> Dict[int, str]:
    """
    Map Steam app ids to ITAD game ids. Ids ITAD does not know are left out.
    A batch that fails is logged and its ids are appended to `failed`.
    """
    api_key = api_key or get_api_key()
    app_ids = list(app_ids)
    id_map = {}
    batches = list(chunked(app_ids, ITAD_LOOKUP_BATCH_SIZE))

    for number, batch in enumerate(batches, start=1):
        try:
            data = _post(f"lookup/id/shop/{ITAD_STEAM_SHOP_ID}/v1", api_key, [_shop_key(a) for a in batch])
        except http.RequestFailed as e:
            logger.error(f"ITAD lookup batch {number}/{len(batches)} failed: {e}")
            if failed is not None:
                failed.extend(batch)
            continue

        for app_id in batch:
            itad_id = (data or {}).get(_shop_key(app_id)) if isinstance(data, dict) else None
            if itad_id:
                id_map[app_id] = itad_id

    logger.debug(f"ITAD resolved {len(id_map)} of {len(app_ids)} app ids")
    return id_map


def calculate_discount(price, regular):
    if not regular or regular <= 0:
        return 0
    return round((regular - price) / regular * 100)


def map_deal(app_id: int, deal) -> Optional[PriceRecord]:
    shop_name = (deal.get("shop") or {}).get("name")
    price = (deal.get("price") or {}).get("amount")
    if not shop_name or price is None:
        return None

    regular = (deal.get("regular") or {}).get("amount") or 0
    return PriceRecord(
        app_id=app_id,
        store=shop_name.lower(),
        price_usd=float(price),
        discount_percent=calculate_discount(price, regular),
        is_on_sale=(deal.get("cut") or 0) > 0,
        sale_end_date=ensure_utc(deal.get("expiry")),
        url=deal.get("url"),
    )


def fetch_prices(id_map: Dict[int, str], api_key: Optional[str] = None, failed: Optional[list] = None) -> List[PriceRecord]:
    """Current deals for resolved games, one PriceRecord per store"""
    api_key = api_key or get_api_key()
    app_ids_by_itad_id = {itad_id: app_id for app_id, itad_id in id_map.items()}
    itad_ids = list(app_ids_by_itad_id)
    batches = list(chunked(itad_ids, ITAD_PRICES_BATCH_SIZE))
    prices = []

    for number, batch in enumerate(batches, start=1):
        try:
            data = _post("games/prices/v3", api_key, batch, country="US")
        except http.RequestFailed as e:
            logger.error(f"ITAD prices batch {number}/{len(batches)} failed: {e}")
            if failed is not None:
                failed.extend(app_ids_by_itad_id[itad_id] for itad_id in batch)
            continue

        for entry in data if isinstance(data, list) else []:
            app_id = app_ids_by_itad_id.get(entry.get("id"))
            if app_id is None:
                continue
            for deal in entry.get("deals") or []:
                record = map_deal(app_id, deal)
                if record:
                    prices.append(record)

        logger.info(f"Processed batch {number}/{len(batches)}")

    return prices


def fetch_game_prices(app_id: int, api_key: Optional[str] = None) -> List[PriceRecord]:
    """Current prices of one game across stores"""
    api_key = api_key or get_api_key()
    id_map = lookup_game_ids([app_id], api_key=api_key)
    if not id_map:
        return []
    return fetch_prices(id_map, api_key=api_key)


def fetch_and_store_prices(
    db_session,
    app_ids: List[int],
    on_progress: Optional[Callable[[SyncProgress], None]] = None,
    api_key: Optional[str] = None,
) -> SyncResult:
    """
    Fetch deals for app_ids and store them in one transaction.
    success counts stored price rows; skipped and failed count games.
    """
    api_key = api_key or get_api_key()
    app_ids = list(app_ids)
    failed_ids = []

    id_map = lookup_game_ids(app_ids, api_key=api_key, failed=failed_ids)
    prices = fetch_prices(id_map, api_key=api_key, failed=failed_ids)

    logger.info(f"Storing {len(prices)} price records...")
    PricesRepository(db_session).update_current_prices(prices)

    priced = {price.app_id for price in prices}
    failed = set(failed_ids)
    result = SyncResult(success=len(prices))
    total = len(app_ids)

    for index, app_id in enumerate(app_ids, start=1):
        if app_id in failed:
            result.failed += 1
            outcome = "failed"
        elif app_id in priced:
            outcome = "success"
        else:
            result.skipped += 1
            outcome = "skipped"
        if on_progress:
            on_progress(SyncProgress(current=index, total=total, app_id=app_id, outcome=outcome))

    if failed:
        result.errors.append(f"{len(failed)} games in failed ITAD batches")
    return result


def sync_all_prices(
    db_session, limit: Optional[int] = None, on_progress=log_progress, api_key: Optional[str] = None
) -> SyncResult:
    """Refresh prices of every stored game (or the first `limit`)"""
    api_key = api_key or get_api_key()
    started = time.time()
    logger.info("Starting ITAD price sync...")

    app_ids = GamesRepository(db_session).get_app_ids(limit=limit)
    logger.info(f"Syncing prices for {len(app_ids)} games...")
    if not app_ids:
        logger.info("No games to sync")
        return SyncResult(duration=0.0)

    result = fetch_and_store_prices(db_session, app_ids, on_progress=on_progress, api_key=api_key)
    result.duration = time.time() - started
    logger.info(
        f"Price sync complete: {result.success} prices updated, {result.skipped} games without deals, "
        f"{result.failed} failed in {result.duration:.1f}s"
    )
    return result
