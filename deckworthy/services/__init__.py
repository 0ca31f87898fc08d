"""
Upstream data services: Steam (games), ProtonDB (ratings), IsThereAnyDeal (prices)
"""
import logging

logger = logging.getLogger("main")


def log_progress(progress):
    """Default bulk-sync progress callback, logs every tenth id"""
    if progress.current % 10 == 0 or progress.current == progress.total:
        percent = round(progress.current / progress.total * 100) if progress.total else 100
        logger.info(f"Progress: {progress.current}/{progress.total} ({percent}%)")
