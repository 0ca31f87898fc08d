"""
Background Jobs - recurring syncs driven by cron expressions from settings
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import logging

from deckworthy.exceptions import ConfigurationError
from deckworthy.jobs import sync

logger = logging.getLogger('main')


class JobScheduler:
    """Background job manager"""

    def __init__(self, scheduler=None):
        self.scheduler = scheduler or BackgroundScheduler(timezone='UTC')
        self._jobs_registered = False

    def init_app(self, app, start=True):
        """Register the sync jobs for the Flask app and start the scheduler"""
        self._register_jobs(app)
        if start:
            self.scheduler.start()
            logger.info("Job scheduler initialized")
        app.extensions['deckworthy_scheduler'] = self

    def _register_jobs(self, app):
        """Register all scheduled jobs"""
        if self._jobs_registered:
            return

        schedules = app.config['DECKWORTHY_SETTINGS']['sync']
        jobs = [
            ('sync_prices', 'Sync ITAD prices', schedules['prices_schedule'], self._prices_job),
            ('sync_protondb', 'Sync ProtonDB ratings', schedules['protondb_schedule'], self._ratings_job),
            ('sync_games', 'Sync Steam games', schedules['games_schedule'], self._games_job),
            ('maintenance', 'Prune history and expire bundles', schedules['maintenance_schedule'], self._maintenance_job),
        ]

        for job_id, name, crontab, func in jobs:
            try:
                trigger = CronTrigger.from_crontab(crontab, timezone='UTC')
            except ValueError as e:
                raise ConfigurationError(f"Invalid cron expression for {job_id}: {crontab!r} ({e})")
            self.scheduler.add_job(
                func=func,
                trigger=trigger,
                id=job_id,
                name=name,
                args=[app],
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            logger.info(f"Scheduled {name}: {crontab}")

        self._jobs_registered = True
        logger.info("Background jobs registered")

    # Job bodies never raise: one failing source must not stop the others

    def _games_job(self, app):
        try:
            sync.run_games_sync(app)
        except Exception as e:
            logger.error(f"Scheduled Steam sync failed: {e}", exc_info=True)

    def _ratings_job(self, app):
        try:
            sync.run_ratings_sync(app)
        except Exception as e:
            logger.error(f"Scheduled ProtonDB sync failed: {e}", exc_info=True)

    def _prices_job(self, app):
        try:
            sync.run_prices_sync(app)
        except Exception as e:
            logger.error(f"Scheduled price sync failed: {e}", exc_info=True)

    def _maintenance_job(self, app):
        try:
            sync.prune_price_history(app)
            sync.deactivate_expired_bundles(app)
        except Exception as e:
            logger.error(f"Scheduled maintenance failed: {e}", exc_info=True)

    def shutdown(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Job scheduler shutdown")
