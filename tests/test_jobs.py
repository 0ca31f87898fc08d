"""
Tests for sync jobs, the scheduler and the command line
"""
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import OperationalError

from deckworthy.exceptions import ConfigurationError, UpstreamException
from deckworthy.jobs import cli, sync
from deckworthy.jobs.scheduler import JobScheduler
from deckworthy.models import PriceHistory
from deckworthy.records import SyncResult
from deckworthy.repositories import BundlesRepository, SyncLogRepository
from deckworthy.utils import now_utc


def audit(session, source):
    session.expire_all()
    return SyncLogRepository(session).get(source)


class TestSyncJobs:
    def test_successful_run_is_recorded(self, app, session):
        with patch.object(sync.steam_service, "sync_specific_games", return_value=SyncResult(success=2, skipped=1, duration=0.5)) as run:
            result = sync.run_games_sync(app, app_ids=[570, 730, 10])

        assert result.success == 2
        assert run.call_args.args[1] == [570, 730, 10]
        entry = audit(session, "steam")
        assert entry.status == "success"
        assert entry.records_updated == 2
        assert entry.error_message is None

    def test_default_games_limit_comes_from_settings(self, app, settings):
        settings["sync"]["games_limit"] = 25

        with patch.object(sync.steam_service, "sync_popular_games", return_value=SyncResult()) as run:
            sync.run_games_sync(app)

        assert run.call_args.kwargs["limit"] == 25

    def test_exception_marks_run_failed(self, app, session):
        with patch.object(sync.steam_service, "sync_popular_games", side_effect=UpstreamException("Invalid response from Steam API")):
            with pytest.raises(UpstreamException):
                sync.run_games_sync(app, limit=10)

        entry = audit(session, "steam")
        assert entry.status == "failed"
        assert entry.records_updated == 0
        assert "Invalid response" in entry.error_message
        assert not sync.is_running("steam")

    def test_audit_write_failure_keeps_sync_error(self, app):
        with patch.object(sync.steam_service, "sync_popular_games", side_effect=UpstreamException("Invalid response from Steam API")), patch.object(
            sync.SyncLogRepository, "record", side_effect=OperationalError("INSERT", {}, Exception("database is locked"))
        ) as record:
            with pytest.raises(UpstreamException):
                sync.run_games_sync(app, limit=10)

        record.assert_called_once()
        assert not sync.is_running("steam")

    def test_all_failures_marks_run_failed(self, app, session):
        result = SyncResult(failed=3, errors=["570: boom", "730: boom", "10: boom"])

        with patch.object(sync.protondb_service, "sync_all_ratings", return_value=result):
            sync.run_ratings_sync(app)

        entry = audit(session, "protondb")
        assert entry.status == "failed"
        assert entry.error_message == "570: boom; 730: boom; 10: boom"

    def test_partial_failure_is_success(self, app, session):
        result = SyncResult(success=5, failed=1, errors=["10: timeout"])

        with patch.object(sync.protondb_service, "sync_all_ratings", return_value=result) as run:
            sync.run_ratings_sync(app, limit=6, update_stale_only=False)

        assert run.call_args.kwargs == {"limit": 6, "update_stale_only": False, "stale_hours": 168}
        entry = audit(session, "protondb")
        assert entry.status == "success"
        assert entry.error_message == "10: timeout"

    def test_overlapping_run_is_skipped(self, app, session):
        lock = sync._locks["protondb"]
        lock.acquire()
        try:
            with patch.object(sync.protondb_service, "sync_all_ratings") as run:
                assert sync.run_ratings_sync(app) is None
            run.assert_not_called()
        finally:
            lock.release()

        assert audit(session, "protondb") is None

    def test_prices_use_configured_key(self, app):
        with patch.object(sync.itad_service, "sync_all_prices", return_value=SyncResult(success=4)) as run:
            sync.run_prices_sync(app, limit=3)

        assert run.call_args.kwargs == {"limit": 3, "api_key": "test-itad-key"}

    def test_missing_key_fails_before_any_work(self, app, settings, session):
        settings["apis"]["itad_api_key"] = ""

        with patch.object(sync.itad_service, "sync_all_prices") as run:
            with pytest.raises(ConfigurationError):
                sync.run_prices_sync(app)

        run.assert_not_called()
        assert audit(session, "itad") is None

    def test_prune_price_history(self, app, seeded):
        seeded.add(PriceHistory(app_id=570, store="steam", price_usd=0, recorded_at=now_utc() - timedelta(days=400)))
        seeded.commit()

        assert sync.prune_price_history(app) == 1
        assert sync.prune_price_history(app, days=1) == 0

    def test_deactivate_expired_bundles(self, app, session):
        BundlesRepository(session).create_bundle("Ended", "https://example.com/ended", end_date=now_utc() - timedelta(days=2))

        assert sync.deactivate_expired_bundles(app) == 1


class TestJobScheduler:
    def test_registers_cron_jobs(self, app):
        backend = MagicMock()
        scheduler = JobScheduler(scheduler=backend)

        scheduler.init_app(app, start=False)

        jobs = {c.kwargs["id"]: c.kwargs for c in backend.add_job.call_args_list}
        assert set(jobs) == {"sync_prices", "sync_protondb", "sync_games", "maintenance"}
        assert isinstance(jobs["sync_prices"]["trigger"], CronTrigger)
        assert jobs["sync_games"]["max_instances"] == 1
        assert jobs["sync_games"]["args"] == [app]
        backend.start.assert_not_called()
        assert app.extensions["deckworthy_scheduler"] is scheduler

    def test_registers_once(self, app):
        backend = MagicMock()
        scheduler = JobScheduler(scheduler=backend)

        scheduler.init_app(app)
        scheduler.init_app(app)

        assert backend.add_job.call_count == 4

    def test_invalid_cron_expression(self, app, settings):
        settings["sync"]["prices_schedule"] = "every six hours"

        with pytest.raises(ConfigurationError, match="sync_prices"):
            JobScheduler(scheduler=MagicMock()).init_app(app, start=False)

    def test_failing_job_does_not_raise(self, app):
        scheduler = JobScheduler(scheduler=MagicMock())

        with patch.object(sync, "run_prices_sync", side_effect=ConfigurationError("Missing required setting apis.itad_api_key")):
            scheduler._prices_job(app)

        with patch.object(sync, "prune_price_history", side_effect=RuntimeError("disk full")), patch.object(
            sync, "deactivate_expired_bundles"
        ) as bundles:
            scheduler._maintenance_job(app)
        bundles.assert_not_called()

    def test_shutdown_only_when_running(self):
        backend = MagicMock(running=False)

        JobScheduler(scheduler=backend).shutdown()

        backend.shutdown.assert_not_called()


class TestCommandLine:
    def test_parser(self):
        args = cli.build_parser().parse_args(["sync-games", "--ids", "570", "730"])

        assert args.command == "sync-games"
        assert args.ids == [570, 730]
        assert args.limit is None

    @pytest.mark.parametrize("argv", [["sync-games", "0"], ["sync-prices", "ten"], ["launch"], []])
    def test_invalid_arguments(self, argv):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(argv)

    def run_main(self, app, argv):
        with patch("deckworthy.app.create_app", return_value=app) as factory:
            code = cli.main(argv)
        return code, factory

    def test_sync_success(self, app, capsys):
        with patch.object(sync, "run_games_sync", return_value=SyncResult(success=3, duration=2.0)) as run:
            code, factory = self.run_main(app, ["sync-games", "100"])

        assert code == 0
        run.assert_called_once_with(app, limit=100, app_ids=None)
        factory.assert_called_once_with({"SCHEDULER_ENABLED": False})
        out = capsys.readouterr().out
        assert "success: 3" in out
        assert "duration: 2.0s" in out

    def test_sync_with_failures_exits_nonzero(self, app):
        with patch.object(sync, "run_ratings_sync", return_value=SyncResult(success=3, failed=1)) as run:
            code, _ = self.run_main(app, ["sync-ratings", "--all"])

        assert code == 1
        run.assert_called_once_with(app, limit=None, update_stale_only=False)

    def test_skipped_run_exits_nonzero(self, app):
        with patch.object(sync, "run_prices_sync", return_value=None):
            code, _ = self.run_main(app, ["sync-prices"])

        assert code == 1

    def test_missing_configuration_exits_2(self, app, capsys):
        with patch.object(sync, "run_prices_sync", side_effect=ConfigurationError("Missing required setting apis.itad_api_key")):
            code, _ = self.run_main(app, ["sync-prices"])

        assert code == 2
        assert "apis.itad_api_key" in capsys.readouterr().err

    def test_unexpected_error_exits_1(self, app):
        with patch.object(sync, "prune_price_history", side_effect=RuntimeError("database is locked")):
            code, _ = self.run_main(app, ["prune-history", "--days", "30"])

        assert code == 1

    def test_init_db(self, app, capsys):
        code, _ = self.run_main(app, ["init-db"])

        assert code == 0
        assert "Database initialized" in capsys.readouterr().out
