"""
Command line entrypoint: one-shot syncs, maintenance, the scheduler and the API server

    deckworthy init-db
    deckworthy sync-games 500
    deckworthy sync-games --ids 570 730
    deckworthy sync-ratings --all
    deckworthy sync-prices
    deckworthy prune-history --days 180
    deckworthy scheduler
    deckworthy serve
"""
import argparse
import logging
import sys

from deckworthy.exceptions import ConfigurationError

logger = logging.getLogger("main")


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(prog="deckworthy", description="Steam Deck game price aggregator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database tables and views")

    games = subparsers.add_parser("sync-games", help="Sync game metadata from Steam")
    games.add_argument("limit", nargs="?", type=positive_int, help="Number of catalog games to sync")
    games.add_argument("--ids", nargs="+", type=positive_int, metavar="APP_ID", help="Sync these app ids only")

    ratings = subparsers.add_parser("sync-ratings", help="Sync ProtonDB ratings")
    ratings.add_argument("limit", nargs="?", type=positive_int, help="Maximum number of games to refresh")
    ratings.add_argument("--all", action="store_true", help="Refresh every game, not only unrated or stale ones")

    prices = subparsers.add_parser("sync-prices", help="Sync prices from IsThereAnyDeal")
    prices.add_argument("limit", nargs="?", type=positive_int, help="Maximum number of games to price")

    prune = subparsers.add_parser("prune-history", help="Delete old price history")
    prune.add_argument("--days", type=positive_int, help="Days of history to keep")

    subparsers.add_parser("scheduler", help="Run the sync scheduler in the foreground")
    subparsers.add_parser("serve", help="Run the API server")

    return parser


def print_summary(name, result):
    if result is None:
        print(f"✗ {name} sync skipped: another run is in progress")
        return 1

    print(f"✓ {name} sync finished")
    print(f"  success: {result.success}")
    print(f"  skipped: {result.skipped}")
    print(f"  failed:  {result.failed}")
    if result.duration is not None:
        print(f"  duration: {result.duration:.1f}s")
    return 1 if result.failed else 0


def run_command(args, app):
    from deckworthy.jobs import sync

    if args.command == "init-db":
        print("✓ Database initialized")
        return 0

    if args.command == "sync-games":
        return print_summary("Steam", sync.run_games_sync(app, limit=args.limit, app_ids=args.ids))

    if args.command == "sync-ratings":
        result = sync.run_ratings_sync(app, limit=args.limit, update_stale_only=not args.all)
        return print_summary("ProtonDB", result)

    if args.command == "sync-prices":
        return print_summary("Price", sync.run_prices_sync(app, limit=args.limit))

    if args.command == "prune-history":
        removed = sync.prune_price_history(app, days=args.days)
        print(f"✓ Removed {removed} price history rows")
        return 0

    if args.command == "scheduler":
        from apscheduler.schedulers.blocking import BlockingScheduler
        from deckworthy.jobs.scheduler import JobScheduler

        print("Scheduler running, press Ctrl+C to stop")
        try:
            JobScheduler(scheduler=BlockingScheduler(timezone="UTC")).init_app(app)
        except (KeyboardInterrupt, SystemExit):
            pass
        return 0

    if args.command == "serve":
        server = app.config["DECKWORTHY_SETTINGS"]["server"]
        logger.info(f"Starting server on port {server['port']}...")
        app.run(host=server["host"], port=server["port"], debug=False, use_reloader=False)
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    args = build_parser().parse_args(argv)

    from deckworthy.app import create_app

    # Only the serve command may run the scheduler in-process
    app = create_app({} if args.command == "serve" else {"SCHEDULER_ENABLED": False})

    try:
        return run_command(args, app)
    except ConfigurationError as e:
        print(f"✗ {e.message}", file=sys.stderr)
        return 2
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        print(f"✗ {args.command} failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
