"""OpenRouter Credit Monitor - command line entry point.

    python app.py                    poll until interrupted
    python app.py --once             run one fetch cycle and print a summary
    python app.py --test-connection  check the configured API key
    python app.py --delete-logs      remove the monitor's log files
"""

import argparse
import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from logger import delete_log_files, logger
from domains.openrouter import CreditMonitor, FetchSnapshot
from domains.openrouter.insights import ActivityWindow, filter_activity, summarize_models


def format_summary(snapshot: FetchSnapshot, threshold: float) -> str:
    """Render a snapshot as plain text."""
    lines = []

    if snapshot.error_message:
        lines.append(f"Error: {snapshot.error_message}")

    if snapshot.balance is not None:
        remaining = snapshot.balance.remaining
        warning = " (below warning threshold)" if remaining <= threshold else ""
        lines.append(f"Remaining credit: ${remaining:.2f}{warning}")
        lines.append(
            f"Total credits: ${snapshot.balance.total_credits:.2f} | "
            f"Used: ${snapshot.balance.total_usage:.2f}"
        )
    else:
        lines.append("Remaining credit: -")

    lines.append(f"Enabled keys: {len(snapshot.keys)}")
    for key in snapshot.keys:
        limit = f"${key.limit_remaining:.2f} left" if key.limit_remaining is not None else "no limit"
        lines.append(
            f"  {key.display_name}: today ${key.usage_daily:.2f}, "
            f"week ${key.usage_weekly:.2f}, {limit}"
        )

    week = filter_activity(snapshot.activity, ActivityWindow.WEEK)
    top_models = summarize_models(week, limit=5)
    if top_models:
        lines.append("Top models (1 week):")
        for summary in top_models:
            lines.append(
                f"  {summary.raw_model}: ${summary.spend:.2f}, "
                f"{summary.requests} requests, {summary.tokens} tokens"
            )

    return "\n".join(lines)


async def run_once(monitor: CreditMonitor) -> int:
    snapshot = await monitor.refresh()
    print(format_summary(snapshot, monitor.settings.warning_threshold))
    return 1 if snapshot.error_message else 0


async def run_test_connection(monitor: CreditMonitor) -> int:
    result = await monitor.test_connection()
    print(result.message)
    return 0 if result.ok else 1


async def run_forever(monitor: CreditMonitor, scheduler: AsyncIOScheduler) -> int:
    scheduler.start()
    monitor.start()
    logger.info(f"Credit monitor running with {len(scheduler.get_jobs())} jobs")

    try:
        await asyncio.Event().wait()
    finally:
        monitor.stop()
        scheduler.shutdown(wait=False)
    return 0


async def _main(args: argparse.Namespace) -> int:
    scheduler = AsyncIOScheduler()
    monitor = CreditMonitor(scheduler)

    if args.test_connection:
        return await run_test_connection(monitor)
    if args.once:
        if not monitor.settings.has_credential:
            logger.error("OPENROUTER_API_KEY not set")
            return 1
        return await run_once(monitor)
    return await run_forever(monitor, scheduler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Monitor OpenRouter credit and key usage.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="run one fetch cycle and print a summary")
    mode.add_argument("--test-connection", action="store_true", help="check the configured API key")
    mode.add_argument("--delete-logs", action="store_true", help="delete the monitor's log files")
    return parser


def main(argv=None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)

    if args.delete_logs:
        removed = delete_log_files()
        print(f"Deleted {removed} log file(s)")
        return 0

    logger.info("Starting OpenRouter Credit Monitor...")
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        logger.info("Credit monitor stopped")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
