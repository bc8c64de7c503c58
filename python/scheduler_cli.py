"""
CLI interface for scheduled posts.

Provides command-line tools for:
- Scheduling, editing, retrying and deleting posts
- Running the scheduler as a daemon or as a single pass from cron
- Inspecting queued and failed posts
- Recovering posts stuck in flight
"""

import argparse
import json
import logging
import re
import sys
import time
from datetime import datetime, timedelta
from typing import List, Optional
from colored_logger import get_colored_logger, setup_colored_logging

from scheduler import (
    InvalidJobStateError,
    JobNotFoundError,
    JobStatus,
    JobValidationError,
    SchedulerError,
)
from scheduler.models import ScheduledJob, parse_timestamp, utcnow
from scheduler_integration import SchedulerIntegration
from settings import Settings

logger = get_colored_logger(__name__)

_RELATIVE_TIME = re.compile(r"^\+(\d+)([smhd]?)$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_schedule_time(value: str, now: Optional[datetime] = None) -> datetime:
    """
    Parse an ISO-8601 timestamp or a relative offset such as +90, +15m, +2h.

    Raises:
        ValueError: If the value is neither
    """
    match = _RELATIVE_TIME.match(value.strip())
    if match:
        amount, unit = match.groups()
        return (now or utcnow()) + timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])
    return parse_timestamp(value)


def split_platforms(value: str) -> List[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def _local(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


class SchedulerCLI:
    """Command-line interface for scheduled posts."""

    def __init__(self, integration: Optional[SchedulerIntegration] = None):
        self._integration = integration

    def create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser for scheduler commands."""
        parser = argparse.ArgumentParser(
            prog="post-scheduler", description="Schedule social media posts"
        )
        parser.add_argument(
            "--settings", default="settings.json", help="Path to settings.json"
        )
        parser.add_argument("--log-file", help="Also write logs to this file")
        parser.add_argument(
            "-v", "--verbose", action="store_true", help="Enable debug logging"
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        schedule_parser = subparsers.add_parser("schedule", help="Schedule a new post")
        schedule_parser.add_argument("text", help="Post text")
        schedule_parser.add_argument(
            "platforms", help="Comma-separated platforms (e.g. 'telegram,discord')"
        )
        schedule_parser.add_argument(
            "--at",
            required=True,
            help="ISO timestamp or relative offset (+30m, +2h, +1d)",
        )
        schedule_parser.add_argument(
            "--media", action="append", default=[], help="Media file or URL (repeatable)"
        )

        list_parser = subparsers.add_parser("list", help="List scheduled posts")
        list_parser.add_argument(
            "--status",
            choices=["all"] + [s.value for s in JobStatus],
            default="all",
            help="Filter by status",
        )
        list_parser.add_argument(
            "--json", action="store_true", help="Print the snapshot as JSON"
        )

        show_parser = subparsers.add_parser("show", help="Show post details")
        show_parser.add_argument("job_id", help="Job ID to show")

        edit_parser = subparsers.add_parser("edit", help="Edit a queued post")
        edit_parser.add_argument("job_id", help="Job ID to edit")
        edit_parser.add_argument("--at", help="New scheduled time")
        edit_parser.add_argument("--platforms", help="New comma-separated platforms")
        edit_parser.add_argument("--text", help="New post text")
        edit_parser.add_argument(
            "--media", action="append", help="Replace media (repeatable)"
        )

        delete_parser = subparsers.add_parser("delete", help="Delete a post")
        delete_parser.add_argument("job_id", help="Job ID to delete")
        delete_parser.add_argument(
            "--force", action="store_true", help="Delete without confirmation"
        )

        retry_parser = subparsers.add_parser("retry", help="Re-queue a failed post")
        retry_parser.add_argument("job_id", help="Job ID to retry")
        retry_parser.add_argument("--at", help="New scheduled time (default: keep)")

        subparsers.add_parser("tick", help="Deliver due posts once and exit")
        subparsers.add_parser("run", help="Run the scheduler until interrupted")
        subparsers.add_parser("recover", help="Re-queue posts stuck in flight")
        subparsers.add_parser("platforms", help="List supported platforms")
        subparsers.add_parser("status", help="Show scheduler status")

        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the scheduler CLI with given arguments."""
        parser = self.create_parser()
        parsed_args = parser.parse_args(args)

        if not parsed_args.command:
            parser.print_help()
            return 0

        setup_colored_logging(
            logging.DEBUG if parsed_args.verbose else logging.INFO,
            log_file=parsed_args.log_file,
        )

        if self._integration is None:
            self._integration = SchedulerIntegration(Settings(parsed_args.settings))

        try:
            return self._execute_command(parsed_args)
        except (JobValidationError, InvalidJobStateError, JobNotFoundError) as e:
            logger.error("%s", e)
            return 1
        except SchedulerError as e:
            logger.error("Command failed: %s", e)
            return 1

    @property
    def integration(self) -> SchedulerIntegration:
        return self._integration

    def _execute_command(self, args: argparse.Namespace) -> int:
        """Execute the requested command."""
        command_map = {
            "schedule": self._cmd_schedule,
            "list": self._cmd_list,
            "show": self._cmd_show,
            "edit": self._cmd_edit,
            "delete": self._cmd_delete,
            "retry": self._cmd_retry,
            "tick": self._cmd_tick,
            "run": self._cmd_run,
            "recover": self._cmd_recover,
            "platforms": self._cmd_platforms,
            "status": self._cmd_status,
        }

        handler = command_map.get(args.command)
        if not handler:
            logger.error("Unknown command: %s", args.command)
            return 1

        return handler(args)

    def _parse_time(self, value: str) -> datetime:
        try:
            return parse_schedule_time(value)
        except ValueError as e:
            raise JobValidationError(str(e))

    def _cmd_schedule(self, args: argparse.Namespace) -> int:
        job = self.integration.jobs.schedule(
            text=args.text,
            platforms=split_platforms(args.platforms),
            scheduled_time=self._parse_time(args.at),
            media=args.media,
        )
        print(job.id)
        logger.info("Post scheduled for %s", _local(job.scheduled_time))
        return 0

    def _cmd_list(self, args: argparse.Namespace) -> int:
        status = None if args.status == "all" else JobStatus(args.status)
        jobs = self.integration.jobs.list_jobs(status)

        if args.json:
            print(json.dumps([job.to_dict() for job in jobs], indent=2))
            return 0

        if not jobs:
            logger.info("No scheduled posts found")
            return 0

        print(f"\n{'ID':<36} {'Status':<10} {'Scheduled':<20} {'Platforms':<24} {'Text'}")
        print("-" * 110)
        for job in jobs:
            text = job.content.text.replace("\n", " ")
            text = text[:27] + "..." if len(text) > 30 else text
            print(
                f"{job.id:<36} {job.status.value:<10} {_local(job.scheduled_time):<20} "
                f"{', '.join(job.platforms)[:24]:<24} {text}"
            )
        return 0

    def _cmd_show(self, args: argparse.Namespace) -> int:
        job = self.integration.jobs.get(args.job_id)
        if not job:
            logger.error("Job not found: %s", args.job_id)
            return 1
        self._print_job(job)
        return 0

    def _print_job(self, job: ScheduledJob) -> None:
        print(f"\nPost Details:")
        print(f"  ID: {job.id}")
        print(f"  Status: {job.status.value}")
        print(f"  Scheduled: {_local(job.scheduled_time)}")
        print(f"  Created: {_local(job.created)}")
        print(f"  Platforms: {', '.join(job.platforms)}")
        print(f"  Attempts: {job.attempts}")
        print(f"  Last Attempt: {_local(job.last_attempt) if job.last_attempt else 'Never'}")
        print(f"  Text: {job.content.text}")
        if job.content.media:
            print(f"  Media: {', '.join(job.content.media)}")
        if job.error_message:
            print(f"  Error: {job.error_message}")
        if job.platform_results:
            print(f"  Platform Results:")
            for platform, result in job.platform_results.items():
                outcome = "ok" if result.success else "failed"
                detail = result.platform_post_id or result.error_message or ""
                print(f"    {platform}: {outcome} {detail}".rstrip())

    def _cmd_edit(self, args: argparse.Namespace) -> int:
        job = self.integration.jobs.edit(
            args.job_id,
            scheduled_time=self._parse_time(args.at) if args.at else None,
            platforms=split_platforms(args.platforms) if args.platforms else None,
            text=args.text,
            media=args.media,
        )
        logger.info("Post %s updated, scheduled for %s", job.id, _local(job.scheduled_time))
        return 0

    def _cmd_delete(self, args: argparse.Namespace) -> int:
        job = self.integration.jobs.get(args.job_id)
        if not job:
            logger.error("Job not found: %s", args.job_id)
            return 1

        if not args.force:
            response = input(f"Delete post {args.job_id} ({job.status.value})? [y/N]: ")
            if response.lower() not in ("y", "yes"):
                logger.info("Cancelled")
                return 0

        self.integration.jobs.delete(args.job_id)
        logger.info("Post deleted: %s", args.job_id)
        return 0

    def _cmd_retry(self, args: argparse.Namespace) -> int:
        job = self.integration.jobs.retry(
            args.job_id, scheduled_time=self._parse_time(args.at) if args.at else None
        )
        logger.info("Post %s queued again for %s", job.id, _local(job.scheduled_time))
        return 0

    def _cmd_tick(self, args: argparse.Namespace) -> int:
        summary = self.integration.run_once()
        if summary is None:
            return 1

        print(
            f"Processed {len(summary.outcomes)} post(s): "
            f"{len(summary.completed)} completed, {len(summary.failed)} failed"
        )
        for outcome in summary.failed:
            print(f"  {outcome.job_id}: {outcome.job.error_message}")
        return 0 if not summary.failed else 1

    def _cmd_run(self, args: argparse.Namespace) -> int:
        """Start the scheduler daemon."""
        logger.info("Starting scheduler daemon...")
        if not self.integration.startup():
            return 1

        # Keep running until interrupted
        logger.info("Scheduler running. Press Ctrl+C to stop.")
        try:
            while self.integration.scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping scheduler...")
        finally:
            self.integration.shutdown()
        return 0

    def _cmd_recover(self, args: argparse.Namespace) -> int:
        reclaimed = self.integration.recover()
        if reclaimed is None:
            return 1

        print(f"Re-queued {len(reclaimed)} post(s)")
        for job_id in reclaimed:
            print(f"  {job_id}")
        return 0

    def _cmd_platforms(self, args: argparse.Namespace) -> int:
        for platform in self.integration.dispatcher.platforms():
            configured = self.integration.credentials.get(platform) is not None
            print(f"{platform:<10} {'configured' if configured else 'not configured'}")
        return 0

    def _cmd_status(self, args: argparse.Namespace) -> int:
        status = self.integration.get_status()

        print(f"\nScheduler Status:")
        print(f"  Running: {'Yes' if status['running'] else 'No'}")
        print(f"  Check Interval: {status['check_interval_seconds']}s")
        print(f"  Store: {status['store_path']}")
        print(f"  Store Readable: {'Yes' if status['store_readable'] else 'No'}")
        print(f"  Total Posts: {status['total_jobs']}")
        for name, count in status["jobs_by_status"].items():
            print(f"    {name}: {count}")
        print(f"  Archived Posts: {status['integration']['history_entries']}")
        print(f"  Last Tick: {status['last_tick'] or 'N/A'}")
        return 0


def main():
    """Main entry point for scheduler CLI."""
    cli = SchedulerCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
