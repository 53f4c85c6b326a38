from argparse import ArgumentTypeError
from datetime import date, timedelta

from background_task.models import Task
from django.core.management.base import BaseCommand
from django.utils import timezone

from email_tracking.rollup import run_daily_rollup
from email_tracking.tasks import daily_email_analytics_rollup


def parse_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


class Command(BaseCommand):
    help = "Roll up email events into daily domain and sender analytics"

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            type=parse_date,
            help="Day to roll up (YYYY-MM-DD). Defaults to yesterday.",
        )
        parser.add_argument(
            "--schedule",
            action="store_true",
            help="Queue the rollup as a daily repeating background task instead of running it now.",
        )

    def handle(self, *args, **options):
        if options["schedule"]:
            # Shortly after local midnight, once the previous day is complete
            first_run = timezone.localtime().replace(hour=0, minute=15, second=0, microsecond=0) + timedelta(days=1)
            daily_email_analytics_rollup(
                schedule=first_run,
                repeat=Task.DAILY,
                verbose_name="daily_email_analytics_rollup",
                remove_existing_tasks=True,
            )
            self.stdout.write(self.style.SUCCESS(f"Daily email rollup scheduled, first run at {first_run:%Y-%m-%d %H:%M %Z}"))
            return

        summary = run_daily_rollup(options["date"])
        self.stdout.write(
            f"Rolled up {summary['date']}: {len(summary['processed'])} domain(s) processed, "
            f"{summary['reputations_updated']} reputation(s) updated, {summary['alerts_created']} alert(s) created"
        )
        if summary["failed"]:
            self.stderr.write(self.style.WARNING(f"Failed domains: {', '.join(summary['failed'])}"))
        else:
            self.stdout.write(self.style.SUCCESS("Done"))
