from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
from unittest.mock import patch

from background_task.models import Task
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from email_tracking import rollup
from email_tracking.models import (
    DomainAlert,
    DomainDailyAnalytics,
    EmailDomain,
    EmailEvent,
    SenderDailyStats,
)
from email_tracking.tasks import daily_email_analytics_rollup

DAY = date(2024, 1, 1)


def at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=dt_timezone.utc)


def add_events(domain, event_type, count, store_id="", bounce_type="", timestamp=None, recipients=None):
    timestamp = timestamp or at(12)
    EmailEvent.objects.bulk_create([
        EmailEvent(
            domain=domain,
            store_id=store_id,
            event_type=event_type,
            bounce_type=bounce_type,
            recipient=recipients[i] if recipients else f"user{i}@example.org",
            timestamp=timestamp,
        )
        for i in range(count)
    ])


def add_example_day(domain, store_id=""):
    """1000 sent, 950 delivered, 60 bounced, 190 unique opens, 2 complaints"""
    add_events(domain, EmailEvent.SENT, 1000, store_id=store_id)
    add_events(domain, EmailEvent.DELIVERED, 950, store_id=store_id)
    add_events(domain, EmailEvent.BOUNCED, 40, store_id=store_id, bounce_type="hard")
    add_events(domain, EmailEvent.BOUNCED, 20, store_id=store_id, bounce_type="soft")
    add_events(domain, EmailEvent.OPENED, 190, store_id=store_id)
    add_events(domain, EmailEvent.SPAM_COMPLAINT, 2, store_id=store_id)


@override_settings(TIME_ZONE="UTC")
class CollectDomainDayTest(TestCase):
    """Test cases for the per-domain daily rollup."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def test_example_day_rates(self):
        """Test counts and rates for the reference day."""
        add_example_day(self.domain)
        row = rollup.collect_domain_day(self.domain, DAY)

        self.assertEqual(row.total_sent, 1000)
        self.assertEqual(row.total_delivered, 950)
        self.assertEqual(row.total_bounced, 60)
        self.assertEqual(row.hard_bounces, 40)
        self.assertEqual(row.soft_bounces, 20)
        self.assertEqual(row.spam_complaints, 2)
        self.assertEqual(row.bounce_rate, 6.0)
        self.assertEqual(row.delivery_rate, 95.0)
        self.assertEqual(row.spam_rate, 0.2)
        self.assertEqual(row.open_rate, 20.0)

    def test_empty_day_has_zero_rates(self):
        """Test that a day with no events rolls up to zero rates."""
        row = rollup.collect_domain_day(self.domain, DAY)
        for field in ["delivery_rate", "bounce_rate", "open_rate", "click_rate", "spam_rate"]:
            self.assertEqual(getattr(row, field), 0)
        self.assertEqual(len(row.hourly_stats), 24)

    def test_rerun_overwrites_row(self):
        """Test that rolling up the same day twice gives the identical row."""
        add_example_day(self.domain)
        rollup.collect_domain_day(self.domain, DAY)
        first = DomainDailyAnalytics.objects.values().get(domain=self.domain, date=DAY)

        rollup.collect_domain_day(self.domain, DAY)
        second = DomainDailyAnalytics.objects.values().get(domain=self.domain, date=DAY)

        self.assertEqual(DomainDailyAnalytics.objects.count(), 1)
        self.assertEqual(first, second)

    def test_unique_opens_count_distinct_recipients(self):
        """Test that repeat opens count once as unique but every open feeds the rate."""
        add_events(self.domain, EmailEvent.DELIVERED, 4)
        add_events(self.domain, EmailEvent.OPENED, 3, recipients=["a@example.org", "A@example.org", "b@example.org"])
        add_events(self.domain, EmailEvent.CLICKED, 2, recipients=["a@example.org", "a@example.org"])
        row = rollup.collect_domain_day(self.domain, DAY)

        self.assertEqual(row.total_opened, 3)
        self.assertEqual(row.unique_opens, 2)
        self.assertEqual(row.unique_clicks, 1)
        self.assertEqual(row.open_rate, 75.0)
        self.assertEqual(row.click_rate, 50.0)

    def test_window_excludes_other_days(self):
        """Test that only events inside the local day are counted."""
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=at(0, 0))
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=datetime(2024, 1, 1, 23, 59, 59, 999999, tzinfo=dt_timezone.utc))
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=at(0, 0, day=date(2024, 1, 2)))
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=at(23, 0, day=date(2023, 12, 31)))
        row = rollup.collect_domain_day(self.domain, DAY)
        self.assertEqual(row.total_sent, 2)

    def test_hourly_histogram(self):
        """Test that events land in the bucket of their local hour."""
        add_events(self.domain, EmailEvent.SENT, 2, timestamp=at(13, 30))
        add_events(self.domain, EmailEvent.DELIVERED, 1, timestamp=at(13, 45))
        add_events(self.domain, EmailEvent.OPENED, 1, timestamp=at(20, 5))
        row = rollup.collect_domain_day(self.domain, DAY)

        self.assertEqual(row.hourly_stats[13], {"hour": 13, "sent": 2, "delivered": 1, "opened": 0, "clicked": 0})
        self.assertEqual(row.hourly_stats[20]["opened"], 1)
        self.assertEqual(sum(bucket["sent"] for bucket in row.hourly_stats), 2)

    @override_settings(TIME_ZONE="America/New_York")
    def test_local_clock_used_for_day_and_hour(self):
        """Test that the day window and hour buckets follow the local time zone."""
        # 03:00 UTC on Jan 1 is still Dec 31 in New York
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=at(3))
        # 15:30 UTC is 10:30 EST
        add_events(self.domain, EmailEvent.SENT, 1, timestamp=at(15, 30))
        row = rollup.collect_domain_day(self.domain, DAY)

        self.assertEqual(row.total_sent, 1)
        self.assertEqual(row.hourly_stats[10]["sent"], 1)

    @override_settings(EMAIL_ROLLUP_EVENT_LIMIT=5)
    def test_event_cap(self):
        """Test that at most the configured number of events is scanned."""
        add_events(self.domain, EmailEvent.SENT, 8)
        row = rollup.collect_domain_day(self.domain, DAY)
        self.assertEqual(row.total_sent, 5)


@override_settings(TIME_ZONE="UTC")
class CollectSenderDayTest(TestCase):
    """Test cases for the per-sender daily rollup."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def test_rows_per_sender(self):
        """Test that each store gets its own row and anonymous events are skipped."""
        add_events(self.domain, EmailEvent.SENT, 10, store_id="s1")
        add_events(self.domain, EmailEvent.SENT, 4, store_id="s2")
        add_events(self.domain, EmailEvent.SENT, 7)

        rows = rollup.collect_sender_day(self.domain, DAY)
        self.assertEqual([row.store_id for row in rows], ["s1", "s2"])
        self.assertEqual(rows[0].total_sent, 10)
        self.assertEqual(rows[1].total_sent, 4)
        self.assertEqual(SenderDailyStats.objects.count(), 2)

    def test_high_bounce_sender_suspended(self):
        """Test that an 11% bounce rate suspends an otherwise healthy sender."""
        add_events(self.domain, EmailEvent.SENT, 100, store_id="s1")
        add_events(self.domain, EmailEvent.DELIVERED, 89, store_id="s1")
        add_events(self.domain, EmailEvent.BOUNCED, 11, store_id="s1", bounce_type="hard")
        add_events(self.domain, EmailEvent.OPENED, 89, store_id="s1")

        row = rollup.collect_sender_day(self.domain, DAY)[0]
        self.assertEqual(row.bounce_rate, 11.0)
        self.assertEqual(row.reputation_score, 55.0)
        self.assertEqual(row.sending_status, "suspended")
        self.assertEqual(row.warnings[0]["type"], "high_bounce")

    def test_healthy_sender_active(self):
        """Test that a clean sender stays active with no warnings."""
        add_events(self.domain, EmailEvent.SENT, 10, store_id="s1")
        add_events(self.domain, EmailEvent.DELIVERED, 10, store_id="s1")
        add_events(self.domain, EmailEvent.OPENED, 5, store_id="s1")

        row = rollup.collect_sender_day(self.domain, DAY)[0]
        self.assertEqual(row.reputation_score, 100)
        self.assertEqual(row.sending_status, "active")
        self.assertEqual(row.warnings, [])

    def test_rerun_updates_sender_row(self):
        """Test that re-running a day upserts the sender row."""
        add_events(self.domain, EmailEvent.SENT, 3, store_id="s1")
        rollup.collect_sender_day(self.domain, DAY)
        rollup.collect_sender_day(self.domain, DAY)
        self.assertEqual(SenderDailyStats.objects.count(), 1)


@override_settings(TIME_ZONE="UTC", EMAIL_REPUTATION_WINDOW_DAYS=7)
class DomainReputationTest(TestCase):
    """Test cases for trailing-window domain reputation."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def add_row(self, day, **rates):
        values = {"delivery_rate": 100, "bounce_rate": 0, "open_rate": 30, "spam_rate": 0}
        values.update(rates)
        return DomainDailyAnalytics.objects.create(domain=self.domain, date=day, **values)

    def test_window_is_inclusive_and_bounded(self):
        """Test that the window covers as_of and the six days before it only."""
        for offset in range(7):
            self.add_row(DAY - timedelta(days=offset))
        # Outside the window: would be heavily penalised if counted
        self.add_row(DAY - timedelta(days=7), bounce_rate=50, delivery_rate=50)
        self.add_row(DAY + timedelta(days=1), bounce_rate=50, delivery_rate=50)

        updated = rollup.update_domain_reputation(as_of=DAY)
        self.domain.refresh_from_db()

        self.assertEqual(updated, 1)
        self.assertEqual(self.domain.reputation_score, 100)
        self.assertEqual(self.domain.reputation_status, "excellent")
        self.assertIsNotNone(self.domain.reputation_updated_at)

    def test_rates_averaged_across_window(self):
        """Test that the score uses window averages."""
        self.add_row(DAY, bounce_rate=10)
        self.add_row(DAY - timedelta(days=1), bounce_rate=2)
        # Average bounce 6% -> 20 point penalty
        rollup.update_domain_reputation(as_of=DAY)
        self.domain.refresh_from_db()
        self.assertEqual(self.domain.reputation_score, 80)
        self.assertEqual(self.domain.reputation_status, "good")

    def test_domain_without_rows_skipped(self):
        """Test that domains without recent rows keep their reputation."""
        self.domain.reputation_score = 64
        self.domain.reputation_status = "fair"
        self.domain.save()

        self.assertEqual(rollup.update_domain_reputation(as_of=DAY), 0)
        self.domain.refresh_from_db()
        self.assertEqual(self.domain.reputation_score, 64)
        self.assertIsNone(self.domain.reputation_updated_at)

    def test_defaults_to_today(self):
        """Test that the window ends today when no date is given."""
        self.add_row(timezone.localdate(), bounce_rate=10)
        rollup.update_domain_reputation()
        self.domain.refresh_from_db()
        self.assertEqual(self.domain.reputation_score, 60)


@override_settings(TIME_ZONE="UTC")
class HealthAlertTest(TestCase):
    """Test cases for deliverability alerts."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def test_critical_bounce_alert(self):
        """Test that bounce rates above 10% raise a critical alert."""
        DomainDailyAnalytics.objects.create(domain=self.domain, date=DAY, total_sent=100, total_bounced=11, bounce_rate=11.0)
        alerts = rollup.generate_health_alerts(DAY)

        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].alert_type, "high_bounce_rate")
        self.assertEqual(alerts[0].severity, "critical")
        self.assertEqual(alerts[0].message, "High bounce rate detected: 11.0%")
        self.assertIn("11 bounces out of 100 emails sent on 2024-01-01", alerts[0].details)

    def test_healthy_day_raises_nothing(self):
        """Test that rates on the thresholds raise no alert."""
        DomainDailyAnalytics.objects.create(domain=self.domain, date=DAY, bounce_rate=5.0, spam_rate=0.1)
        self.assertEqual(rollup.generate_health_alerts(DAY), [])

    def test_low_reputation_alert(self):
        """Test that a domain score below 30 raises a critical reputation alert."""
        self.domain.reputation_score = 25
        self.domain.reputation_status = "critical"
        self.domain.save()
        DomainDailyAnalytics.objects.create(domain=self.domain, date=DAY)

        alert = rollup.generate_health_alerts(DAY)[0]
        self.assertEqual(alert.alert_type, "reputation_drop")
        self.assertEqual(alert.severity, "critical")
        self.assertEqual(alert.message, "Low reputation score: 25/100")

    def test_alerts_not_deduplicated(self):
        """Test that each run appends its own alerts."""
        DomainDailyAnalytics.objects.create(domain=self.domain, date=DAY, bounce_rate=6.0)
        rollup.generate_health_alerts(DAY)
        rollup.generate_health_alerts(DAY)
        self.assertEqual(DomainAlert.objects.filter(alert_type="high_bounce_rate").count(), 2)


@override_settings(TIME_ZONE="UTC", EMAIL_REPUTATION_WINDOW_DAYS=7)
class DailyRollupTest(TestCase):
    """Test cases for the daily rollup driver."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def test_example_domain_day(self):
        """Test the full rollup for mail.example.com on 2024-01-01."""
        add_example_day(self.domain, store_id="s1")
        summary = rollup.run_daily_rollup(DAY)

        self.assertEqual(summary["date"], "2024-01-01")
        self.assertEqual(summary["processed"], ["mail.example.com"])
        self.assertEqual(summary["failed"], [])
        self.assertEqual(summary["reputations_updated"], 1)

        row = DomainDailyAnalytics.objects.get(domain=self.domain, date=DAY)
        self.assertEqual((row.bounce_rate, row.delivery_rate, row.spam_rate, row.open_rate), (6.0, 95.0, 0.2, 20.0))

        # Exactly 0.2% spam is not above the critical threshold
        alerts = {alert.alert_type: alert.severity for alert in DomainAlert.objects.filter(domain=self.domain)}
        self.assertEqual(alerts["high_bounce_rate"], "warning")
        self.assertEqual(alerts["spam_complaints"], "warning")

        self.domain.refresh_from_db()
        self.assertEqual(self.domain.reputation_score, 30)
        self.assertEqual(self.domain.reputation_status, "poor")
        self.assertEqual(alerts["reputation_drop"], "warning")
        self.assertEqual(summary["alerts_created"], 3)

        sender = SenderDailyStats.objects.get(store_id="s1", date=DAY)
        self.assertEqual(sender.sending_status, "warning")
        self.assertEqual([w["type"] for w in sender.warnings], ["high_bounce", "spam_complaints"])

    def test_defaults_to_yesterday(self):
        """Test that the driver rolls up yesterday by default."""
        summary = rollup.run_daily_rollup()
        yesterday = timezone.localdate() - timedelta(days=1)
        self.assertEqual(summary["date"], yesterday.isoformat())
        self.assertTrue(DomainDailyAnalytics.objects.filter(date=yesterday).exists())

    def test_failing_domain_does_not_stop_batch(self):
        """Test that one domain failing leaves no partial rows and the rest continue."""
        broken = EmailDomain.objects.create(domain="broken.example.com", status="active")
        add_events(broken, EmailEvent.SENT, 3, store_id="s9")
        add_events(self.domain, EmailEvent.SENT, 3, store_id="s1")

        real_collect_sender_day = rollup.collect_sender_day

        def flaky(domain, day, events=None):
            if domain.domain == "broken.example.com":
                raise RuntimeError("boom")
            return real_collect_sender_day(domain, day, events=events)

        with patch("email_tracking.rollup.collect_sender_day", side_effect=flaky):
            summary = rollup.run_daily_rollup(DAY)

        self.assertEqual(summary["failed"], ["broken.example.com"])
        self.assertEqual(summary["processed"], ["mail.example.com"])
        self.assertFalse(DomainDailyAnalytics.objects.filter(domain=broken).exists())
        self.assertTrue(DomainDailyAnalytics.objects.filter(domain=self.domain).exists())
        self.assertTrue(SenderDailyStats.objects.filter(store_id="s1").exists())

    def test_reputation_failure_still_raises_alerts(self):
        """Test that a failing reputation pass is logged and alerts still run."""
        add_example_day(self.domain)

        with patch("email_tracking.rollup.update_domain_reputation", side_effect=RuntimeError("boom")):
            with self.assertLogs("email_tracking.rollup", level="ERROR") as logs:
                summary = rollup.run_daily_rollup(DAY)

        self.assertIn("Reputation update failed", logs.output[0])
        self.assertEqual(summary["processed"], ["mail.example.com"])
        self.assertEqual(summary["reputations_updated"], 0)
        self.assertTrue(DomainDailyAnalytics.objects.filter(domain=self.domain, date=DAY).exists())
        self.assertTrue(DomainAlert.objects.filter(domain=self.domain, alert_type="high_bounce_rate").exists())
        self.assertGreater(summary["alerts_created"], 0)

    def test_alert_failure_keeps_reputation(self):
        """Test that a failing alert pass is logged after reputation is saved."""
        add_example_day(self.domain)

        with patch("email_tracking.rollup.generate_health_alerts", side_effect=RuntimeError("boom")):
            with self.assertLogs("email_tracking.rollup", level="ERROR") as logs:
                summary = rollup.run_daily_rollup(DAY)

        self.assertIn("Health alerts failed", logs.output[0])
        self.assertEqual(summary["reputations_updated"], 1)
        self.assertEqual(summary["alerts_created"], 0)
        self.assertFalse(DomainAlert.objects.exists())
        self.domain.refresh_from_db()
        self.assertEqual(self.domain.reputation_score, 30)

    def test_background_task_runs_rollup(self):
        """Test that the background task rolls up the requested day."""
        add_events(self.domain, EmailEvent.SENT, 2)
        daily_email_analytics_rollup.now("2024-01-01")
        self.assertEqual(DomainDailyAnalytics.objects.get(date=DAY).total_sent, 2)


@override_settings(TIME_ZONE="UTC")
class EmailRollupCommandTest(TestCase):
    """Test cases for the email_rollup management command."""

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def test_rollup_for_date(self):
        """Test that --date rolls up that day inline."""
        add_events(self.domain, EmailEvent.SENT, 2)
        out = StringIO()
        call_command("email_rollup", "--date", "2024-01-01", stdout=out)

        self.assertIn("Rolled up 2024-01-01: 1 domain(s) processed", out.getvalue())
        self.assertEqual(DomainDailyAnalytics.objects.get(date=DAY).total_sent, 2)

    def test_schedule_queues_daily_task(self):
        """Test that --schedule queues a repeating background task."""
        out = StringIO()
        call_command("email_rollup", "--schedule", stdout=out)

        task = Task.objects.get(task_name="email_tracking.tasks.daily_email_analytics_rollup")
        self.assertEqual(task.repeat, Task.DAILY)
        self.assertIn("scheduled", out.getvalue())
        self.assertFalse(DomainDailyAnalytics.objects.exists())
