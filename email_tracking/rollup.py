# email_tracking/rollup.py
"""
Daily deliverability rollup.

Aggregates raw EmailEvents into per-domain and per-sender daily rows,
re-scores domain reputation over a trailing window and raises health
alerts. Every step is an upsert keyed on the day, so re-running a day
overwrites its rows (alerts excepted: they are appended on every run).
"""
from collections import Counter, defaultdict
from datetime import datetime, time, timedelta
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Avg
from django.utils import timezone

from . import scoring
from .models import (
    DomainAlert,
    DomainDailyAnalytics,
    EmailDomain,
    EmailEvent,
    SenderDailyStats,
)

logger = logging.getLogger(__name__)

HOURLY_EVENT_TYPES = {
    EmailEvent.SENT: "sent",
    EmailEvent.DELIVERED: "delivered",
    EmailEvent.OPENED: "opened",
    EmailEvent.CLICKED: "clicked",
}


def day_bounds(day):
    """First and last instant of ``day`` on the local clock"""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = timezone.make_aware(datetime.combine(day, time.max), tz)
    return start, end


def load_day_events(domain, day):
    start, end = day_bounds(day)
    limit = getattr(settings, "EMAIL_ROLLUP_EVENT_LIMIT", 10000)
    events = list(
        EmailEvent.objects.filter(domain=domain, timestamp__gte=start, timestamp__lte=end)
        .order_by("timestamp")[:limit]
    )
    if len(events) == limit:
        logger.warning(f"[Email Analytics Rollup] {domain.domain} on {day} hit the {limit} event cap")
    return events


def summarize_events(events):
    """Counts, rates and the hourly histogram for a batch of events"""
    counts = Counter(event.event_type for event in events)
    hourly = [
        {"hour": hour, "sent": 0, "delivered": 0, "opened": 0, "clicked": 0}
        for hour in range(24)
    ]
    opened_by, clicked_by = set(), set()
    hard_bounces = 0

    for event in events:
        if event.event_type == EmailEvent.OPENED:
            opened_by.add(event.recipient.lower())
        elif event.event_type == EmailEvent.CLICKED:
            clicked_by.add(event.recipient.lower())
        elif event.event_type == EmailEvent.BOUNCED and event.bounce_type == "hard":
            hard_bounces += 1

        key = HOURLY_EVENT_TYPES.get(event.event_type)
        if key:
            hourly[timezone.localtime(event.timestamp).hour][key] += 1

    summary = {
        "total_sent": counts[EmailEvent.SENT],
        "total_delivered": counts[EmailEvent.DELIVERED],
        "total_bounced": counts[EmailEvent.BOUNCED],
        # Bounces are the only failure signal the provider reports
        "total_failed": counts[EmailEvent.BOUNCED],
        "total_opened": counts[EmailEvent.OPENED],
        "total_clicked": counts[EmailEvent.CLICKED],
        "unique_opens": len(opened_by),
        "unique_clicks": len(clicked_by),
        "spam_complaints": counts[EmailEvent.SPAM_COMPLAINT],
        "unsubscribes": counts[EmailEvent.UNSUBSCRIBED],
        "hard_bounces": hard_bounces,
        "soft_bounces": counts[EmailEvent.BOUNCED] - hard_bounces,
        "hourly_stats": hourly,
    }
    summary.update(
        scoring.compute_rates(
            total_sent=summary["total_sent"],
            total_delivered=summary["total_delivered"],
            total_bounced=summary["total_bounced"],
            total_opened=summary["total_opened"],
            total_clicked=summary["total_clicked"],
            spam_complaints=summary["spam_complaints"],
        )
    )
    return summary


def collect_domain_day(domain, day, events=None):
    if events is None:
        events = load_day_events(domain, day)

    summary = summarize_events(events)
    row, created = DomainDailyAnalytics.objects.update_or_create(
        domain=domain, date=day, defaults=summary
    )
    logger.debug(
        f"[Email Analytics Rollup] {'Created' if created else 'Updated'} {domain.domain} {day}: "
        f"sent={row.total_sent} bounce={row.bounce_rate:.2f}%"
    )
    return row


def collect_sender_day(domain, day, events=None):
    if events is None:
        events = load_day_events(domain, day)

    by_sender = defaultdict(list)
    for event in events:
        if event.store_id:
            by_sender[event.store_id].append(event)

    rows = []
    for store_id, sender_events in sorted(by_sender.items()):
        summary = summarize_events(sender_events)
        score = scoring.sender_reputation_score(
            bounce_rate=summary["bounce_rate"],
            spam_rate=summary["spam_rate"],
            open_rate=summary["open_rate"],
        )
        status, warnings = scoring.sender_status(summary["bounce_rate"], summary["spam_rate"], score)
        if status != SenderDailyStats.ACTIVE:
            logger.info(f"[Email Analytics Rollup] Sender {store_id} on {domain.domain} is {status} for {day}")

        row, _ = SenderDailyStats.objects.update_or_create(
            store_id=store_id,
            domain=domain,
            date=day,
            defaults={
                **summary,
                "reputation_score": score,
                "sending_status": status,
                "warnings": warnings,
            },
        )
        rows.append(row)
    return rows


def update_domain_reputation(as_of=None):
    """
    Re-score every domain from the trailing window of daily rows.

    The window is the ``EMAIL_REPUTATION_WINDOW_DAYS`` days ending on
    ``as_of`` (inclusive, default today). Domains with no rows in the window
    keep their current reputation. Returns the number of domains updated.
    """
    as_of = as_of or timezone.localdate()
    window_days = getattr(settings, "EMAIL_REPUTATION_WINDOW_DAYS", 7)
    window_start = as_of - timedelta(days=window_days - 1)

    updated = 0
    for domain in EmailDomain.objects.all():
        averages = DomainDailyAnalytics.objects.filter(
            domain=domain, date__gte=window_start, date__lte=as_of
        ).aggregate(
            bounce=Avg("bounce_rate"),
            spam=Avg("spam_rate"),
            open=Avg("open_rate"),
            delivery=Avg("delivery_rate"),
        )
        if averages["bounce"] is None:
            continue

        score = scoring.domain_reputation_score(
            bounce_rate=averages["bounce"],
            spam_rate=averages["spam"],
            open_rate=averages["open"],
            delivery_rate=averages["delivery"],
        )
        domain.reputation_score = score
        domain.reputation_status = scoring.reputation_status(score)
        domain.reputation_updated_at = timezone.now()
        domain.save(update_fields=["reputation_score", "reputation_status", "reputation_updated_at"])
        updated += 1

    logger.info(f"[Email Analytics Rollup] Reputation updated for {updated} domains ({window_start} to {as_of})")
    return updated


def generate_health_alerts(day):
    """Insert a DomainAlert for each threshold the day's rows breach"""
    alerts = []
    rows = DomainDailyAnalytics.objects.filter(date=day).select_related("domain")
    for row in rows:
        domain = row.domain

        if row.bounce_rate > scoring.ALERT_BOUNCE_RATE:
            alerts.append(DomainAlert(
                domain=domain,
                severity=scoring.alert_severity(row.bounce_rate, scoring.ALERT_CRITICAL_BOUNCE_RATE),
                alert_type="high_bounce_rate",
                message=f"High bounce rate detected: {row.bounce_rate:.1f}%",
                details=(
                    f"Domain {domain.domain} had {row.total_bounced} bounces out of "
                    f"{row.total_sent} emails sent on {day}"
                ),
            ))

        if row.spam_rate > scoring.ALERT_SPAM_RATE:
            alerts.append(DomainAlert(
                domain=domain,
                severity=scoring.alert_severity(row.spam_rate, scoring.ALERT_CRITICAL_SPAM_RATE),
                alert_type="spam_complaints",
                message=f"Spam complaints detected: {row.spam_rate:.2f}%",
                details=f"Domain {domain.domain} received {row.spam_complaints} spam complaints on {day}",
            ))

        if domain.reputation_score < scoring.ALERT_REPUTATION_SCORE:
            alerts.append(DomainAlert(
                domain=domain,
                severity=scoring.alert_severity(
                    domain.reputation_score, scoring.ALERT_CRITICAL_REPUTATION_SCORE, lower_is_worse=True
                ),
                alert_type="reputation_drop",
                message=f"Low reputation score: {domain.reputation_score}/100",
                details=f"Domain {domain.domain} reputation has dropped to {domain.reputation_status}",
            ))

    for alert in alerts:
        alert.save()
        logger.warning(f"[Email Health] {alert.severity.upper()} {alert.alert_type} on {alert.domain.domain}: {alert.message}")
    return alerts


def run_daily_rollup(day=None):
    """
    Roll up ``day`` (default: yesterday on the local clock) for every domain.

    Each domain's domain and sender rows are written in one transaction; a
    failing domain is logged and skipped so the rest still roll up. The
    reputation and alert passes are guarded the same way, so a failure in
    one still leaves the daily rows and the other pass in place.
    """
    day = day or timezone.localdate() - timedelta(days=1)
    logger.info(f"[Email Analytics Rollup] Starting rollup for {day}")

    processed, failed = [], []
    for domain in EmailDomain.objects.order_by("domain"):
        try:
            with transaction.atomic():
                events = load_day_events(domain, day)
                collect_domain_day(domain, day, events=events)
                collect_sender_day(domain, day, events=events)
            processed.append(domain.domain)
        except Exception as e:
            logger.error(f"[Email Analytics Rollup] Failed to roll up {domain.domain} for {day}: {str(e)}", exc_info=True)
            failed.append(domain.domain)

    reputations_updated = 0
    try:
        reputations_updated = update_domain_reputation(as_of=day)
    except Exception as e:
        logger.error(f"[Email Analytics Rollup] Reputation update failed for {day}: {str(e)}", exc_info=True)

    alerts = []
    try:
        alerts = generate_health_alerts(day)
    except Exception as e:
        logger.error(f"[Email Analytics Rollup] Health alerts failed for {day}: {str(e)}", exc_info=True)

    summary = {
        "date": day.isoformat(),
        "processed": processed,
        "failed": failed,
        "reputations_updated": reputations_updated,
        "alerts_created": len(alerts),
    }
    logger.info(f"[Email Analytics Rollup] Finished {day}: {summary}")
    return summary
