# email_tracking/scoring.py
"""
Deliverability arithmetic shared by the daily rollup.

All rates are percentages (0-100). Nothing here touches the database.
"""
from decimal import Decimal, ROUND_HALF_UP


# Sender thresholds
SENDER_WARNING_BOUNCE_RATE = 5
SENDER_SUSPEND_BOUNCE_RATE = 10
SENDER_WARNING_SPAM_RATE = 0.1
SENDER_SUSPEND_SPAM_RATE = 0.2
SENDER_HEALTHY_SCORE = 50

# Domain alert thresholds
ALERT_BOUNCE_RATE = 5
ALERT_CRITICAL_BOUNCE_RATE = 10
ALERT_SPAM_RATE = 0.1
ALERT_CRITICAL_SPAM_RATE = 0.2
ALERT_REPUTATION_SCORE = 50
ALERT_CRITICAL_REPUTATION_SCORE = 30

REPUTATION_BANDS = [
    (90, "excellent"),
    (70, "good"),
    (50, "fair"),
    (30, "poor"),
]


def rate(count, denominator):
    """``count`` as a percentage of ``denominator``; 0 when nothing was sent"""
    if not denominator:
        return 0.0
    return count * 100 / denominator


def compute_rates(total_sent, total_delivered, total_bounced, total_opened, total_clicked, spam_complaints):
    return {
        "delivery_rate": rate(total_delivered, total_sent),
        "bounce_rate": rate(total_bounced, total_sent),
        "open_rate": rate(total_opened, total_delivered),
        "click_rate": rate(total_clicked, total_delivered),
        "spam_rate": rate(spam_complaints, total_sent),
    }


def clamp(value, low=0, high=100):
    return max(low, min(high, value))


def sender_reputation_score(bounce_rate, spam_rate, open_rate):
    score = 100.0
    if bounce_rate > 2:
        score -= (bounce_rate - 2) * 5
    if spam_rate > 0.01:
        score -= (spam_rate - 0.01) * 100
    if open_rate < 20:
        score -= (20 - open_rate) * 2
    return clamp(score)


def sender_status(bounce_rate, spam_rate, reputation_score):
    """
    Classify a sender for one day.

    Returns ``(sending_status, warnings)`` where warnings is a list of
    ``{"type", "message"}`` dicts, one per breached warning threshold.
    Suspension overrides warning regardless of which checks fired.
    """
    warnings = []
    if bounce_rate > SENDER_WARNING_BOUNCE_RATE:
        warnings.append({
            "type": "high_bounce",
            "message": f"Bounce rate {bounce_rate:.1f}% exceeds {SENDER_WARNING_BOUNCE_RATE}% threshold",
        })
    if spam_rate > SENDER_WARNING_SPAM_RATE:
        warnings.append({
            "type": "spam_complaints",
            "message": f"Spam rate {spam_rate:.2f}% exceeds {SENDER_WARNING_SPAM_RATE}% threshold",
        })
    if reputation_score < SENDER_HEALTHY_SCORE:
        warnings.append({
            "type": "low_engagement",
            "message": f"Reputation score {reputation_score:.0f}/100 is below healthy threshold",
        })

    if bounce_rate > SENDER_SUSPEND_BOUNCE_RATE or spam_rate > SENDER_SUSPEND_SPAM_RATE:
        status = "suspended"
    elif warnings:
        status = "warning"
    else:
        status = "active"
    return status, warnings


def round_half_up(value):
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def domain_reputation_score(bounce_rate, spam_rate, open_rate, delivery_rate):
    """Integer 0-100 score from trailing-window average rates"""
    score = 100.0
    if bounce_rate > 2:
        score -= min(40, (bounce_rate - 2) * 5)
    if spam_rate > 0.01:
        score -= min(50, (spam_rate - 0.01) * 500)
    if open_rate < 20:
        score -= min(20, (20 - open_rate) * 2)
    if delivery_rate < 95:
        score -= min(30, (95 - delivery_rate) * 3)
    return clamp(round_half_up(score))


def reputation_status(score):
    for floor, status in REPUTATION_BANDS:
        if score >= floor:
            return status
    return "critical"


def alert_severity(value, critical_threshold, lower_is_worse=False):
    if lower_is_worse:
        return "critical" if value < critical_threshold else "warning"
    return "critical" if value > critical_threshold else "warning"
