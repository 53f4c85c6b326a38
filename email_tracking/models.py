# email_tracking/models.py
from django.db import models
from django.utils import timezone


class EmailDomain(models.Model):
    """A sending domain and its current reputation summary"""

    DOMAIN_TYPE_CHOICES = [
        ("shared", "Shared"),
        ("dedicated", "Dedicated"),
        ("custom", "Custom"),
    ]
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("verifying", "Verifying"),
        ("active", "Active"),
        ("suspended", "Suspended"),
        ("retired", "Retired"),
    ]
    REPUTATION_STATUS_CHOICES = [
        ("excellent", "Excellent"),
        ("good", "Good"),
        ("fair", "Fair"),
        ("poor", "Poor"),
        ("critical", "Critical"),
    ]

    domain = models.CharField(max_length=255, unique=True)
    domain_type = models.CharField(max_length=20, choices=DOMAIN_TYPE_CHOICES, default="shared")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")

    reputation_score = models.PositiveSmallIntegerField(default=100)
    reputation_status = models.CharField(
        max_length=20, choices=REPUTATION_STATUS_CHOICES, default="excellent"
    )
    reputation_updated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["domain"]

    def __str__(self):
        return self.domain


class EmailEvent(models.Model):
    """One delivery-lifecycle occurrence. Append-only."""

    SENT = "sent"
    DELIVERED = "delivered"
    BOUNCED = "bounced"
    OPENED = "opened"
    CLICKED = "clicked"
    SPAM_COMPLAINT = "spam_complaint"
    UNSUBSCRIBED = "unsubscribed"

    EVENT_TYPE_CHOICES = [
        (SENT, "Sent"),
        (DELIVERED, "Delivered"),
        (BOUNCED, "Bounced"),
        (OPENED, "Opened"),
        (CLICKED, "Clicked"),
        (SPAM_COMPLAINT, "Spam complaint"),
        (UNSUBSCRIBED, "Unsubscribed"),
    ]
    BOUNCE_TYPE_CHOICES = [
        ("hard", "Hard"),
        ("soft", "Soft"),
    ]

    domain = models.ForeignKey(EmailDomain, on_delete=models.PROTECT, related_name="events")
    store_id = models.CharField(max_length=100, blank=True, default="", help_text="Sending store, if any")
    message_id = models.CharField(max_length=255, blank=True, default="")
    recipient = models.EmailField()
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES)
    bounce_type = models.CharField(max_length=10, choices=BOUNCE_TYPE_CHOICES, blank=True, default="")
    timestamp = models.DateTimeField(default=timezone.now)
    raw_data = models.JSONField(default=dict, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["domain", "timestamp"], name="emailevent_domain_ts_idx"),
            models.Index(fields=["store_id", "timestamp"], name="emailevent_store_ts_idx"),
            models.Index(fields=["message_id"], name="emailevent_message_idx"),
        ]

    def __str__(self):
        return f"{self.event_type} {self.recipient} @ {self.timestamp:%Y-%m-%d %H:%M}"


class DailyDeliveryMetrics(models.Model):
    """Counts, rates (percentages) and the 24-hour histogram for one day"""

    total_sent = models.PositiveIntegerField(default=0)
    total_delivered = models.PositiveIntegerField(default=0)
    total_bounced = models.PositiveIntegerField(default=0)
    total_failed = models.PositiveIntegerField(default=0)
    total_opened = models.PositiveIntegerField(default=0)
    total_clicked = models.PositiveIntegerField(default=0)
    unique_opens = models.PositiveIntegerField(default=0)
    unique_clicks = models.PositiveIntegerField(default=0)
    spam_complaints = models.PositiveIntegerField(default=0)
    unsubscribes = models.PositiveIntegerField(default=0)
    hard_bounces = models.PositiveIntegerField(default=0)
    soft_bounces = models.PositiveIntegerField(default=0)

    delivery_rate = models.FloatField(default=0)
    bounce_rate = models.FloatField(default=0)
    open_rate = models.FloatField(default=0)
    click_rate = models.FloatField(default=0)
    spam_rate = models.FloatField(default=0)

    hourly_stats = models.JSONField(default=list, blank=True)

    class Meta:
        abstract = True


class DomainDailyAnalytics(DailyDeliveryMetrics):
    domain = models.ForeignKey(EmailDomain, on_delete=models.CASCADE, related_name="daily_analytics")
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-date"]
        verbose_name_plural = "domain daily analytics"
        constraints = [
            models.UniqueConstraint(fields=["domain", "date"], name="unique_domain_daily_analytics"),
        ]
        indexes = [
            models.Index(fields=["date"], name="domainanalytics_date_idx"),
        ]

    def __str__(self):
        return f"{self.domain} {self.date}"


class SenderDailyStats(DailyDeliveryMetrics):
    ACTIVE = "active"
    WARNING = "warning"
    SUSPENDED = "suspended"

    SENDING_STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (WARNING, "Warning"),
        (SUSPENDED, "Suspended"),
    ]

    store_id = models.CharField(max_length=100)
    domain = models.ForeignKey(EmailDomain, on_delete=models.CASCADE, related_name="sender_stats")
    date = models.DateField()
    reputation_score = models.FloatField(default=100)
    sending_status = models.CharField(max_length=20, choices=SENDING_STATUS_CHOICES, default=ACTIVE)
    warnings = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-date", "store_id"]
        verbose_name_plural = "sender daily stats"
        constraints = [
            models.UniqueConstraint(
                fields=["store_id", "domain", "date"], name="unique_sender_daily_stats"
            ),
        ]
        indexes = [
            models.Index(fields=["date", "sending_status"], name="senderstats_date_status_idx"),
        ]

    def __str__(self):
        return f"{self.store_id} via {self.domain} {self.date} ({self.sending_status})"


class DomainAlert(models.Model):
    """Append-only record of a deliverability threshold breach"""

    SEVERITY_CHOICES = [
        ("info", "Info"),
        ("warning", "Warning"),
        ("critical", "Critical"),
    ]
    ALERT_TYPE_CHOICES = [
        ("high_bounce_rate", "High bounce rate"),
        ("spam_complaints", "Spam complaints"),
        ("dns_issue", "DNS issue"),
        ("rate_limit_reached", "Rate limit reached"),
        ("reputation_drop", "Reputation drop"),
        ("blacklist_detected", "Blacklist detected"),
    ]

    domain = models.ForeignKey(EmailDomain, on_delete=models.CASCADE, related_name="alerts")
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES)
    alert_type = models.CharField(max_length=30, choices=ALERT_TYPE_CHOICES)
    message = models.CharField(max_length=255)
    details = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)
    resolved = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["domain", "created_at"], name="domainalert_domain_created_idx"),
            models.Index(fields=["resolved"], name="domainalert_resolved_idx"),
        ]

    def __str__(self):
        return f"[{self.severity}] {self.alert_type} - {self.domain}"

    def resolve(self, resolved_by=""):
        self.resolved = True
        self.resolved_at = timezone.now()
        self.resolved_by = resolved_by
        self.save(update_fields=["resolved", "resolved_at", "resolved_by"])
