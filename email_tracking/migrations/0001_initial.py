import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


def daily_metric_fields():
    return [
        ("total_sent", models.PositiveIntegerField(default=0)),
        ("total_delivered", models.PositiveIntegerField(default=0)),
        ("total_bounced", models.PositiveIntegerField(default=0)),
        ("total_failed", models.PositiveIntegerField(default=0)),
        ("total_opened", models.PositiveIntegerField(default=0)),
        ("total_clicked", models.PositiveIntegerField(default=0)),
        ("unique_opens", models.PositiveIntegerField(default=0)),
        ("unique_clicks", models.PositiveIntegerField(default=0)),
        ("spam_complaints", models.PositiveIntegerField(default=0)),
        ("unsubscribes", models.PositiveIntegerField(default=0)),
        ("hard_bounces", models.PositiveIntegerField(default=0)),
        ("soft_bounces", models.PositiveIntegerField(default=0)),
        ("delivery_rate", models.FloatField(default=0)),
        ("bounce_rate", models.FloatField(default=0)),
        ("open_rate", models.FloatField(default=0)),
        ("click_rate", models.FloatField(default=0)),
        ("spam_rate", models.FloatField(default=0)),
        ("hourly_stats", models.JSONField(blank=True, default=list)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="EmailDomain",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("domain", models.CharField(max_length=255, unique=True)),
                (
                    "domain_type",
                    models.CharField(
                        choices=[("shared", "Shared"), ("dedicated", "Dedicated"), ("custom", "Custom")],
                        default="shared",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("verifying", "Verifying"),
                            ("active", "Active"),
                            ("suspended", "Suspended"),
                            ("retired", "Retired"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("reputation_score", models.PositiveSmallIntegerField(default=100)),
                (
                    "reputation_status",
                    models.CharField(
                        choices=[
                            ("excellent", "Excellent"),
                            ("good", "Good"),
                            ("fair", "Fair"),
                            ("poor", "Poor"),
                            ("critical", "Critical"),
                        ],
                        default="excellent",
                        max_length=20,
                    ),
                ),
                ("reputation_updated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["domain"],
            },
        ),
        migrations.CreateModel(
            name="EmailEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "store_id",
                    models.CharField(blank=True, default="", help_text="Sending store, if any", max_length=100),
                ),
                ("message_id", models.CharField(blank=True, default="", max_length=255)),
                ("recipient", models.EmailField(max_length=254)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("sent", "Sent"),
                            ("delivered", "Delivered"),
                            ("bounced", "Bounced"),
                            ("opened", "Opened"),
                            ("clicked", "Clicked"),
                            ("spam_complaint", "Spam complaint"),
                            ("unsubscribed", "Unsubscribed"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "bounce_type",
                    models.CharField(
                        blank=True, choices=[("hard", "Hard"), ("soft", "Soft")], default="", max_length=10
                    ),
                ),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("raw_data", models.JSONField(blank=True, default=dict)),
                (
                    "domain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="email_tracking.emaildomain",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["domain", "timestamp"], name="emailevent_domain_ts_idx"),
                    models.Index(fields=["store_id", "timestamp"], name="emailevent_store_ts_idx"),
                    models.Index(fields=["message_id"], name="emailevent_message_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DomainDailyAnalytics",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *daily_metric_fields(),
                ("date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "domain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="daily_analytics",
                        to="email_tracking.emaildomain",
                    ),
                ),
            ],
            options={
                "ordering": ["-date"],
                "verbose_name_plural": "domain daily analytics",
                "indexes": [models.Index(fields=["date"], name="domainanalytics_date_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("domain", "date"), name="unique_domain_daily_analytics"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SenderDailyStats",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *daily_metric_fields(),
                ("store_id", models.CharField(max_length=100)),
                ("date", models.DateField()),
                ("reputation_score", models.FloatField(default=100)),
                (
                    "sending_status",
                    models.CharField(
                        choices=[("active", "Active"), ("warning", "Warning"), ("suspended", "Suspended")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("warnings", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "domain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sender_stats",
                        to="email_tracking.emaildomain",
                    ),
                ),
            ],
            options={
                "ordering": ["-date", "store_id"],
                "verbose_name_plural": "sender daily stats",
                "indexes": [
                    models.Index(fields=["date", "sending_status"], name="senderstats_date_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("store_id", "domain", "date"), name="unique_sender_daily_stats"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DomainAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "severity",
                    models.CharField(
                        choices=[("info", "Info"), ("warning", "Warning"), ("critical", "Critical")],
                        max_length=10,
                    ),
                ),
                (
                    "alert_type",
                    models.CharField(
                        choices=[
                            ("high_bounce_rate", "High bounce rate"),
                            ("spam_complaints", "Spam complaints"),
                            ("dns_issue", "DNS issue"),
                            ("rate_limit_reached", "Rate limit reached"),
                            ("reputation_drop", "Reputation drop"),
                            ("blacklist_detected", "Blacklist detected"),
                        ],
                        max_length=30,
                    ),
                ),
                ("message", models.CharField(max_length=255)),
                ("details", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved", models.BooleanField(default=False)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("resolved_by", models.CharField(blank=True, default="", max_length=150)),
                (
                    "domain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="alerts",
                        to="email_tracking.emaildomain",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["domain", "created_at"], name="domainalert_domain_created_idx"),
                    models.Index(fields=["resolved"], name="domainalert_resolved_idx"),
                ],
            },
        ),
    ]
