from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from .models import DomainAlert, DomainDailyAnalytics, EmailDomain, EmailEvent, SenderDailyStats


REPUTATION_COLORS = {
    "excellent": "green",
    "good": "green",
    "fair": "orange",
    "poor": "red",
    "critical": "darkred",
}


@admin.register(EmailDomain)
class EmailDomainAdmin(admin.ModelAdmin):
    list_display = (
        "domain",
        "domain_type",
        "status",
        "reputation_score",
        "reputation_badge",
        "reputation_updated_at",
    )
    list_filter = ("domain_type", "status", "reputation_status")
    search_fields = ("domain",)
    readonly_fields = ("reputation_score", "reputation_status", "reputation_updated_at", "created_at")

    @admin.display(description="Reputation", ordering="reputation_status")
    def reputation_badge(self, obj):
        return format_html(
            '<strong style="color: {};">{}</strong>',
            REPUTATION_COLORS.get(obj.reputation_status, "black"),
            obj.get_reputation_status_display(),
        )


@admin.register(EmailEvent)
class EmailEventAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "domain",
        "store_id",
        "event_type",
        "bounce_type",
        "recipient",
        "timestamp",
    )
    list_filter = ("event_type", "bounce_type", "domain")
    search_fields = ("recipient", "message_id", "store_id")
    date_hierarchy = "timestamp"

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(DomainDailyAnalytics)
class DomainDailyAnalyticsAdmin(admin.ModelAdmin):
    list_display = (
        "domain",
        "date",
        "total_sent",
        "delivery_rate",
        "bounce_rate",
        "open_rate",
        "spam_rate",
    )
    list_filter = ("domain",)
    date_hierarchy = "date"


@admin.register(SenderDailyStats)
class SenderDailyStatsAdmin(admin.ModelAdmin):
    list_display = (
        "store_id",
        "domain",
        "date",
        "total_sent",
        "bounce_rate",
        "spam_rate",
        "reputation_score",
        "sending_status",
    )
    list_filter = ("sending_status", "domain")
    search_fields = ("store_id",)
    date_hierarchy = "date"


@admin.register(DomainAlert)
class DomainAlertAdmin(admin.ModelAdmin):
    list_display = (
        "domain",
        "severity",
        "alert_type",
        "message",
        "created_at",
        "resolved",
    )
    list_filter = ("severity", "alert_type", "resolved")
    search_fields = ("domain__domain", "message")
    readonly_fields = ("resolved_at", "resolved_by")
    actions = ["mark_resolved"]

    @admin.action(description="Mark selected alerts as resolved")
    def mark_resolved(self, request, queryset):
        updated = queryset.filter(resolved=False).update(
            resolved=True,
            resolved_at=timezone.now(),
            resolved_by=request.user.get_username(),
        )
        self.message_user(request, f"{updated} alert(s) resolved.")
