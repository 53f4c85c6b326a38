from django.utils import timezone
from rest_framework import serializers
from .models import DomainAlert, DomainDailyAnalytics, EmailDomain, SenderDailyStats


class EmailWebhookSerializer(serializers.Serializer):
    type = serializers.CharField()
    created_at = serializers.DateTimeField(required=False)
    data = serializers.DictField()


class DailyStatsSerializer(serializers.ModelSerializer):
    class Meta:
        model = DomainDailyAnalytics
        fields = [
            "date", "total_sent", "total_delivered", "total_bounced",
            "unique_opens", "unique_clicks", "spam_complaints",
            "delivery_rate", "bounce_rate", "open_rate", "click_rate", "spam_rate",
        ]
        read_only_fields = fields


class EmailDomainHealthSerializer(serializers.ModelSerializer):
    today_stats = serializers.SerializerMethodField()
    unresolved_alerts = serializers.IntegerField(read_only=True)

    class Meta:
        model = EmailDomain
        fields = [
            "id", "domain", "domain_type", "status",
            "reputation_score", "reputation_status", "reputation_updated_at",
            "today_stats", "unresolved_alerts",
        ]
        read_only_fields = fields

    def get_today_stats(self, obj):
        day = self.context.get("stats_date") or timezone.localdate()
        row = next((r for r in obj.daily_analytics.all() if r.date == day), None)
        if row is None:
            return None
        return DailyStatsSerializer(row).data


class DomainAlertSerializer(serializers.ModelSerializer):
    domain_name = serializers.CharField(source="domain.domain", read_only=True)

    class Meta:
        model = DomainAlert
        fields = [
            "id", "domain", "domain_name", "severity", "alert_type", "message", "details",
            "created_at", "resolved", "resolved_at", "resolved_by",
        ]
        read_only_fields = fields


class FlaggedSenderSerializer(serializers.ModelSerializer):
    domain_name = serializers.CharField(source="domain.domain", read_only=True)
    issues = serializers.SerializerMethodField()

    class Meta:
        model = SenderDailyStats
        fields = [
            "id", "store_id", "domain", "domain_name", "date",
            "total_sent", "bounce_rate", "spam_rate", "open_rate",
            "reputation_score", "sending_status", "warnings", "issues",
        ]
        read_only_fields = fields

    def get_issues(self, obj):
        issues = []
        if obj.bounce_rate > 5:
            issues.append(f"High bounce rate: {obj.bounce_rate:.1f}%")
        if obj.spam_rate > 0.1:
            issues.append(f"Spam complaints: {obj.spam_rate:.2f}%")
        if obj.reputation_score < 50:
            issues.append(f"Low reputation: {obj.reputation_score:.0f}/100")
        return issues
