# email_tracking/views.py
import json
import logging
from datetime import date

from django.conf import settings
from django.db.models import Count, Prefetch, Q
from django.http import HttpResponse
from django.utils import timezone
from django.utils.crypto import constant_time_compare
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import DomainAlert, DomainDailyAnalytics, EmailDomain, SenderDailyStats
from .serializers import (
    DomainAlertSerializer,
    EmailDomainHealthSerializer,
    EmailWebhookSerializer,
    FlaggedSenderSerializer,
)
from .services import ingest_provider_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def email_event_webhook(request):
    """
    Receive delivery events from the email provider.

    Tracked events for known domains are stored; anything else is
    acknowledged and dropped so the provider does not retry it.
    """
    expected_token = getattr(settings, "EMAIL_WEBHOOK_TOKEN", "")
    if expected_token:
        token = request.headers.get("X-Webhook-Token", "")
        if not constant_time_compare(token, expected_token):
            logger.warning("Email webhook rejected: bad token")
            return HttpResponse(status=401)

    try:
        payload = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Email webhook rejected: body is not valid JSON")
        return HttpResponse(status=400)

    serializer = EmailWebhookSerializer(data=payload if isinstance(payload, dict) else {})
    if not serializer.is_valid():
        logger.warning(f"Email webhook rejected: {serializer.errors}")
        return HttpResponse(status=400)

    try:
        ingest_provider_event(
            event_type=serializer.validated_data["type"],
            data=serializer.validated_data["data"],
            created_at=serializer.validated_data.get("created_at"),
            raw_data=payload,
        )
    except Exception as e:
        logger.error(f"Failed to store email event {payload.get('type')}: {str(e)}", exc_info=True)
        return HttpResponse(status=500)

    return HttpResponse(status=200)


def requested_date(request):
    """``?date=YYYY-MM-DD``, defaulting to today on the local clock"""
    value = request.query_params.get("date")
    if not value:
        return timezone.localdate()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError({"date": "Use the YYYY-MM-DD format."})


class EmailDomainViewSet(viewsets.ReadOnlyModelViewSet):
    """Sending domains with reputation, the day's stats and open alert count"""
    serializer_class = EmailDomainHealthSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["status", "domain_type", "reputation_status"]
    ordering_fields = ["domain", "reputation_score"]
    ordering = ["domain"]

    def get_queryset(self):
        day = requested_date(self.request)
        return EmailDomain.objects.annotate(
            unresolved_alerts=Count("alerts", filter=Q(alerts__resolved=False))
        ).prefetch_related(
            Prefetch("daily_analytics", queryset=DomainDailyAnalytics.objects.filter(date=day))
        )

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["stats_date"] = requested_date(self.request)
        return context


class DomainAlertViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = DomainAlert.objects.select_related("domain")
    serializer_class = DomainAlertSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["domain", "severity", "alert_type", "resolved"]
    ordering_fields = ["created_at", "severity"]
    ordering = ["-created_at"]

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        alert = self.get_object()
        if not alert.resolved:
            alert.resolve(resolved_by=request.user.get_username())
            logger.info(f"Alert {alert.id} ({alert.alert_type}) resolved by {alert.resolved_by}")
        return Response(self.get_serializer(alert).data)


class FlaggedSendersView(APIView):
    """Senders in warning or suspended status for the day"""
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        day = requested_date(request)
        flagged = (
            SenderDailyStats.objects.filter(
                date=day,
                sending_status__in=[SenderDailyStats.WARNING, SenderDailyStats.SUSPENDED],
            )
            .select_related("domain")
            .order_by("reputation_score")
        )
        return Response({
            "date": day.isoformat(),
            "senders": FlaggedSenderSerializer(flagged, many=True).data,
        })
