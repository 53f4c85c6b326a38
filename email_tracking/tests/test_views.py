from datetime import date
import json

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from email_tracking.models import DomainAlert, DomainDailyAnalytics, EmailDomain, EmailEvent, SenderDailyStats

User = get_user_model()


@override_settings(EMAIL_WEBHOOK_TOKEN="")
class EmailEventWebhookTest(TestCase):
    """Test cases for the email provider event webhook."""

    url = "/email/events/"

    def setUp(self):
        """Set up test data."""
        self.domain = EmailDomain.objects.create(domain="mail.example.com", status="active")

    def post_event(self, body, **headers):
        payload = body if isinstance(body, str) else json.dumps(body)
        return self.client.post(self.url, data=payload, content_type="application/json", **headers)

    def event(self, event_type="email.delivered", **data):
        payload = {
            "email_id": "em_123",
            "from": "Jane's Store <store@mail.example.com>",
            "to": ["buyer@example.org"],
            "tags": {"store_id": "s1"},
        }
        payload.update(data)
        return {"type": event_type, "created_at": "2024-01-01T10:00:00Z", "data": payload}

    def test_delivered_event_stored(self):
        """Test that a tracked event for a known domain is stored."""
        response = self.post_event(self.event())
        self.assertEqual(response.status_code, 200)

        event = EmailEvent.objects.get()
        self.assertEqual(event.domain, self.domain)
        self.assertEqual(event.event_type, EmailEvent.DELIVERED)
        self.assertEqual(event.recipient, "buyer@example.org")
        self.assertEqual(event.store_id, "s1")
        self.assertEqual(event.message_id, "em_123")
        self.assertEqual(event.timestamp.isoformat(), "2024-01-01T10:00:00+00:00")
        self.assertEqual(event.raw_data["type"], "email.delivered")

    def test_bounce_types(self):
        """Test that permanent bounces are hard and everything else soft."""
        self.post_event(self.event("email.bounced", bounce={"type": "Permanent"}))
        self.post_event(self.event("email.bounced", bounce={"type": "Transient"}))
        self.post_event(self.event("email.bounced"))

        bounce_types = list(EmailEvent.objects.order_by("id").values_list("bounce_type", flat=True))
        self.assertEqual(bounce_types, ["hard", "soft", "soft"])

    def test_provider_types_mapped(self):
        """Test that complaint events become spam complaints."""
        self.post_event(self.event("email.complained"))
        self.assertEqual(EmailEvent.objects.get().event_type, EmailEvent.SPAM_COMPLAINT)

    def test_tag_list_format(self):
        """Test that tags sent as name/value pairs are understood."""
        self.post_event(self.event(tags=[{"name": "store_id", "value": "s7"}]))
        self.assertEqual(EmailEvent.objects.get().store_id, "s7")

    def test_untracked_events_ignored(self):
        """Test that unknown types and unknown domains are acknowledged but dropped."""
        response = self.post_event(self.event("email.delivery_delayed"))
        self.assertEqual(response.status_code, 200)

        response = self.post_event(self.event(**{"from": "news@other.example.net"}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(EmailEvent.objects.exists())

    def test_invalid_body_rejected(self):
        """Test that unparseable or incomplete bodies get 400."""
        self.assertEqual(self.post_event("not json").status_code, 400)
        self.assertEqual(self.post_event({"type": "email.sent"}).status_code, 400)
        self.assertEqual(self.post_event([1, 2]).status_code, 400)

    @override_settings(EMAIL_WEBHOOK_TOKEN="secret-token")
    def test_token_required_when_configured(self):
        """Test the shared token check."""
        response = self.post_event(self.event())
        self.assertEqual(response.status_code, 401)

        response = self.post_event(self.event(), HTTP_X_WEBHOOK_TOKEN="secret-token")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(EmailEvent.objects.count(), 1)


class EmailMonitoringAPITest(APITestCase):
    """Test cases for the staff deliverability API."""

    def setUp(self):
        """Set up test data."""
        self.staff = User.objects.create_user(
            username="ops", email="ops@example.com", password="testpass123", is_staff=True
        )
        self.user = User.objects.create_user(
            username="creator", email="creator@example.com", password="testpass123"
        )
        self.day = date(2024, 1, 1)
        self.domain = EmailDomain.objects.create(
            domain="mail.example.com", status="active", reputation_score=30, reputation_status="poor"
        )
        self.quiet = EmailDomain.objects.create(domain="quiet.example.com", status="active")
        DomainDailyAnalytics.objects.create(
            domain=self.domain, date=self.day, total_sent=1000, bounce_rate=6.0, spam_rate=0.2
        )
        self.bounce_alert = DomainAlert.objects.create(
            domain=self.domain, severity="warning", alert_type="high_bounce_rate",
            message="High bounce rate detected: 6.0%",
        )
        DomainAlert.objects.create(
            domain=self.domain, severity="critical", alert_type="spam_complaints",
            message="Spam complaints detected: 0.30%",
        )
        DomainAlert.objects.create(
            domain=self.domain, severity="warning", alert_type="reputation_drop",
            message="Low reputation score: 45/100", resolved=True,
        )
        SenderDailyStats.objects.create(
            store_id="s1", domain=self.domain, date=self.day, bounce_rate=11.0,
            reputation_score=55.0, sending_status="suspended",
            warnings=[{"type": "high_bounce", "message": "Bounce rate 11.0% exceeds 5% threshold"}],
        )
        SenderDailyStats.objects.create(
            store_id="s2", domain=self.domain, date=self.day, reputation_score=100, sending_status="active"
        )
        self.client.force_authenticate(user=self.staff)

    def test_domains_with_stats_and_open_alerts(self):
        """Test the domain overview for a given day."""
        response = self.client.get("/email/domains/", {"date": "2024-01-01"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        domains = {item["domain"]: item for item in response.data["results"]}
        busy = domains["mail.example.com"]
        self.assertEqual(busy["reputation_score"], 30)
        self.assertEqual(busy["unresolved_alerts"], 2)
        self.assertEqual(busy["today_stats"]["total_sent"], 1000)
        self.assertEqual(busy["today_stats"]["bounce_rate"], 6.0)

        self.assertEqual(domains["quiet.example.com"]["unresolved_alerts"], 0)
        self.assertIsNone(domains["quiet.example.com"]["today_stats"])

    def test_bad_date_rejected(self):
        """Test that malformed dates get 400."""
        response = self.client.get("/email/domains/", {"date": "01/01/2024"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_alerts(self):
        """Test filtering alerts by severity and resolution."""
        response = self.client.get("/email/alerts/", {"severity": "critical"})
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["alert_type"], "spam_complaints")

        response = self.client.get("/email/alerts/", {"resolved": "false", "domain": self.domain.id})
        self.assertEqual(response.data["count"], 2)

    def test_resolve_alert(self):
        """Test that staff can resolve an alert."""
        response = self.client.post(f"/email/alerts/{self.bounce_alert.id}/resolve/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["resolved"])
        self.assertEqual(response.data["resolved_by"], "ops")

        self.bounce_alert.refresh_from_db()
        self.assertTrue(self.bounce_alert.resolved)
        self.assertIsNotNone(self.bounce_alert.resolved_at)

    def test_flagged_senders(self):
        """Test that only warning and suspended senders are listed with issues."""
        response = self.client.get("/email/senders/flagged/", {"date": "2024-01-01"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["date"], "2024-01-01")

        senders = response.data["senders"]
        self.assertEqual([s["store_id"] for s in senders], ["s1"])
        self.assertEqual(senders[0]["sending_status"], "suspended")
        self.assertEqual(senders[0]["issues"], ["High bounce rate: 11.0%"])

    def test_non_staff_forbidden(self):
        """Test that the monitoring API is staff only."""
        self.client.force_authenticate(user=self.user)
        self.assertEqual(self.client.get("/email/domains/").status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(
            self.client.post(f"/email/alerts/{self.bounce_alert.id}/resolve/").status_code,
            status.HTTP_403_FORBIDDEN,
        )
