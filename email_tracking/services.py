# email_tracking/services.py
from email.utils import parseaddr
import logging

from django.utils import timezone

from .models import EmailDomain, EmailEvent

logger = logging.getLogger(__name__)

PROVIDER_EVENT_TYPES = {
    "email.sent": EmailEvent.SENT,
    "email.delivered": EmailEvent.DELIVERED,
    "email.bounced": EmailEvent.BOUNCED,
    "email.opened": EmailEvent.OPENED,
    "email.clicked": EmailEvent.CLICKED,
    "email.complained": EmailEvent.SPAM_COMPLAINT,
    "email.unsubscribed": EmailEvent.UNSUBSCRIBED,
}


def record_email_event(
    domain,
    event_type,
    recipient,
    timestamp=None,
    store_id="",
    bounce_type="",
    message_id="",
    raw_data=None,
):
    if event_type != EmailEvent.BOUNCED:
        bounce_type = ""
    elif bounce_type not in ("hard", "soft"):
        bounce_type = "soft"

    return EmailEvent.objects.create(
        domain=domain,
        event_type=event_type,
        recipient=recipient,
        timestamp=timestamp or timezone.now(),
        store_id=store_id or "",
        bounce_type=bounce_type,
        message_id=message_id or "",
        raw_data=raw_data or {},
    )


def sender_domain(address):
    _, email_address = parseaddr(address or "")
    if "@" not in email_address:
        return ""
    return email_address.rpartition("@")[2].strip().lower()


def tag_value(tags, name):
    """Tags arrive either as a mapping or as a list of {name, value} pairs"""
    if isinstance(tags, dict):
        return tags.get(name) or ""
    for tag in tags or []:
        if isinstance(tag, dict) and tag.get("name") == name:
            return tag.get("value") or ""
    return ""


def ingest_provider_event(event_type, data, created_at=None, raw_data=None):
    """
    Store one provider webhook event.

    Returns the new EmailEvent, or None when the event type or the sending
    domain is not tracked.
    """
    mapped_type = PROVIDER_EVENT_TYPES.get(event_type)
    if mapped_type is None:
        logger.debug(f"Ignoring untracked email event type {event_type}")
        return None

    domain_name = sender_domain(data.get("from"))
    domain = EmailDomain.objects.filter(domain=domain_name).first() if domain_name else None
    if domain is None:
        logger.info(f"Ignoring {event_type} for unknown sending domain '{domain_name}'")
        return None

    recipients = data.get("to") or []
    if isinstance(recipients, str):
        recipients = [recipients]
    recipient = parseaddr(recipients[0])[1] if recipients else ""

    bounce_type = ""
    if mapped_type == EmailEvent.BOUNCED:
        bounce = data.get("bounce") or {}
        bounce_type = "hard" if bounce.get("type") == "Permanent" else "soft"

    return record_email_event(
        domain=domain,
        event_type=mapped_type,
        recipient=recipient,
        timestamp=created_at,
        store_id=tag_value(data.get("tags"), "store_id"),
        bounce_type=bounce_type,
        message_id=data.get("email_id") or "",
        raw_data=raw_data,
    )
