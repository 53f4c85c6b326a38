# creatorhub/background_utils.py
"""
Centralized background email utilities.

Notification mail is fire-and-forget: it is handed to a daemon thread (or
sent inline when EMAIL_SEND_ASYNC is off) and never blocks or rolls back
the operation that triggered it.
"""
from dataclasses import dataclass
from decimal import Decimal
from threading import Thread
from django.core.mail import EmailMessage
from django.conf import settings
from django.template.loader import render_to_string
import logging

logger = logging.getLogger(__name__)


# ============================================================================
# EMAIL UTILITIES (Using Threading for Quick Async)
# ============================================================================

def send_email_async(subject, message, from_email, recipient_list, attachments=None, html_message=None):
    """
    Send email asynchronously using threading.
    Use for quick email sends (confirmations, notifications).

    Args:
        subject: Email subject
        message: Plain text message
        from_email: Sender email
        recipient_list: List of recipient emails
        attachments: Optional list of (filename, content, mimetype) tuples
        html_message: Optional HTML version of message
    """
    def _send():
        try:
            if html_message:
                email = EmailMessage(subject, html_message, from_email, recipient_list)
                email.content_subtype = "html"
            else:
                email = EmailMessage(subject, message, from_email, recipient_list)

            if attachments:
                for filename, content, mimetype in attachments:
                    email.attach(filename, content, mimetype)

            email.send()
            logger.info(f"Email sent successfully: {subject} to {recipient_list}")
        except Exception as e:
            logger.error(f"Error sending email '{subject}' to {recipient_list}: {str(e)}", exc_info=True)

    if not getattr(settings, "EMAIL_SEND_ASYNC", True):
        _send()
        return

    thread = Thread(target=_send)
    thread.daemon = True
    thread.start()
    logger.info(f"Email queued for async sending: {subject}")


# ============================================================================
# PURCHASE NOTIFICATIONS
# ============================================================================

@dataclass(frozen=True)
class PurchaseConfirmation:
    """Payload for a purchase confirmation email; amount is in currency units"""
    category: str
    customer_email: str
    customer_name: str
    product_title: str
    amount: Decimal
    currency: str


CONFIRMATION_TEMPLATES = {
    "digitalProduct": ("purchases/emails/digital_product.html", "Your download is ready: {title}"),
    "course": ("purchases/emails/course.html", "You're enrolled: {title}"),
    "bundle": ("purchases/emails/bundle.html", "Your bundle is ready: {title}"),
    "coaching": ("purchases/emails/coaching.html", "Coaching session confirmed: {title}"),
    "subscription": ("purchases/emails/subscription.html", "Subscription confirmed: {title}"),
}


class EmailNotifier:
    """
    Notification client passed into handlers that need to email buyers.

    Built once by the process bootstrap (PaymentConfig.ready) and injected,
    so tests can swap in a double.
    """

    def __init__(self, from_email=None, support_email=None, send=send_email_async):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.support_email = support_email or getattr(settings, "SUPPORT_EMAIL", "")
        self._send = send

    def send_purchase_confirmation(self, confirmation):
        if not confirmation.customer_email:
            logger.warning(f"No buyer email for {confirmation.category} confirmation; skipping")
            return False

        template, subject = CONFIRMATION_TEMPLATES[confirmation.category]
        context = {
            "customer_name": confirmation.customer_name,
            "product_title": confirmation.product_title,
            "amount": f"{confirmation.amount:.2f}",
            "currency": confirmation.currency.upper(),
            "support_email": self.support_email,
        }
        html_message = render_to_string(template, context)

        self._send(
            subject=subject.format(title=confirmation.product_title),
            message=(
                f"Thank you for your purchase of {confirmation.product_title} "
                f"({context['amount']} {context['currency']})."
            ),
            html_message=html_message,
            from_email=self.from_email,
            recipient_list=[confirmation.customer_email],
        )
        return True

    def send_payment_failed(self, customer_email, customer_name, product_name, amount, currency, failure_reason):
        context = {
            "customer_name": customer_name,
            "product_name": product_name,
            "amount": f"{amount:.2f}",
            "currency": currency.upper(),
            "failure_reason": failure_reason,
            "support_email": self.support_email,
        }
        html_message = render_to_string("purchases/emails/payment_failed.html", context)

        self._send(
            subject=f"Payment failed for {product_name}",
            message=f"Your payment for {product_name} could not be completed: {failure_reason}",
            html_message=html_message,
            from_email=self.from_email,
            recipient_list=[customer_email],
        )
        return True
