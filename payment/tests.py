from django.apps import apps
from django.core import mail
from django.test import TestCase, override_settings
from decimal import Decimal
from unittest.mock import patch, MagicMock
import json
import time

from creatorhub.background_utils import EmailNotifier, PurchaseConfirmation
from products.models import Product
from purchases.models import PurchaseRecord
from purchases.services import grant_access
from .fulfillment import FulfillmentHandler
from .serializers import CheckoutMetadataSerializer
from .utils import SignatureVerificationError, compute_signature, verify_stripe_signature

WEBHOOK_SECRET = "whsec_test_secret"


def checkout_event(product, **metadata):
    session_metadata = {
        "userId": "u1",
        "productId": str(product.id),
        "productType": product.product_type,
        "amount": "1499",
        "customerEmail": "ada@example.com",
        "customerName": "Ada",
        "productTitle": product.title,
    }
    session_metadata.update(metadata)
    return {
        "id": "evt_checkout",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_1",
                "payment_intent": "pi_test_1",
                "currency": "usd",
                "metadata": {k: v for k, v in session_metadata.items() if v is not None},
                "customer_details": {"email": "details@example.com", "name": "Details Name"},
            }
        },
    }


class StripeSignatureTest(TestCase):
    """Test cases for webhook signature verification."""

    def setUp(self):
        """Set up test data."""
        self.payload = b'{"id": "evt_1"}'
        self.timestamp = int(time.time())
        self.signature = compute_signature(self.payload, WEBHOOK_SECRET, self.timestamp)

    def header(self, signature=None, timestamp=None):
        return f"t={timestamp or self.timestamp},v1={signature or self.signature}"

    def test_valid_signature(self):
        """Test that a correctly signed payload verifies."""
        self.assertTrue(verify_stripe_signature(self.payload, self.header(), WEBHOOK_SECRET))

    def test_any_matching_v1_signature_accepted(self):
        """Test that rotated secrets (several v1 entries) are supported."""
        header = f"t={self.timestamp},v1=deadbeef,v1={self.signature}"
        self.assertTrue(verify_stripe_signature(self.payload, header, WEBHOOK_SECRET))

    def test_wrong_secret_rejected(self):
        """Test that a signature from another secret fails."""
        with self.assertRaises(SignatureVerificationError):
            verify_stripe_signature(self.payload, self.header(), "whsec_other")

    def test_tampered_payload_rejected(self):
        """Test that a modified body fails verification."""
        with self.assertRaises(SignatureVerificationError):
            verify_stripe_signature(b'{"id": "evt_2"}', self.header(), WEBHOOK_SECRET)

    def test_stale_timestamp_rejected(self):
        """Test that signatures outside the tolerance window fail."""
        with self.assertRaises(SignatureVerificationError):
            verify_stripe_signature(
                self.payload, self.header(), WEBHOOK_SECRET, tolerance=300, now=self.timestamp + 301
            )

    def test_missing_or_malformed_header_rejected(self):
        """Test that missing and malformed headers fail."""
        for header in [None, "", "garbage", "t=abc,v1=123", f"t={self.timestamp}"]:
            with self.subTest(header=header):
                with self.assertRaises(SignatureVerificationError):
                    verify_stripe_signature(self.payload, header, WEBHOOK_SECRET)


class CheckoutMetadataSerializerTest(TestCase):
    """Test cases for checkout metadata validation."""

    def test_course_aliases_folded(self):
        """Test that courseId/courseTitle are accepted for course checkouts."""
        serializer = CheckoutMetadataSerializer(data={
            "userId": "u1",
            "courseId": "6f1c1c8e-2b1a-4f7e-9a55-0f4f5c1d2e3a",
            "courseTitle": "Film 101",
            "productType": "course",
            "amount": "999",
        })
        self.assertTrue(serializer.is_valid(), serializer.errors)
        self.assertEqual(str(serializer.validated_data["productId"]), "6f1c1c8e-2b1a-4f7e-9a55-0f4f5c1d2e3a")
        self.assertEqual(serializer.validated_data["productTitle"], "Film 101")
        self.assertEqual(serializer.validated_data["amount"], 999)

    def test_unknown_product_type_rejected(self):
        """Test that unknown category tags fail validation."""
        serializer = CheckoutMetadataSerializer(data={
            "userId": "u1",
            "productId": "6f1c1c8e-2b1a-4f7e-9a55-0f4f5c1d2e3a",
            "productType": "ebook",
            "amount": "999",
        })
        self.assertFalse(serializer.is_valid())
        self.assertIn("productType", serializer.errors)


class FulfillmentHandlerTest(TestCase):
    """Test cases for the payment event fulfillment handler."""

    def setUp(self):
        """Set up test data."""
        self.product = Product.objects.create(
            store_id="store_1",
            title="Preset Pack",
            product_type=Product.DIGITAL_PRODUCT,
            price_cents=1499,
            is_published=True,
        )
        self.notifier = MagicMock()
        self.handler = FulfillmentHandler(notifier=self.notifier)

    def test_purchase_granted_and_confirmation_sent(self):
        """Test that u1 buying p1 creates one completed record and one 14.99 usd email."""
        result = self.handler.handle_event(checkout_event(self.product))

        self.assertEqual(result, {"received": True})
        purchase = PurchaseRecord.objects.get()
        self.assertEqual(purchase.buyer_id, "u1")
        self.assertEqual(purchase.product, self.product)
        self.assertEqual(purchase.amount, 1499)
        self.assertEqual(purchase.status, PurchaseRecord.COMPLETED)
        self.assertTrue(purchase.access_granted)
        self.assertEqual(purchase.transaction_id, "pi_test_1")

        self.notifier.send_purchase_confirmation.assert_called_once()
        confirmation = self.notifier.send_purchase_confirmation.call_args[0][0]
        self.assertEqual(confirmation.amount, Decimal("14.99"))
        self.assertEqual(confirmation.currency, "usd")
        self.assertEqual(confirmation.customer_email, "ada@example.com")
        self.assertEqual(confirmation.category, Product.DIGITAL_PRODUCT)

    def test_duplicate_delivery_is_idempotent(self):
        """Test that the same event twice yields one record and one notification."""
        event = checkout_event(self.product)
        self.handler.handle_event(event)
        result = self.handler.handle_event(event)

        self.assertEqual(result, {"received": True})
        self.assertEqual(
            PurchaseRecord.objects.filter(buyer_id="u1", status=PurchaseRecord.COMPLETED).count(), 1
        )
        self.assertEqual(self.notifier.send_purchase_confirmation.call_count, 1)

    def test_missing_metadata_is_a_no_op(self):
        """Test that missing buyer, product or amount mutates nothing."""
        for field in ["userId", "productId", "amount"]:
            with self.subTest(field=field):
                event = checkout_event(self.product, **{field: None})
                result = self.handler.handle_event(event)
                self.assertEqual(result, {"received": True})

        self.assertFalse(PurchaseRecord.objects.exists())
        self.notifier.send_purchase_confirmation.assert_not_called()

    def test_amount_conversion(self):
        """Test that 999 cents renders as 9.99 in the notification."""
        self.handler.handle_event(checkout_event(self.product, amount="999"))
        confirmation = self.notifier.send_purchase_confirmation.call_args[0][0]
        self.assertEqual(confirmation.amount, Decimal("9.99"))

    def test_unpublished_product_not_fulfilled(self):
        """Test that unpublished products are acknowledged but not granted."""
        self.product.is_published = False
        self.product.save()

        result = self.handler.handle_event(checkout_event(self.product))
        self.assertEqual(result, {"received": True})
        self.assertFalse(PurchaseRecord.objects.exists())
        self.notifier.send_purchase_confirmation.assert_not_called()

    def test_customer_details_fallback(self):
        """Test that buyer email and name fall back to the session details."""
        self.handler.handle_event(checkout_event(self.product, customerEmail=None, customerName=None))
        confirmation = self.notifier.send_purchase_confirmation.call_args[0][0]
        self.assertEqual(confirmation.customer_email, "details@example.com")
        self.assertEqual(confirmation.customer_name, "Details Name")

    def test_title_falls_back_to_product(self):
        """Test that the product title is used when metadata has none."""
        self.handler.handle_event(checkout_event(self.product, productTitle=None))
        confirmation = self.notifier.send_purchase_confirmation.call_args[0][0]
        self.assertEqual(confirmation.product_title, "Preset Pack")

    def test_notification_failure_keeps_purchase(self):
        """Test that a failed email does not undo the committed purchase."""
        self.notifier.send_purchase_confirmation.side_effect = Exception("SMTP down")

        result = self.handler.handle_event(checkout_event(self.product))
        self.assertEqual(result, {"received": True})
        self.assertTrue(PurchaseRecord.objects.filter(status=PurchaseRecord.COMPLETED).exists())

    @patch("payment.fulfillment.grant_access")
    def test_unexpected_error_acknowledged(self, mock_grant):
        """Test that infrastructure faults are logged and still acknowledged."""
        mock_grant.side_effect = RuntimeError("database unavailable")
        result = self.handler.handle_event(checkout_event(self.product))
        self.assertEqual(result, {"received": True})
        self.notifier.send_purchase_confirmation.assert_not_called()

    def test_unhandled_event_type_acknowledged(self):
        """Test that other event types are ignored."""
        result = self.handler.handle_event({"type": "customer.created", "data": {"object": {}}})
        self.assertEqual(result, {"received": True})

    def test_charge_refunded_revokes_access(self):
        """Test that a refund event refunds the matching purchase."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_refund")
        result = self.handler.handle_event({
            "type": "charge.refunded",
            "data": {"object": {
                "id": "ch_1", "payment_intent": "pi_refund", "amount": 1499, "amount_refunded": 1499, "refunded": True,
            }},
        })
        self.assertEqual(result, {"received": True})
        purchase = PurchaseRecord.objects.get(transaction_id="pi_refund")
        self.assertEqual(purchase.status, PurchaseRecord.REFUNDED)
        self.assertFalse(purchase.access_granted)

    def test_partial_refund_keeps_access(self):
        """Test that a partial refund leaves the purchase completed."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_partial")
        result = self.handler.handle_event({
            "type": "charge.refunded",
            "data": {"object": {
                "id": "ch_3", "payment_intent": "pi_partial", "amount": 1499, "amount_refunded": 100, "refunded": False,
            }},
        })
        self.assertEqual(result, {"received": True})
        purchase = PurchaseRecord.objects.get(transaction_id="pi_partial")
        self.assertEqual(purchase.status, PurchaseRecord.COMPLETED)
        self.assertTrue(purchase.access_granted)

    def test_refund_without_refunded_flag_uses_amounts(self):
        """Test that a refund covering the whole amount revokes access without the flag."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_amounts")
        self.handler.handle_event({
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_4", "payment_intent": "pi_amounts", "amount": 1499, "amount_refunded": 1499}},
        })
        purchase = PurchaseRecord.objects.get(transaction_id="pi_amounts")
        self.assertEqual(purchase.status, PurchaseRecord.REFUNDED)

    def test_refund_for_unknown_charge_acknowledged(self):
        """Test that refunds with no matching purchase are acknowledged."""
        result = self.handler.handle_event({
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_2", "payment_intent": "pi_missing", "refunded": True}},
        })
        self.assertEqual(result, {"received": True})

    def test_payment_failed_notifies_buyer(self):
        """Test that failed payments email the buyer the decline reason."""
        self.handler.handle_event({
            "type": "payment_intent.payment_failed",
            "data": {"object": {
                "id": "pi_failed",
                "amount": 1499,
                "currency": "usd",
                "metadata": {"customerEmail": "ada@example.com", "productTitle": "Preset Pack"},
                "last_payment_error": {"message": "Your card was declined."},
            }},
        })
        self.notifier.send_payment_failed.assert_called_once()
        kwargs = self.notifier.send_payment_failed.call_args.kwargs
        self.assertEqual(kwargs["customer_email"], "ada@example.com")
        self.assertEqual(kwargs["amount"], Decimal("14.99"))
        self.assertEqual(kwargs["failure_reason"], "Your card was declined.")

    def test_payment_failed_without_email(self):
        """Test that failed payments without a buyer email send nothing."""
        self.handler.handle_event({
            "type": "payment_intent.payment_failed",
            "data": {"object": {"id": "pi_failed", "metadata": {}}},
        })
        self.notifier.send_payment_failed.assert_not_called()


@override_settings(STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE=300)
class StripeWebhookViewTest(TestCase):
    """Test cases for the Stripe webhook endpoint."""

    url = "/webhooks/stripe/"

    def setUp(self):
        """Set up test data."""
        self.product = Product.objects.create(
            store_id="store_1",
            title="Preset Pack",
            product_type=Product.DIGITAL_PRODUCT,
            price_cents=1499,
            is_published=True,
        )
        self.notifier = MagicMock()
        patcher = patch.object(
            apps.get_app_config("payment"),
            "fulfillment_handler",
            FulfillmentHandler(notifier=self.notifier),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def post_signed(self, body, secret=WEBHOOK_SECRET):
        payload = body if isinstance(body, str) else json.dumps(body)
        timestamp = int(time.time())
        signature = compute_signature(payload, secret, timestamp)
        return self.client.post(
            self.url,
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=f"t={timestamp},v1={signature}",
        )

    def test_signed_checkout_fulfilled(self):
        """Test that a signed checkout event grants access."""
        response = self.post_signed(checkout_event(self.product))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"received": True})
        self.assertEqual(PurchaseRecord.objects.count(), 1)

    def test_business_rejection_still_200(self):
        """Test that duplicate purchases are acknowledged with 200."""
        self.post_signed(checkout_event(self.product))
        response = self.post_signed(checkout_event(self.product))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"received": True})
        self.assertEqual(PurchaseRecord.objects.count(), 1)

    def test_bad_signature_rejected(self):
        """Test that events signed with another secret get 400."""
        response = self.post_signed(checkout_event(self.product), secret="whsec_wrong")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid signature"})
        self.assertFalse(PurchaseRecord.objects.exists())

    def test_missing_signature_rejected(self):
        """Test that unsigned requests get 400."""
        response = self.client.post(self.url, data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_invalid_json_rejected(self):
        """Test that a signed but unparseable body gets 400."""
        response = self.post_signed("not json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid payload"})

    def test_get_not_allowed(self):
        """Test that only POST is accepted."""
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 405)


class EmailNotifierTest(TestCase):
    """Test cases for buyer notification emails."""

    def setUp(self):
        """Set up test data."""
        self.notifier = EmailNotifier(from_email="store@example.com", support_email="help@example.com")

    def confirmation(self, **kwargs):
        defaults = {
            "category": Product.DIGITAL_PRODUCT,
            "customer_email": "ada@example.com",
            "customer_name": "Ada",
            "product_title": "Preset Pack",
            "amount": Decimal("14.99"),
            "currency": "usd",
        }
        defaults.update(kwargs)
        return PurchaseConfirmation(**defaults)

    def test_confirmation_email_sent(self):
        """Test that the confirmation email carries the amount and title."""
        self.assertTrue(self.notifier.send_purchase_confirmation(self.confirmation()))

        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.subject, "Your download is ready: Preset Pack")
        self.assertEqual(email.to, ["ada@example.com"])
        self.assertEqual(email.from_email, "store@example.com")
        self.assertIn("14.99 USD", email.body)
        self.assertIn("help@example.com", email.body)

    def test_template_per_category(self):
        """Test that each category gets its own subject line."""
        self.notifier.send_purchase_confirmation(self.confirmation(category="course", product_title="Film 101"))
        self.assertEqual(mail.outbox[0].subject, "You're enrolled: Film 101")

    def test_confirmation_without_email_skipped(self):
        """Test that no email is sent without a buyer address."""
        self.assertFalse(self.notifier.send_purchase_confirmation(self.confirmation(customer_email="")))
        self.assertEqual(len(mail.outbox), 0)

    def test_payment_failed_email(self):
        """Test the payment failure email."""
        self.notifier.send_payment_failed(
            customer_email="ada@example.com",
            customer_name="Ada",
            product_name="Preset Pack",
            amount=Decimal("9.99"),
            currency="usd",
            failure_reason="Your card was declined.",
        )
        self.assertEqual(mail.outbox[0].subject, "Payment failed for Preset Pack")
        self.assertIn("Your card was declined.", mail.outbox[0].body)
