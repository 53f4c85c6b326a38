from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase
from decimal import Decimal
from unittest.mock import patch

from products.models import Product
from .exceptions import AlreadyHasAccess, InvalidStatusTransition, ProductNotFound, PurchaseNotFound
from .models import PurchaseRecord
from .services import grant_access, refund_purchase, track_download, verify_product_access
from .utils import cents_to_decimal

User = get_user_model()


def make_product(**kwargs):
    defaults = {
        "store_id": "store_1",
        "title": "Preset Pack",
        "product_type": Product.DIGITAL_PRODUCT,
        "price_cents": 1499,
        "is_published": True,
    }
    defaults.update(kwargs)
    return Product.objects.create(**defaults)


class PurchaseRecordModelTest(TestCase):
    """Test cases for the PurchaseRecord model and its state machine."""

    def setUp(self):
        """Set up test data."""
        self.product = make_product()

    def make_record(self, **kwargs):
        defaults = {
            "buyer_id": "u1",
            "product": self.product,
            "product_type": Product.DIGITAL_PRODUCT,
            "amount": 1499,
        }
        defaults.update(kwargs)
        return PurchaseRecord.objects.create(**defaults)

    def test_default_status_is_pending(self):
        """Test that a new record starts pending without access."""
        record = self.make_record()
        self.assertEqual(record.status, PurchaseRecord.PENDING)
        self.assertFalse(record.access_granted)
        self.assertEqual(record.download_count, 0)

    def test_pending_to_completed_grants_access(self):
        """Test completing a pending purchase grants access."""
        record = self.make_record()
        record.transition_to(PurchaseRecord.COMPLETED)
        record.refresh_from_db()
        self.assertEqual(record.status, PurchaseRecord.COMPLETED)
        self.assertTrue(record.access_granted)

    def test_completed_to_refunded_revokes_access(self):
        """Test refunding a completed purchase revokes access."""
        record = self.make_record(status=PurchaseRecord.COMPLETED, access_granted=True)
        record.transition_to(PurchaseRecord.REFUNDED)
        record.refresh_from_db()
        self.assertEqual(record.status, PurchaseRecord.REFUNDED)
        self.assertFalse(record.access_granted)
        self.assertIsNotNone(record.refunded_at)

    def test_illegal_transitions_rejected(self):
        """Test that transitions outside the state machine raise."""
        pending = self.make_record(buyer_id="u2")
        with self.assertRaises(InvalidStatusTransition):
            pending.transition_to(PurchaseRecord.REFUNDED)

        refunded = self.make_record(buyer_id="u3", status=PurchaseRecord.REFUNDED)
        with self.assertRaises(InvalidStatusTransition):
            refunded.transition_to(PurchaseRecord.COMPLETED)

        failed = self.make_record(buyer_id="u4", status=PurchaseRecord.FAILED)
        self.assertFalse(failed.can_transition_to(PurchaseRecord.COMPLETED))

    def test_one_completed_purchase_per_buyer_and_product(self):
        """Test the storage layer rejects a second completed record."""
        self.make_record(status=PurchaseRecord.COMPLETED, access_granted=True)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                self.make_record(status=PurchaseRecord.COMPLETED, access_granted=True)

    def test_refunded_purchase_does_not_block_repurchase(self):
        """Test a refunded record does not count against the uniqueness rule."""
        self.make_record(status=PurchaseRecord.REFUNDED)
        record = self.make_record(status=PurchaseRecord.COMPLETED, access_granted=True)
        self.assertEqual(record.status, PurchaseRecord.COMPLETED)


class GrantAccessTest(TestCase):
    """Test cases for granting access through the purchase service."""

    def setUp(self):
        """Set up test data."""
        self.product = make_product()

    def test_grant_access_creates_completed_record(self):
        """Test that a completed record with access is created."""
        purchase = grant_access(
            buyer_id="u1",
            product_id=self.product.id,
            product_type=Product.DIGITAL_PRODUCT,
            amount=1499,
            transaction_id="pi_123",
        )
        self.assertEqual(purchase.status, PurchaseRecord.COMPLETED)
        self.assertTrue(purchase.access_granted)
        self.assertEqual(purchase.amount, 1499)
        self.assertEqual(purchase.currency, "usd")
        self.assertEqual(purchase.store_id, "store_1")
        self.assertEqual(purchase.download_count, 0)
        self.assertIsNotNone(purchase.last_accessed_at)

    def test_second_grant_raises_already_has_access(self):
        """Test that a buyer cannot be granted the same product twice."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)
        with self.assertRaises(AlreadyHasAccess) as ctx:
            grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)

        self.assertEqual(str(ctx.exception), "You already have access to this product")
        self.assertEqual(PurchaseRecord.objects.count(), 1)

    def test_constraint_blocks_duplicate_past_fast_path(self):
        """Test that the unique constraint turns a missed duplicate into AlreadyHasAccess."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)

        # Both requests passed the lookup before either committed
        with patch("purchases.services.get_completed_purchase", return_value=None):
            with self.assertRaises(AlreadyHasAccess):
                grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)

        self.assertEqual(PurchaseRecord.objects.count(), 1)

    def test_other_buyer_can_purchase(self):
        """Test that uniqueness is per buyer."""
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)
        grant_access("u2", self.product.id, Product.DIGITAL_PRODUCT, 1499)
        self.assertEqual(PurchaseRecord.objects.filter(status=PurchaseRecord.COMPLETED).count(), 2)

    def test_unpublished_product_not_found(self):
        """Test that unpublished products cannot be purchased."""
        draft = make_product(title="Draft", is_published=False)
        with self.assertRaises(ProductNotFound):
            grant_access("u1", draft.id, Product.DIGITAL_PRODUCT, 1499)
        self.assertFalse(PurchaseRecord.objects.exists())

    def test_wrong_product_type_not_found(self):
        """Test that the category tag must match the product."""
        with self.assertRaises(ProductNotFound):
            grant_access("u1", self.product.id, Product.COURSE, 1499)


class AccessAndDownloadTest(TestCase):
    """Test cases for access checks and download tracking."""

    def setUp(self):
        """Set up test data."""
        self.product = make_product()
        self.purchase = grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499)

    def test_verify_access_for_buyer(self):
        """Test that the buyer has access with purchase details."""
        result = verify_product_access("u1", self.product.id)
        self.assertTrue(result["has_access"])
        self.assertEqual(result["purchase_date"], self.purchase.created_at)
        self.assertEqual(result["download_count"], 0)

    def test_verify_access_for_stranger(self):
        """Test that a buyer without a purchase has no access."""
        self.assertEqual(verify_product_access("u2", self.product.id), {"has_access": False})

    def test_track_download_increments_count(self):
        """Test that each download is counted."""
        track_download("u1", self.product.id)
        purchase = track_download("u1", self.product.id)
        self.assertEqual(purchase.download_count, 2)
        self.purchase.refresh_from_db()
        self.assertEqual(self.purchase.download_count, 2)

    def test_track_download_without_purchase(self):
        """Test that downloads without a purchase are ignored."""
        self.assertIsNone(track_download("u2", self.product.id))

    def test_refunded_purchase_loses_access(self):
        """Test that access checks ignore refunded purchases."""
        PurchaseRecord.objects.filter(pk=self.purchase.pk).update(transaction_id="pi_1")
        refund_purchase("pi_1")
        self.assertFalse(verify_product_access("u1", self.product.id)["has_access"])


class RefundPurchaseTest(TestCase):
    """Test cases for refunds by payment transaction id."""

    def setUp(self):
        """Set up test data."""
        self.product = make_product()
        self.purchase = grant_access(
            "u1", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_refund"
        )

    def test_refund_by_transaction_id(self):
        """Test that the matching purchase is refunded."""
        refunded = refund_purchase("pi_refund")
        self.assertEqual(refunded.pk, self.purchase.pk)
        self.assertEqual(refunded.status, PurchaseRecord.REFUNDED)
        self.assertFalse(refunded.access_granted)

    def test_refund_twice_rejected(self):
        """Test that a refunded purchase cannot be refunded again."""
        refund_purchase("pi_refund")
        with self.assertRaises(InvalidStatusTransition):
            refund_purchase("pi_refund")

    def test_unknown_transaction(self):
        """Test that unknown or missing transaction ids raise."""
        with self.assertRaises(PurchaseNotFound):
            refund_purchase("pi_unknown")
        with self.assertRaises(PurchaseNotFound):
            refund_purchase("")


class MoneyUtilsTest(TestCase):
    """Test cases for cents arithmetic."""

    def test_cents_to_decimal(self):
        """Test conversion of cents to a currency amount."""
        self.assertEqual(cents_to_decimal(1499), Decimal("14.99"))
        self.assertEqual(cents_to_decimal(0), Decimal("0.00"))
        self.assertEqual(cents_to_decimal("2500"), Decimal("25.00"))


class PurchaseRecordAPITest(APITestCase):
    """Test cases for the staff purchase listing."""

    def setUp(self):
        """Set up test data."""
        self.product = make_product()
        grant_access("u1", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_1")
        grant_access("u2", self.product.id, Product.DIGITAL_PRODUCT, 1499, transaction_id="pi_2")
        self.staff = User.objects.create_user(
            username="staff", email="staff@example.com", password="testpass123", is_staff=True
        )
        self.user = User.objects.create_user(
            username="buyer", email="buyer@example.com", password="testpass123"
        )

    def test_staff_can_list_purchases(self):
        """Test that staff see purchases with display amounts."""
        self.client.force_authenticate(user=self.staff)
        response = self.client.get("/purchases/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(response.data["results"][0]["amount_display"], "14.99")

    def test_filter_by_buyer(self):
        """Test filtering purchases by buyer id."""
        self.client.force_authenticate(user=self.staff)
        response = self.client.get("/purchases/", {"buyer_id": "u2"})
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["transaction_id"], "pi_2")

    def test_non_staff_forbidden(self):
        """Test that regular users cannot list purchases."""
        self.client.force_authenticate(user=self.user)
        response = self.client.get("/purchases/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
