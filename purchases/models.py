import uuid
from django.db import models
from django.db.models import Q
from django.utils import timezone

from products.models import Product
from .exceptions import InvalidStatusTransition


class PurchaseRecord(models.Model):
    """A buyer's completed (or refunded) transaction for one product"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
        (REFUNDED, "Refunded"),
    ]

    # pending -> completed on payment, completed -> refunded on a refund event
    ALLOWED_TRANSITIONS = {
        PENDING: {COMPLETED},
        COMPLETED: {REFUNDED},
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    buyer_id = models.CharField(max_length=100, help_text="Identity provider user id")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="purchases")
    product_type = models.CharField(max_length=20, choices=Product.PRODUCT_TYPE_CHOICES)
    store_id = models.CharField(max_length=100, blank=True, default="")

    # Money is stored in minor units (cents)
    amount = models.PositiveIntegerField(help_text="Amount paid in cents")
    currency = models.CharField(max_length=3, default="usd")
    payment_method = models.CharField(max_length=30, default="stripe")
    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Payment provider transaction (payment intent) id",
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    access_granted = models.BooleanField(default=False)
    download_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["buyer_id", "product"], name="purchase_buyer_product_idx"),
            models.Index(fields=["status"], name="purchase_status_idx"),
            models.Index(fields=["transaction_id"], name="purchase_transaction_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["buyer_id", "product"],
                condition=Q(status="completed"),
                name="unique_completed_purchase",
            ),
        ]

    def __str__(self):
        return f"Purchase {self.id} - {self.buyer_id} / {self.product_id} ({self.status})"

    def can_transition_to(self, status):
        return status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def transition_to(self, status):
        """Move to a new status, enforcing the purchase state machine."""
        if not self.can_transition_to(status):
            raise InvalidStatusTransition(self.status, status)

        self.status = status
        update_fields = ["status"]
        if status == self.COMPLETED:
            self.access_granted = True
            update_fields.append("access_granted")
        elif status == self.REFUNDED:
            self.access_granted = False
            self.refunded_at = timezone.now()
            update_fields += ["access_granted", "refunded_at"]
        self.save(update_fields=update_fields)
