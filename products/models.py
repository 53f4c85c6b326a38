"""
Django models for the creator-store catalog.

A single Product table covers every sellable item type (digital products,
courses, bundles, coaching sessions and subscriptions). Fulfillment only
needs to know that a product exists, is published and what it is called;
catalog management and storefront browsing live elsewhere.
"""

from django.db import models
from django.utils.text import slugify
import uuid


class Product(models.Model):
    """
    A purchasable item owned by a creator store.

    Attributes:
        id (UUIDField): Primary key, also used as the productId in checkout metadata
        store_id (CharField): Identity of the owning creator store
        title (CharField): Display title, used in confirmation emails
        product_type (CharField): Purchase category tag
        price_cents (PositiveIntegerField): List price in minor currency units
        is_published (BooleanField): Only published products can be purchased
    """

    DIGITAL_PRODUCT = "digitalProduct"
    COURSE = "course"
    BUNDLE = "bundle"
    COACHING = "coaching"
    SUBSCRIPTION = "subscription"

    PRODUCT_TYPE_CHOICES = [
        (DIGITAL_PRODUCT, "Digital Product"),
        (COURSE, "Course"),
        (BUNDLE, "Bundle"),
        (COACHING, "Coaching"),
        (SUBSCRIPTION, "Subscription"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    store_id = models.CharField(max_length=100, db_index=True)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, blank=True)
    product_type = models.CharField(max_length=20, choices=PRODUCT_TYPE_CHOICES)
    price_cents = models.PositiveIntegerField(default=0, help_text="Price in cents")
    currency = models.CharField(max_length=3, default="usd")
    is_published = models.BooleanField(default=False)
    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created"]
        indexes = [
            models.Index(fields=["store_id", "product_type"], name="product_store_type_idx"),
            models.Index(fields=["is_published", "-created"], name="product_published_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.title)[:255]
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.title} ({self.get_product_type_display()})"
