from collections.abc import Mapping
from rest_framework import serializers
from products.models import Product


class CheckoutMetadataSerializer(serializers.Serializer):
    """
    Validates the metadata bag attached to a checkout session.

    Stripe metadata values are always strings; amounts arrive as cents
    ("1499"). Course and bundle checkouts name their id/title fields
    differently, so those aliases are folded into productId/productTitle.
    """

    ALIASES = {
        "productId": ("courseId", "bundleId"),
        "productTitle": ("courseTitle", "bundleTitle"),
    }

    userId = serializers.CharField(max_length=100)
    productId = serializers.UUIDField()
    productType = serializers.ChoiceField(choices=Product.PRODUCT_TYPE_CHOICES)
    amount = serializers.IntegerField(min_value=0)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    customerEmail = serializers.EmailField(required=False, allow_blank=True)
    customerName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    productTitle = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            data = dict(data)
            for field, aliases in self.ALIASES.items():
                if data.get(field):
                    continue
                for alias in aliases:
                    if data.get(alias):
                        data[field] = data[alias]
                        break
        return super().to_internal_value(data)
