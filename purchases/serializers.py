from rest_framework import serializers
from products.serializers import ProductSummarySerializer
from .models import PurchaseRecord
from .utils import cents_to_decimal


class PurchaseRecordSerializer(serializers.ModelSerializer):
    product = ProductSummarySerializer(read_only=True)
    amount_display = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseRecord
        fields = [
            "id", "buyer_id", "product", "product_type", "store_id",
            "amount", "amount_display", "currency", "payment_method", "transaction_id",
            "status", "access_granted", "download_count",
            "created_at", "last_accessed_at", "refunded_at",
        ]
        read_only_fields = fields

    def get_amount_display(self, obj):
        return str(cents_to_decimal(obj.amount))
