from rest_framework import viewsets, filters, permissions
from django_filters.rest_framework import DjangoFilterBackend
from .models import PurchaseRecord
from .serializers import PurchaseRecordSerializer


class PurchaseRecordViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Staff-only, read-only view over purchase records for support and
    manual reconciliation.
    """
    queryset = PurchaseRecord.objects.select_related("product")
    serializer_class = PurchaseRecordSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ["status", "product_type", "buyer_id", "store_id"]
    search_fields = ["buyer_id", "transaction_id", "product__title"]
    ordering_fields = ["created_at", "amount"]
    ordering = ["-created_at"]
