from django.contrib import admin, messages
from .exceptions import PurchaseError
from .models import PurchaseRecord
from .services import refund_purchase


@admin.register(PurchaseRecord)
class PurchaseRecordAdmin(admin.ModelAdmin):
    """Admin interface for purchase records (never deleted, only refunded)"""
    list_display = [
        "id",
        "buyer_id",
        "product",
        "product_type",
        "amount",
        "currency",
        "status",
        "access_granted",
        "download_count",
        "created_at",
    ]
    list_filter = ["status", "product_type", "access_granted", "created_at"]
    search_fields = ["id", "buyer_id", "transaction_id", "product__title"]
    readonly_fields = [
        "id",
        "buyer_id",
        "product",
        "product_type",
        "store_id",
        "amount",
        "currency",
        "payment_method",
        "transaction_id",
        "status",
        "access_granted",
        "download_count",
        "created_at",
        "last_accessed_at",
        "refunded_at",
    ]
    actions = ["mark_refunded"]

    fieldsets = (
        ("Purchase", {
            "fields": ("id", "buyer_id", "product", "product_type", "store_id", "status", "access_granted")
        }),
        ("Payment", {
            "fields": ("amount", "currency", "payment_method", "transaction_id")
        }),
        ("Usage", {
            "fields": ("download_count", "last_accessed_at")
        }),
        ("Timestamps", {
            "fields": ("created_at", "refunded_at"),
            "classes": ("collapse",)
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Mark selected purchases as refunded")
    def mark_refunded(self, request, queryset):
        refunded = 0
        for purchase in queryset:
            try:
                refund_purchase(purchase.transaction_id)
                refunded += 1
            except PurchaseError as e:
                self.message_user(request, f"{purchase.id}: {e}", level=messages.WARNING)
        self.message_user(request, f"{refunded} purchase(s) refunded.")

    def get_queryset(self, request):
        """Optimize queryset"""
        return super().get_queryset(request).select_related("product")
