from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for creator-store products"""
    list_display = [
        "title",
        "store_id",
        "product_type",
        "price_cents",
        "currency",
        "is_published",
        "created",
    ]
    list_filter = ["product_type", "is_published", "currency"]
    search_fields = ["id", "title", "slug", "store_id"]
    readonly_fields = ["id", "created", "updated"]
    prepopulated_fields = {"slug": ("title",)}
