import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PurchaseRecord",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("buyer_id", models.CharField(help_text="Identity provider user id", max_length=100)),
                (
                    "product_type",
                    models.CharField(
                        choices=[
                            ("digitalProduct", "Digital Product"),
                            ("course", "Course"),
                            ("bundle", "Bundle"),
                            ("coaching", "Coaching"),
                            ("subscription", "Subscription"),
                        ],
                        max_length=20,
                    ),
                ),
                ("store_id", models.CharField(blank=True, default="", max_length=100)),
                ("amount", models.PositiveIntegerField(help_text="Amount paid in cents")),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("payment_method", models.CharField(default="stripe", max_length=30)),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment provider transaction (payment intent) id",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("access_granted", models.BooleanField(default=False)),
                ("download_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_accessed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["buyer_id", "product"], name="purchase_buyer_product_idx"),
                    models.Index(fields=["status"], name="purchase_status_idx"),
                    models.Index(fields=["transaction_id"], name="purchase_transaction_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "completed")),
                        fields=("buyer_id", "product"),
                        name="unique_completed_purchase",
                    ),
                ],
            },
        ),
    ]
