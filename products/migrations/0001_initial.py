import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("store_id", models.CharField(db_index=True, max_length=100)),
                ("title", models.CharField(max_length=255)),
                ("slug", models.SlugField(blank=True, max_length=255)),
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
                ("price_cents", models.PositiveIntegerField(default=0, help_text="Price in cents")),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("is_published", models.BooleanField(default=False)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("updated", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created"],
                "indexes": [
                    models.Index(fields=["store_id", "product_type"], name="product_store_type_idx"),
                    models.Index(fields=["is_published", "-created"], name="product_published_idx"),
                ],
            },
        ),
    ]
