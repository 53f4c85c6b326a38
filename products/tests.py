from django.test import TestCase

from .models import Product
from .serializers import ProductSummarySerializer


class ProductModelTest(TestCase):
    """Test cases for the Product model."""

    def setUp(self):
        """Set up test data."""
        self.product = Product.objects.create(
            store_id="store_1",
            title="Lightroom Preset Pack",
            product_type=Product.DIGITAL_PRODUCT,
            price_cents=1499,
            is_published=True,
        )

    def test_slug_generated_from_title(self):
        """Test that a slug is generated when none is given."""
        self.assertEqual(self.product.slug, "lightroom-preset-pack")

    def test_explicit_slug_kept(self):
        """Test that an explicit slug is not overwritten."""
        product = Product.objects.create(
            store_id="store_1",
            title="Intro to Film",
            slug="film-101",
            product_type=Product.COURSE,
        )
        self.assertEqual(product.slug, "film-101")

    def test_defaults(self):
        """Test that new products are unpublished and priced in usd."""
        product = Product.objects.create(
            store_id="store_2",
            title="Coaching Call",
            product_type=Product.COACHING,
        )
        self.assertFalse(product.is_published)
        self.assertEqual(product.currency, "usd")
        self.assertEqual(product.price_cents, 0)

    def test_string_representation(self):
        """Test the string representation of a product."""
        self.assertEqual(str(self.product), "Lightroom Preset Pack (Digital Product)")

    def test_summary_serializer(self):
        """Test the summary serializer exposes identity fields only."""
        data = ProductSummarySerializer(self.product).data
        self.assertEqual(data["id"], str(self.product.id))
        self.assertEqual(data["product_type"], "digitalProduct")
        self.assertNotIn("price_cents", data)
