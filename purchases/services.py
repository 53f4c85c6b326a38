# purchases/services.py
"""
Library access operations: granting, checking, consuming and refunding
purchases. Callers receive PurchaseError subclasses for expected business
conditions; anything else is a system fault.
"""
from django.db import IntegrityError, transaction
from django.utils import timezone
import logging

from products.models import Product
from .exceptions import AlreadyHasAccess, ProductNotFound, PurchaseNotFound
from .models import PurchaseRecord

logger = logging.getLogger(__name__)


def get_completed_purchase(buyer_id, product_id):
    return (
        PurchaseRecord.objects.filter(
            buyer_id=buyer_id,
            product_id=product_id,
            status=PurchaseRecord.COMPLETED,
        )
        .select_related("product")
        .first()
    )


def grant_access(
    buyer_id,
    product_id,
    product_type,
    amount,
    currency="usd",
    transaction_id="",
    payment_method="stripe",
):
    """
    Record a completed purchase and grant the buyer access.

    Raises:
        ProductNotFound: product missing, unpublished or of another type
        AlreadyHasAccess: buyer already holds a completed purchase for it
    """
    product = Product.objects.filter(
        pk=product_id, product_type=product_type, is_published=True
    ).first()
    if product is None:
        raise ProductNotFound(product_id)

    # Fast path; the partial unique constraint is the real guard
    if get_completed_purchase(buyer_id, product.pk):
        raise AlreadyHasAccess(buyer_id, product.pk)

    try:
        with transaction.atomic():
            purchase = PurchaseRecord.objects.create(
                buyer_id=buyer_id,
                product=product,
                product_type=product_type,
                store_id=product.store_id,
                amount=amount,
                currency=currency,
                payment_method=payment_method,
                transaction_id=transaction_id or "",
                status=PurchaseRecord.COMPLETED,
                access_granted=True,
                download_count=0,
                last_accessed_at=timezone.now(),
            )
    except IntegrityError:
        logger.info(f"Concurrent duplicate purchase blocked for {buyer_id} / {product.pk}")
        raise AlreadyHasAccess(buyer_id, product.pk)

    logger.info(f"Purchase {purchase.id} created: {buyer_id} now has access to {product.pk}")
    return purchase


def verify_product_access(buyer_id, product_id):
    purchase = get_completed_purchase(buyer_id, product_id)
    if purchase is None:
        return {"has_access": False}

    return {
        "has_access": True,
        "purchase_date": purchase.created_at,
        "download_count": purchase.download_count,
    }


def track_download(buyer_id, product_id):
    """Count a download against the buyer's completed purchase, if any"""
    purchase = get_completed_purchase(buyer_id, product_id)
    if purchase is None:
        logger.warning(f"Download tracked without a completed purchase: {buyer_id} / {product_id}")
        return None

    purchase.download_count += 1
    purchase.last_accessed_at = timezone.now()
    purchase.save(update_fields=["download_count", "last_accessed_at"])
    return purchase


def refund_purchase(transaction_id):
    """
    Transition the completed purchase paid by ``transaction_id`` to refunded.

    Raises:
        PurchaseNotFound: no purchase carries that transaction id
        InvalidStatusTransition: the purchase is not in a refundable state
    """
    if not transaction_id:
        raise PurchaseNotFound("Missing transaction id")

    with transaction.atomic():
        purchase = (
            PurchaseRecord.objects.select_for_update()
            .filter(transaction_id=transaction_id)
            .order_by("-created_at")
            .first()
        )
        if purchase is None:
            raise PurchaseNotFound(f"No purchase for transaction {transaction_id}")

        purchase.transition_to(PurchaseRecord.REFUNDED)

    logger.info(f"Purchase {purchase.id} refunded (transaction {transaction_id})")
    return purchase
