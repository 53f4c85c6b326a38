# payment/fulfillment.py
"""
Turns verified payment events into library access and buyer notifications.

Every handler returns the acknowledgment ``{"received": True}``: business
rejections and internal failures are logged (ERROR logs reach the admin
error sink), never surfaced to the event source, so a structurally valid
event is not redelivered forever.
"""
import logging

from creatorhub.background_utils import PurchaseConfirmation
from purchases.exceptions import PurchaseError
from purchases.services import grant_access, refund_purchase
from purchases.utils import cents_to_decimal
from .serializers import CheckoutMetadataSerializer

logger = logging.getLogger(__name__)

ACKNOWLEDGED = {"received": True}


class FulfillmentHandler:
    def __init__(self, notifier):
        self.notifier = notifier
        self.event_handlers = {
            "checkout.session.completed": self.handle_checkout_completed,
            "charge.refunded": self.handle_charge_refunded,
            "payment_intent.payment_failed": self.handle_payment_failed,
        }

    def handle_event(self, event):
        event_type = event.get("type")
        handler = self.event_handlers.get(event_type)
        if handler is None:
            logger.debug(f"Ignoring unhandled event type {event_type}")
            return dict(ACKNOWLEDGED)

        obj = (event.get("data") or {}).get("object") or {}
        try:
            return handler(obj)
        except Exception as e:
            logger.error(f"Webhook handler error for {event.get('id')} ({event_type}): {str(e)}", exc_info=True)
            return dict(ACKNOWLEDGED)

    def handle_checkout_completed(self, session):
        """Grant access for a completed checkout and send the confirmation"""
        session_id = session.get("id")
        serializer = CheckoutMetadataSerializer(data=session.get("metadata") or {})
        if not serializer.is_valid():
            logger.warning(f"Checkout {session_id} skipped, invalid metadata: {serializer.errors}")
            return dict(ACKNOWLEDGED)

        metadata = serializer.validated_data
        currency = metadata.get("currency") or session.get("currency") or "usd"
        transaction_id = (
            session.get("payment_intent") or session.get("subscription") or session_id or ""
        )

        logger.info(
            f"Processing {metadata['productType']} purchase: user={metadata['userId']} "
            f"product={metadata['productId']} amount={cents_to_decimal(metadata['amount'])} {currency}"
        )

        try:
            purchase = grant_access(
                buyer_id=metadata["userId"],
                product_id=metadata["productId"],
                product_type=metadata["productType"],
                amount=metadata["amount"],
                currency=currency,
                transaction_id=transaction_id,
            )
        except PurchaseError as e:
            logger.warning(f"Checkout {session_id} not fulfilled: {str(e)}")
            return dict(ACKNOWLEDGED)
        except Exception as e:
            logger.error(f"Failed to create purchase for checkout {session_id}: {str(e)}", exc_info=True)
            return dict(ACKNOWLEDGED)

        customer = session.get("customer_details") or {}
        confirmation = PurchaseConfirmation(
            category=metadata["productType"],
            customer_email=metadata.get("customerEmail") or customer.get("email") or "",
            customer_name=metadata.get("customerName") or customer.get("name") or "Customer",
            product_title=metadata.get("productTitle") or purchase.product.title,
            amount=cents_to_decimal(purchase.amount),
            currency=currency,
        )
        try:
            self.notifier.send_purchase_confirmation(confirmation)
        except Exception as e:
            # The purchase is already committed; a failed email must not undo it
            logger.error(f"Failed to send confirmation for purchase {purchase.id}: {str(e)}", exc_info=True)

        return dict(ACKNOWLEDGED)

    def handle_charge_refunded(self, charge):
        amount = charge.get("amount") or 0
        amount_refunded = charge.get("amount_refunded") or 0
        fully_refunded = charge.get("refunded") or (amount > 0 and amount_refunded >= amount)
        if not fully_refunded:
            logger.info(
                f"Partial refund on charge {charge.get('id')} ({amount_refunded} of {amount}); access kept"
            )
            return dict(ACKNOWLEDGED)

        transaction_id = charge.get("payment_intent")
        try:
            refund_purchase(transaction_id)
        except PurchaseError as e:
            logger.warning(f"Refund for charge {charge.get('id')} not applied: {str(e)}")
        return dict(ACKNOWLEDGED)

    def handle_payment_failed(self, intent):
        metadata = intent.get("metadata") or {}
        customer_email = metadata.get("customerEmail")
        logger.info(f"Payment failed: {intent.get('id')}")
        if not customer_email:
            return dict(ACKNOWLEDGED)

        try:
            self.notifier.send_payment_failed(
                customer_email=customer_email,
                customer_name=metadata.get("customerName") or "Customer",
                product_name=(
                    metadata.get("productTitle") or metadata.get("courseTitle") or "your purchase"
                ),
                amount=cents_to_decimal(intent.get("amount") or 0),
                currency=intent.get("currency") or "usd",
                failure_reason=(intent.get("last_payment_error") or {}).get("message") or "Payment declined",
            )
        except Exception as e:
            logger.error(f"Failed to send payment failure notification: {str(e)}", exc_info=True)
        return dict(ACKNOWLEDGED)
