from django.apps import apps
from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
import json
import logging

from .utils import SignatureVerificationError, verify_stripe_signature

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request):
    """
    Receive Stripe events. Anything signed and parseable is acknowledged
    with 200 {"received": true}, whatever the business outcome.
    """
    try:
        verify_stripe_signature(
            request.body,
            request.headers.get("Stripe-Signature"),
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        )
    except SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {str(e)}")
        return JsonResponse({"error": "Invalid signature"}, status=400)

    try:
        event = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Invalid JSON in webhook payload: {str(e)}")
        return JsonResponse({"error": "Invalid payload"}, status=400)

    if not isinstance(event, dict):
        logger.error("Webhook payload is not a JSON object")
        return JsonResponse({"error": "Invalid payload"}, status=400)

    handler = apps.get_app_config("payment").fulfillment_handler
    return JsonResponse(handler.handle_event(event))
