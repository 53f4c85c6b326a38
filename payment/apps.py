from django.apps import AppConfig


class PaymentConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payment"
    fulfillment_handler = None

    def ready(self):
        from creatorhub.background_utils import EmailNotifier
        from .fulfillment import FulfillmentHandler

        # One notifier client per process, injected into the handler
        self.fulfillment_handler = FulfillmentHandler(notifier=EmailNotifier())
