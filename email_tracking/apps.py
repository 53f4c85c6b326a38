from django.apps import AppConfig


class EmailTrackingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "email_tracking"
    verbose_name = "Email deliverability"
