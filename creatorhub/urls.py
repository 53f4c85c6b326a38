"""
URL configuration for the creatorhub project.

Webhook receivers live under ``webhooks/`` (payment events) and
``email/events/`` (email provider events); everything else is staff API.
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Django admin
    path("admin/", admin.site.urls),
    # Local apps
    path("webhooks/", include("payment.urls", namespace="payment")),
    path("purchases/", include("purchases.urls", namespace="purchases")),
    path("email/", include("email_tracking.urls", namespace="email_tracking")),
]
