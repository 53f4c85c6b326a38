# email_tracking/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from . import views

app_name = "email_tracking"

router = DefaultRouter()
router.register(r"domains", views.EmailDomainViewSet, basename="domain")
router.register(r"alerts", views.DomainAlertViewSet, basename="alert")

urlpatterns = [
    path("events/", views.email_event_webhook, name="email_event_webhook"),
    path("senders/flagged/", views.FlaggedSendersView.as_view(), name="flagged_senders"),
    path("", include(router.urls)),
]
