from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import PurchaseRecordViewSet

app_name = "purchases"

router = SimpleRouter()
router.register(r"", PurchaseRecordViewSet, basename="purchase")

urlpatterns = [
    path("", include(router.urls)),
]
