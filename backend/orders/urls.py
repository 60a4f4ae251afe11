from django.urls import include, path
from rest_framework import routers

from .views import OrderTrackingView, OrderViewSet

app_name = "orders"

router = routers.DefaultRouter()
router.register(r"orders", OrderViewSet, basename="order")

urlpatterns = [
    path("orders/track/<str:order_number>/", OrderTrackingView.as_view(), name="order-track"),
    path("", include(router.urls)),
]
