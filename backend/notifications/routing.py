from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path("ws/orders/admin/", consumers.AdminOrderFeedConsumer.as_asgi()),
    path("ws/orders/customer/", consumers.CustomerOrderFeedConsumer.as_asgi()),
    path("ws/orders/track/<str:order_number>/", consumers.OrderTrackingConsumer.as_asgi()),
]
