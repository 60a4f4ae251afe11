from django.urls import include, path
from rest_framework.routers import SimpleRouter

from . import views

router = SimpleRouter()
router.register(r"", views.AnalyticsViewSet, basename="analytics")

urlpatterns = [
    path("", include(router.urls)),
]

# GET  /api/analytics/daily/2024-01-31/
# POST /api/analytics/daily/2024-01-31/refresh/
# GET  /api/analytics/window/?from=2024-01-01&to=2024-01-31
# GET  /api/analytics/dashboard/
# GET  /api/analytics/weekly/?week_start=2024-01-29
# GET  /api/analytics/monthly/2024/1/
# GET  /api/analytics/sales-trend/?days=30
