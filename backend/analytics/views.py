import logging
from datetime import date

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from orders.permissions import IsStaff

from .serializers import DateWindowSerializer, SalesTrendSerializer, WeeklyReportSerializer
from .services import AnalyticsComputationError, AnalyticsReportService
from .services.report_service import MAX_YEAR, MIN_YEAR

logger = logging.getLogger(__name__)

DAY_PATTERN = r"(?P<day>\d{4}-\d{2}-\d{2})"


class AnalyticsViewSet(viewsets.ViewSet):
    """
    Read-only analytics for staff dashboards.

    GET  daily/{date}/            cached daily snapshot
    POST daily/{date}/refresh/    recompute the snapshot
    GET  window/?from=&to=
    GET  dashboard/
    GET  weekly/?week_start=
    GET  monthly/{year}/{month}/
    GET  sales-trend/?days=
    """

    permission_classes = [IsStaff]

    def get_service(self) -> AnalyticsReportService:
        return AnalyticsReportService()

    @action(detail=False, methods=["get"], url_path=f"daily/{DAY_PATTERN}")
    def daily(self, request, day=None):
        parsed = self._parse_day(day)
        if parsed is None:
            return self._bad_request(f"Invalid date: {day}")
        use_cache = request.query_params.get("use_cache", "true").lower() != "false"
        return self._respond(lambda: self.get_service().get_daily_analytics(parsed, use_cache=use_cache))

    @action(detail=False, methods=["post"], url_path=f"daily/{DAY_PATTERN}/refresh")
    def refresh(self, request, day=None):
        parsed = self._parse_day(day)
        if parsed is None:
            return self._bad_request(f"Invalid date: {day}")
        return self._respond(lambda: self.get_service().refresh_daily_analytics(parsed))

    @action(detail=False, methods=["get"])
    def window(self, request):
        serializer = DateWindowSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        params = serializer.validated_data
        return self._respond(lambda: self.get_service().compute_window(params["from"], params["to"]))

    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        return self._respond(lambda: self.get_service().dashboard())

    @action(detail=False, methods=["get"])
    def weekly(self, request):
        serializer = WeeklyReportSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        week_start = serializer.validated_data["week_start"]
        return self._respond(lambda: self.get_service().weekly_report(week_start))

    @action(detail=False, methods=["get"], url_path=r"monthly/(?P<year>\d{4})/(?P<month>\d{1,2})")
    def monthly(self, request, year=None, month=None):
        year, month = int(year), int(month)
        if not MIN_YEAR <= year <= MAX_YEAR:
            return self._bad_request(f"Invalid year: {year}")
        if not 1 <= month <= 12:
            return self._bad_request(f"Invalid month: {month}")
        return self._respond(lambda: self.get_service().monthly_report(year, month))

    @action(detail=False, methods=["get"], url_path="sales-trend")
    def sales_trend(self, request):
        serializer = SalesTrendSerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        days = serializer.validated_data["days"]
        return self._respond(lambda: self.get_service().sales_trend(days))

    @staticmethod
    def _parse_day(value):
        try:
            return date.fromisoformat(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _bad_request(message):
        return Response({"error": message}, status=status.HTTP_400_BAD_REQUEST)

    @staticmethod
    def _respond(compute):
        try:
            return Response(compute(), status=status.HTTP_200_OK)
        except AnalyticsComputationError as e:
            logger.error(f"Analytics request failed: {e}")
            return Response(
                {"error": "Analytics are temporarily unavailable.", "detail": str(e)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
