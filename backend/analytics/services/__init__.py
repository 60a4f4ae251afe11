from .base import AnalyticsComputationError, BaseAnalyticsService
from .daily_service import AnalyticsService
from .report_service import AnalyticsReportService

__all__ = [
    "AnalyticsComputationError",
    "AnalyticsReportService",
    "AnalyticsService",
    "BaseAnalyticsService",
]
