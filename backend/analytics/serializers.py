from datetime import timedelta

from django.utils import timezone
from rest_framework import serializers


class DateWindowSerializer(serializers.Serializer):
    """Query parameters of the window report: orders created from "from" up to, not including, "to"."""

    # "from" is a keyword, so the fields are declared through the mapping
    def get_fields(self):
        return {
            "from": serializers.DateField(),
            "to": serializers.DateField(),
        }

    def validate(self, attrs):
        if attrs["from"] > attrs["to"]:
            raise serializers.ValidationError({"from": "Must not be after 'to'."})
        return attrs


class WeeklyReportSerializer(serializers.Serializer):
    week_start = serializers.DateField(required=False)

    def validate(self, attrs):
        if "week_start" not in attrs:
            today = timezone.localdate()
            attrs["week_start"] = today - timedelta(days=today.weekday())
        return attrs


class SalesTrendSerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, default=30, min_value=1, max_value=366)
