from django.db import models


class DailyAnalytics(models.Model):
    """
    Cached daily analytics snapshot.

    Never authoritative: the row is deleted whenever an order created on
    that date changes, and recomputed from orders on the next read.
    """

    date = models.DateField(unique=True)
    data = models.JSONField()
    computed_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date"]
        verbose_name = "Daily Analytics"
        verbose_name_plural = "Daily Analytics"

    def __str__(self):
        return f"Analytics for {self.date}"
