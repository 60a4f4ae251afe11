from django.apps import AppConfig, apps


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"

    def ready(self):
        from .publishers import OrderEventPublisher

        self.publisher = OrderEventPublisher()


def get_event_publisher():
    """The process-wide publisher created when the app registry became ready."""
    return apps.get_app_config("notifications").publisher
