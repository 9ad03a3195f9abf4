# notifications/apps.py
from django.apps import AppConfig

class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Booking and payment notifications"

    def ready(self):
        # Booking/Payment post_save receivers live in notifications.signals
        import notifications.signals  # noqa: F401
