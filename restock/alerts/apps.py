from django.apps import AppConfig


class AlertsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'restock.alerts'
    label = 'alerts'

    def ready(self):
        """Import signals when app is ready"""
        import restock.alerts.signals  # noqa: F401  # Cache invalidation signals
