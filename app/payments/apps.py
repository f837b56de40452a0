"""
Payments app configuration.

Registers the Paddle webhook handlers on startup so the event classifier
can find them.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Handler modules register themselves with the classifier on import
        import payments.webhooks.handlers  # noqa: F401
