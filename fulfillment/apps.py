"""Django app configuration for the Fulfillment app."""

from django.apps import AppConfig


class FulfillmentConfig(AppConfig):
    """AppConfig for fulfillment documents (deliveries, transfers, supplier returns)."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "fulfillment"
    verbose_name = "Fulfillment"
