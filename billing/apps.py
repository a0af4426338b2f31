from django.apps import AppConfig


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Fatturazione"

    def ready(self):
        """
        Register the invoice / payment schemas and the billing event handlers.
        """
        import billing.forms  # noqa
        import billing.handlers  # noqa
