from django.apps import AppConfig


class SalesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sales"
    verbose_name = "Vendite"

    def ready(self):
        """
        Register the order / delivery note schemas and the domain event
        handlers. Both only take effect once their module is imported.
        """
        import sales.forms  # noqa
        import sales.handlers  # noqa
