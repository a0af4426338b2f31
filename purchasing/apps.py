from django.apps import AppConfig


class PurchasingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "purchasing"
    verbose_name = "Acquisti"

    def ready(self):
        import purchasing.forms  # noqa
        import purchasing.handlers  # noqa
