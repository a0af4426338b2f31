from django.apps import AppConfig


class ContactsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "contacts"
    verbose_name = "Clienti e fornitori"

    def ready(self):
        """
        Register the customer and supplier validation schemas.
        @register_schema only runs when the module is imported.
        """
        import contacts.forms  # noqa
