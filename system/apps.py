from django.apps import AppConfig


class SystemAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "system"
    verbose_name = "System administration"
