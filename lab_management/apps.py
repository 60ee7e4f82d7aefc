from django.apps import AppConfig


class LabManagementConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lab_management"
    verbose_name = "Lab Management"
