from django.conf import settings


def program_context(request):
    """
    Makes the application name and institution available in all templates.

    Available in templates as {{ app_name }}, {{ institution }} and {{ app_url }}.
    """
    program_cfg = getattr(settings, "PROGRAM", {})
    return {
        "app_name": getattr(settings, "APP_NAME", "PMI Tools"),
        "institution": program_cfg.get("INSTITUTION"),
        "app_url": program_cfg.get("APP_URL"),
    }
