"""
Runtime configuration stored in the ``system_config`` table.

Deploy-time settings belong in ``settings.py`` / the environment; the values
here are edited by superadmins through ``PUT /api/admin/config``.
"""
from system.models import SystemConfig

# (key, default value, category, description)
DEFAULT_CONFIG = [
    ("email_from_name", "Paramedic Program", SystemConfig.CATEGORY_EMAIL,
     "Display name used on outgoing email"),
    ("email_footer", "", SystemConfig.CATEGORY_EMAIL,
     "Text appended to the bottom of every email"),
    ("notifications_enabled", True, SystemConfig.CATEGORY_NOTIFICATIONS,
     "Master switch for in-app notifications"),
    ("availability_reminders_enabled", True, SystemConfig.CATEGORY_NOTIFICATIONS,
     "Send weekly availability reminders to instructors"),
    ("session_timeout_minutes", 480, SystemConfig.CATEGORY_SECURITY,
     "Idle minutes before a session expires"),
    ("allowed_signup_domains", [], SystemConfig.CATEGORY_SECURITY,
     "Email domains allowed to sign up (empty: use deployment setting)"),
    ("shift_trading_enabled", True, SystemConfig.CATEGORY_FEATURES,
     "Allow instructors to request shift trades"),
    ("scenario_difficulty_recommendations", True, SystemConfig.CATEGORY_FEATURES,
     "Show difficulty recommendations on scenarios"),
    ("program_name", "Paramedic Program", SystemConfig.CATEGORY_BRANDING,
     "Program name shown in the header"),
    ("primary_color", "#1d4ed8", SystemConfig.CATEGORY_BRANDING,
     "Primary brand colour"),
    ("privacy_notice", "", SystemConfig.CATEGORY_LEGAL,
     "FERPA / privacy notice shown on sign-in"),
]


def get_config(key, default=None):
    """Current value of ``key``, or ``default`` when the row doesn't exist."""
    row = SystemConfig.objects.filter(config_key=key).values_list("config_value", flat=True).first()
    if row is None:
        return default
    return row


def config_map():
    """All rows keyed by config_key."""
    return {row.config_key: row.to_dict() for row in SystemConfig.objects.select_related("updated_by")}


def seed_defaults(overwrite=False):
    """Create missing default rows. Returns (created, updated)."""
    created = updated = 0
    for key, value, category, description in DEFAULT_CONFIG:
        if overwrite:
            _, was_created = SystemConfig.objects.update_or_create(
                config_key=key,
                defaults={"config_value": value, "category": category, "description": description},
            )
        else:
            _, was_created = SystemConfig.objects.get_or_create(
                config_key=key,
                defaults={"config_value": value, "category": category, "description": description},
            )
            if not was_created:
                continue
        created += int(was_created)
        updated += int(not was_created)
    return created, updated
