from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand

from core.permissions import (
    GROUP_ADMINS,
    GROUP_GUESTS,
    GROUP_INSTRUCTORS,
    GROUP_LEAD_INSTRUCTORS,
    GROUP_SUPERADMINS,
)

ALL_ACTIONS = ("view", "add", "change", "delete")

PROGRAM_APPS = (
    "core",
    "lab_management",
    "scheduling",
    "clinical",
    "notifications",
    "reports",
    "system",
)

# group -> [(app_label, actions)]. These are Django admin site permissions;
# the JSON API checks roles through core.permissions instead.
GROUPS_CONFIG = {
    GROUP_SUPERADMINS: [(app, ALL_ACTIONS) for app in PROGRAM_APPS + ("auth", "account")],
    GROUP_ADMINS: [
        (app, ALL_ACTIONS)
        for app in ("core", "lab_management", "scheduling", "clinical", "notifications", "reports")
    ]
    + [("system", ("view", "change")), ("auth", ("view", "change"))],
    GROUP_LEAD_INSTRUCTORS: [
        ("lab_management", ("view", "add", "change")),
        ("clinical", ("view", "change")),
        ("scheduling", ("view",)),
    ],
    GROUP_INSTRUCTORS: [
        ("lab_management", ("view",)),
        ("scheduling", ("view",)),
    ],
    GROUP_GUESTS: [],
}


def permissions_for(app_label, actions):
    return Permission.objects.filter(content_type__app_label=app_label).filter(
        codename__regex=r"^(%s)_" % "|".join(actions)
    )


class Command(BaseCommand):
    help = "Create the role groups and assign their admin site permissions."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Clear existing permissions before assigning new ones",
        )

    def handle(self, *args, **options):
        reset = options.get("reset", False)

        created_count = 0
        permissions_assigned = 0

        for group_name, grants in GROUPS_CONFIG.items():
            group, created = Group.objects.get_or_create(name=group_name)
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"Created group: {group_name}"))
            else:
                self.stdout.write(f"  Group already exists: {group_name}")

            if reset:
                group.permissions.clear()

            existing = set(group.permissions.values_list("pk", flat=True))
            for app_label, actions in grants:
                perms = [p for p in permissions_for(app_label, actions) if p.pk not in existing]
                if not perms:
                    continue
                group.permissions.add(*perms)
                existing.update(p.pk for p in perms)
                permissions_assigned += len(perms)
                self.stdout.write(f"    + {app_label}: {len(perms)} permission(s)")

        self.stdout.write(
            self.style.SUCCESS(
                f"Groups seeded: {created_count} created, "
                f"{permissions_assigned} permissions assigned"
            )
        )
