from django.core.management.base import BaseCommand

from system.config import seed_defaults


class Command(BaseCommand):
    help = "Create the default system_config rows."

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Reset existing rows to their default values",
        )

    def handle(self, *args, **options):
        created, updated = seed_defaults(overwrite=options.get("overwrite", False))
        self.stdout.write(
            self.style.SUCCESS(f"System config: created {created}, reset {updated}")
        )
