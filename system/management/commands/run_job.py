import json

from django.core.management.base import BaseCommand, CommandError

from system.jobs import JOBS, run_job


class Command(BaseCommand):
    help = "Run a scheduled job (cert-expiry, availability-reminders, system-health, internship-milestones)"

    def add_arguments(self, parser):
        parser.add_argument("job", choices=sorted(JOBS))

    def handle(self, *args, **options):
        name = options["job"]
        try:
            summary = run_job(name)
        except Exception as exc:
            raise CommandError(f"{name} failed: {exc}") from exc

        self.stdout.write(json.dumps(summary, indent=2, default=str))
        self.stdout.write(self.style.SUCCESS(f"{name} completed in {summary['duration_ms']} ms"))
