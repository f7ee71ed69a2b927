from django.core.management.base import BaseCommand
from LearningManagementApp.domain.services import attempt_service

class Command(BaseCommand):
    help = "Submit every in-progress quiz attempt whose time limit has run out."

    def handle(self, *args, **options):
        submitted = attempt_service.autosubmit_expired()
        self.stdout.write(self.style.SUCCESS(f"Auto-submitted {submitted} attempts"))
