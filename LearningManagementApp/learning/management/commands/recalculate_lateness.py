from django.core.management.base import BaseCommand
from LearningManagementApp.core.choices import SubmissionState
from LearningManagementApp.learning.models import Submission

class Command(BaseCommand):
    help = "Recompute is_late flags for all assignment submissions."

    def handle(self, *args, **options):
        updated = 0
        for sub in Submission.objects.select_related("assignment"):
            should = sub.submitted_at > sub.assignment.due_date
            if sub.is_late != should:
                sub.is_late = should
                if sub.status in (SubmissionState.SUBMITTED, SubmissionState.LATE):
                    sub.status = SubmissionState.LATE if should else SubmissionState.SUBMITTED
                sub.save(update_fields=["is_late", "status"])
                updated += 1
        self.stdout.write(self.style.SUCCESS(f"Updated {updated} submissions"))
