"""Signal handlers for learning domain (e.g., update submission lateness on due date change)."""

from typing import Any

from django.db.models.signals import post_save
from django.dispatch import receiver

from LearningManagementApp.core.choices import SubmissionState
from LearningManagementApp.learning.models import Assignment, Submission

@receiver(post_save, sender=Assignment)
def recompute_submission_lateness(
    sender: type[Assignment],
    instance: Assignment,
    created: bool,
    **kwargs: Any,
) -> None:
    """Recalculate is_late (and the SUBMITTED/LATE status) of submissions when the due date changes."""
    if created:
        return
    subs = Submission.objects.filter(assignment=instance)
    subs.filter(submitted_at__gt=instance.due_date, is_late=False).update(is_late=True)
    subs.filter(submitted_at__lte=instance.due_date, is_late=True).update(is_late=False)
    subs.filter(is_late=True, status=SubmissionState.SUBMITTED).update(status=SubmissionState.LATE)
    subs.filter(is_late=False, status=SubmissionState.LATE).update(status=SubmissionState.SUBMITTED)
