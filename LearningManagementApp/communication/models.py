"""Communication models: Announcement, Discussion, DiscussionReply."""

from django.conf import settings
from django.db import models

from simple_history.models import HistoricalRecords

from LearningManagementApp.acl.mixins import AclProtectedModel
from LearningManagementApp.courses.models import Course

User = settings.AUTH_USER_MODEL

DELETED_REPLY_PLACEHOLDER = "[This reply has been deleted]"


class Announcement(AclProtectedModel):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="announcements")
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name="announcements")
    title = models.CharField(max_length=255)
    content = models.TextField()
    is_pinned = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    acl_owner_field = "author"

    class Meta:
        ordering = ["-is_pinned", "-created_at", "-id"]

    def __str__(self) -> str:
        return self.title


class Discussion(AclProtectedModel):
    """A course discussion thread; locked threads accept no new or edited replies."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="discussions")
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name="discussions")
    title = models.CharField(max_length=255)
    content = models.TextField()
    is_pinned = models.BooleanField(default=False)
    is_locked = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    acl_owner_field = "author"

    class Meta:
        ordering = ["-is_pinned", "-created_at", "-id"]

    def __str__(self) -> str:
        return self.title


class DiscussionReply(models.Model):
    """A reply in a discussion; replies nest through `parent`.

    Soft-deleted replies keep their place in the thread with placeholder content.
    """
    discussion = models.ForeignKey(Discussion, on_delete=models.CASCADE, related_name="replies")
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name="discussion_replies")
    parent = models.ForeignKey("self", on_delete=models.CASCADE, null=True, blank=True, related_name="children")
    content = models.TextField()
    edited_at = models.DateTimeField(null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        ordering = ["created_at", "id"]

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None
