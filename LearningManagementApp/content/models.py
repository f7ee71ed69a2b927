"""Course content models: CourseModule, ModuleResource, Page."""

from django.conf import settings
from django.db import models
from django.template.defaultfilters import linebreaksbr

from simple_history.models import HistoricalRecords

from LearningManagementApp.acl.mixins import AclProtectedModel
from LearningManagementApp.core.choices import PublicationStatus, PageContentType, ResourceType
from LearningManagementApp.core.validators import validate_file_size, validate_attachment_mime
from LearningManagementApp.courses.models import Course

User = settings.AUTH_USER_MODEL


class CourseModule(AclProtectedModel):
    """An ordered unit of a course grouping pages, resources and activities."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="modules")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=PublicationStatus.choices, default=PublicationStatus.DRAFT)
    is_public = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_modules")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    acl_is_public_field = "is_public"

    class Meta:
        ordering = ["order", "id"]

    def __str__(self) -> str:
        return f"{self.title} ({self.course.course_code})"


class ModuleResource(models.Model):
    """A downloadable file or external link attached to a module."""
    module = models.ForeignKey(CourseModule, on_delete=models.CASCADE, related_name="resources")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    resource_type = models.CharField(max_length=8, choices=ResourceType.choices)
    file = models.FileField(
        upload_to="module_resources/", blank=True, null=True,
        validators=[validate_file_size, validate_attachment_mime],
    )
    url = models.URLField(max_length=2048, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)


class Page(AclProtectedModel):
    """A wiki-style content page inside a course, addressable by a unique slug."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="pages")
    module = models.ForeignKey(CourseModule, on_delete=models.SET_NULL, null=True, blank=True, related_name="pages")
    created_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name="created_pages")
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=280, unique=True)
    content = models.TextField()
    content_type = models.CharField(max_length=16, choices=PageContentType.choices, default=PageContentType.HTML)
    status = models.CharField(max_length=16, choices=PublicationStatus.choices, default=PublicationStatus.DRAFT)
    is_public = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    acl_is_public_field = "is_public"

    class Meta:
        ordering = ["order", "id"]

    def rendered_content(self) -> str:
        """HTML is trusted as authored; markdown and text are escaped with line breaks kept."""
        if self.content_type == PageContentType.HTML:
            return self.content
        return linebreaksbr(self.content, autoescape=True)

    def __str__(self) -> str:
        return self.slug
