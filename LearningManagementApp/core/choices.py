"""Typed enumerations (TextChoices) shared by the LMS apps."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account."""
    ADMIN = "ADMIN", "Administrator"
    INSTRUCTOR = "INSTRUCTOR", "Instructor"
    TEACHING_ASSISTANT = "TEACHING_ASSISTANT", "Teaching assistant"
    STUDENT = "STUDENT", "Student"

class MemberRole(models.TextChoices):
    """Role of a user within a specific course context."""
    INSTRUCTOR = "INSTRUCTOR", "Instructor"
    TEACHING_ASSISTANT = "TEACHING_ASSISTANT", "Teaching assistant"
    STUDENT = "STUDENT", "Student"

class EnrollmentStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    DROPPED = "DROPPED", "Dropped"
    COMPLETED = "COMPLETED", "Completed"

class CourseStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"

class PublicationStatus(models.TextChoices):
    """Lifecycle of modules and pages."""
    DRAFT = "DRAFT", "Draft"
    PUBLISHED = "PUBLISHED", "Published"
    ARCHIVED = "ARCHIVED", "Archived"

class PageContentType(models.TextChoices):
    HTML = "HTML", "HTML"
    MARKDOWN = "MARKDOWN", "Markdown"
    TEXT = "TEXT", "Plain text"

class ResourceType(models.TextChoices):
    FILE = "FILE", "File"
    LINK = "LINK", "Link"

class SubmissionType(models.TextChoices):
    """What an assignment accepts from students."""
    TEXT = "TEXT", "Text"
    FILE = "FILE", "File upload"
    URL = "URL", "Website URL"
    BOTH = "BOTH", "Text and/or files"

class SubmissionState(models.TextChoices):
    """Lifecycle states for an assignment submission."""
    SUBMITTED = "SUBMITTED", "Submitted"
    LATE = "LATE", "Late"
    RESUBMITTED = "RESUBMITTED", "Resubmitted"
    GRADED = "GRADED", "Graded"

class QuestionType(models.TextChoices):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE", "Multiple choice"
    TRUE_FALSE = "TRUE_FALSE", "True / false"
    MULTIPLE_ANSWER = "MULTIPLE_ANSWER", "Multiple answer"
    SHORT_ANSWER = "SHORT_ANSWER", "Short answer"
    ESSAY = "ESSAY", "Essay"

OBJECTIVE_QUESTION_TYPES = frozenset({
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.TRUE_FALSE,
    QuestionType.MULTIPLE_ANSWER,
})

class AttemptStatus(models.TextChoices):
    """Quiz attempt lifecycle: IN_PROGRESS -> SUBMITTED (needs manual grading) -> COMPLETED."""
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    SUBMITTED = "SUBMITTED", "Submitted"
    COMPLETED = "COMPLETED", "Completed"

class PermissionType(models.TextChoices):
    """ACL permission kinds; MANAGE implies every other kind."""
    VIEW = "VIEW", "View"
    EDIT = "EDIT", "Edit"
    DELETE = "DELETE", "Delete"
    MANAGE = "MANAGE", "Manage"

class GranteeType(models.TextChoices):
    ROLE = "ROLE", "Role"
    USER = "USER", "User"
