"""Domain service functions for announcements, discussions and discussion replies."""

import logging
from typing import Any

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from LearningManagementApp.communication.models import (
    DELETED_REPLY_PLACEHOLDER, Announcement, Discussion, DiscussionReply,
)
from LearningManagementApp.core import access
from LearningManagementApp.core.choices import PermissionType
from LearningManagementApp.core.exceptions import UnprocessableEntity
from LearningManagementApp.courses.models import Course, User
from LearningManagementApp.domain.services import acl_service

logger = logging.getLogger(__name__)

REPLY_MIN_LENGTH = 10
REPLY_MAX_LENGTH = 10000
LOCKED_MESSAGE = "This discussion is locked."


def _ensure_staff(user: User, course: Course) -> None:
    if not (access.is_admin(user) or access.is_course_staff(user, course)):
        raise PermissionDenied("Instructor or teaching assistant role required")

def _visible(queryset: QuerySet, user: User, course: Course) -> QuerySet:
    if access.is_admin(user) or access.is_course_staff(user, course):
        return queryset
    return acl_service.accessible_queryset(queryset, user, PermissionType.VIEW)

def _apply(obj, data: dict[str, Any]):
    for field, value in data.items():
        setattr(obj, field, value)
    obj.save()
    return obj


# ---------- Announcements ----------
@transaction.atomic
def create_announcement(author: User, course: Course, data: dict[str, Any]) -> Announcement:
    _ensure_staff(author, course)
    announcement = Announcement.objects.create(course=course, author=author, **data)
    acl_service.setup_default_permissions(announcement)
    logger.info("Announcement %s posted in course %s by %s", announcement.pk, course.pk, author.pk)
    return announcement

@transaction.atomic
def update_announcement(user: User, announcement: Announcement, data: dict[str, Any]) -> Announcement:
    acl_service.require_permission(user, announcement, PermissionType.MANAGE)
    return _apply(announcement, data)

@transaction.atomic
def delete_announcement(user: User, announcement: Announcement) -> None:
    acl_service.require_permission(user, announcement, PermissionType.MANAGE)
    announcement.delete()

def announcements_for(user: User, course: Course) -> QuerySet[Announcement]:
    """Pinned first, then newest; students only see what the ACL lets them view."""
    return _visible(course.announcements.select_related("author"), user, course)


# ---------- Discussions ----------
@transaction.atomic
def create_discussion(author: User, course: Course, data: dict[str, Any]) -> Discussion:
    _ensure_staff(author, course)
    discussion = Discussion.objects.create(course=course, author=author, **data)
    acl_service.setup_default_permissions(discussion)
    logger.info("Discussion %s opened in course %s by %s", discussion.pk, course.pk, author.pk)
    return discussion

@transaction.atomic
def update_discussion(user: User, discussion: Discussion, data: dict[str, Any]) -> Discussion:
    acl_service.require_permission(user, discussion, PermissionType.MANAGE)
    return _apply(discussion, data)

@transaction.atomic
def delete_discussion(user: User, discussion: Discussion) -> None:
    acl_service.require_permission(user, discussion, PermissionType.MANAGE)
    discussion.delete()

@transaction.atomic
def set_locked(user: User, discussion: Discussion, locked: bool) -> Discussion:
    acl_service.require_permission(user, discussion, PermissionType.MANAGE)
    discussion.is_locked = locked
    discussion.save(update_fields=["is_locked", "updated_at"])
    logger.info("Discussion %s %s by %s", discussion.pk, "locked" if locked else "unlocked", user.pk)
    return discussion

def discussions_for(user: User, course: Course) -> QuerySet[Discussion]:
    return _visible(course.discussions.select_related("author"), user, course)


# ---------- Replies ----------
def _validate_reply_content(content: str) -> str:
    content = (content or "").strip()
    if len(content) < REPLY_MIN_LENGTH:
        raise ValidationError({"content": [f"Ensure this field has at least {REPLY_MIN_LENGTH} characters."]})
    if len(content) > REPLY_MAX_LENGTH:
        raise ValidationError({"content": [f"Ensure this field has no more than {REPLY_MAX_LENGTH} characters."]})
    return content


@transaction.atomic
def create_reply(
    author: User,
    discussion: Discussion,
    content: str,
    parent: DiscussionReply | None = None,
) -> DiscussionReply:
    """Enrolled students and course staff may reply while the discussion is open."""
    course = discussion.course
    if not (access.is_admin(author) or access.is_student(author, course) or access.is_course_staff(author, course)):
        raise PermissionDenied("You must be enrolled in this course to reply.")
    if discussion.is_locked:
        raise UnprocessableEntity(LOCKED_MESSAGE)
    if parent is not None:
        if parent.discussion_id != discussion.pk:
            raise ValidationError({"parent_id": ["The parent reply belongs to another discussion."]})
        if parent.is_deleted:
            raise ValidationError({"parent_id": ["You cannot reply to a deleted reply."]})
    reply = DiscussionReply.objects.create(
        discussion=discussion,
        author=author,
        parent=parent,
        content=_validate_reply_content(content),
    )
    logger.info("Reply %s posted in discussion %s by %s", reply.pk, discussion.pk, author.pk)
    return reply


@transaction.atomic
def update_reply(user: User, reply: DiscussionReply, content: str) -> DiscussionReply:
    if reply.author_id != user.pk:
        raise PermissionDenied("You can only edit your own replies.")
    if reply.discussion.is_locked:
        raise UnprocessableEntity(LOCKED_MESSAGE)
    if reply.is_deleted:
        raise UnprocessableEntity("Deleted replies cannot be edited.")
    reply.content = _validate_reply_content(content)
    reply.edited_at = timezone.now()
    reply.save(update_fields=["content", "edited_at", "updated_at"])
    return reply


def _has_live_descendant(reply: DiscussionReply) -> bool:
    frontier = [reply.pk]
    while frontier:
        children = DiscussionReply.objects.filter(parent_id__in=frontier)
        if children.filter(is_deleted=False).exists():
            return True
        frontier = list(children.values_list("pk", flat=True))
    return False


@transaction.atomic
def delete_reply(user: User, reply: DiscussionReply) -> bool:
    """Hard delete a reply with no live replies below it; otherwise keep it as a placeholder.

    Returns True when the reply was soft-deleted.
    """
    if not access.can_delete_reply(user, reply):
        raise PermissionDenied("You cannot delete this reply.")
    if _has_live_descendant(reply):
        reply.is_deleted = True
        reply.content = DELETED_REPLY_PLACEHOLDER
        reply.save(update_fields=["is_deleted", "content", "updated_at"])
        logger.info("Reply %s soft-deleted by %s", reply.pk, user.pk)
        return True
    logger.info("Reply %s deleted by %s", reply.pk, user.pk)
    reply.delete()
    return False


def _node(user: User, reply: DiscussionReply, children: dict[int | None, list[DiscussionReply]]) -> dict[str, Any]:
    nested = [_node(user, child, children) for child in children.get(reply.pk, [])]
    return {
        "reply": reply,
        "is_edited": reply.is_edited,
        "can_edit": access.can_edit_reply(user, reply),
        "can_delete": access.can_delete_reply(user, reply),
        "reply_count": len(nested),
        "children": nested,
    }


def reply_tree(user: User, discussion: Discussion) -> dict[str, Any]:
    """Threaded replies of a discussion plus the number of live replies."""
    replies = list(discussion.replies.select_related("author", "discussion__course"))
    children: dict[int | None, list[DiscussionReply]] = {}
    for reply in replies:
        children.setdefault(reply.parent_id, []).append(reply)
    return {
        "replies": [_node(user, reply, children) for reply in children.get(None, [])],
        "total_replies": sum(1 for reply in replies if not reply.is_deleted),
    }
