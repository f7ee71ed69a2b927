"""ACL model: polymorphic permission entries granted to a role or a single user."""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import Q

from LearningManagementApp.acl.querysets import AclEntryQuerySet
from LearningManagementApp.core.choices import GranteeType, PermissionType, UserRole

User = settings.AUTH_USER_MODEL


class AclEntry(models.Model):
    """A single permission on a content object.

    Fields:
        content_type / object_id: Target content (page, quiz, module...).
        permission_type: PermissionType value.
        grantee_type: ROLE or USER.
        grantee_role: UserRole value when grantee_type is ROLE.
        grantee_user: Grantee when grantee_type is USER.
    Constraints:
        uq_acl_role_grant / uq_acl_user_grant: one row per target, permission and grantee.
    """
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.PositiveBigIntegerField()
    content_object = GenericForeignKey("content_type", "object_id")
    permission_type = models.CharField(max_length=16, choices=PermissionType.choices)
    grantee_type = models.CharField(max_length=8, choices=GranteeType.choices)
    grantee_role = models.CharField(max_length=32, choices=UserRole.choices, blank=True, default="")
    grantee_user = models.ForeignKey(
        User, on_delete=models.CASCADE, null=True, blank=True, related_name="acl_entries"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AclEntryQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["content_type", "object_id"], name="idx_acl_target"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["content_type", "object_id", "permission_type", "grantee_role"],
                condition=Q(grantee_type=GranteeType.ROLE),
                name="uq_acl_role_grant",
            ),
            models.UniqueConstraint(
                fields=["content_type", "object_id", "permission_type", "grantee_user"],
                condition=Q(grantee_type=GranteeType.USER),
                name="uq_acl_user_grant",
            ),
        ]

    def __str__(self) -> str:
        grantee = self.grantee_role if self.grantee_type == GranteeType.ROLE else f"user#{self.grantee_user_id}"
        return f"{self.permission_type} on {self.content_type.model}#{self.object_id} -> {grantee}"
