"""QuerySet helpers for filtering ACL entries by target, grantee and permission."""

from typing import Self

from django.contrib.contenttypes.models import ContentType
from django.db.models import QuerySet, Q

from LearningManagementApp.core.choices import GranteeType, PermissionType


class AclEntryQuerySet(QuerySet):
    """QuerySet with helpers for ACL lookups."""

    def for_content(self, content) -> Self:
        """Entries attached to a single content object."""
        ct = ContentType.objects.get_for_model(content)
        return self.filter(content_type=ct, object_id=content.pk)

    def granting(self, permission: str) -> Self:
        """Entries that grant `permission`, counting MANAGE as granting everything."""
        return self.filter(permission_type__in={permission, PermissionType.MANAGE})

    def for_user(self, user) -> Self:
        """Entries whose grantee is the user directly or the user's role."""
        return self.filter(
            Q(grantee_type=GranteeType.USER, grantee_user=user) |
            Q(grantee_type=GranteeType.ROLE, grantee_role=user.role)
        )

    def user_grants(self, user) -> Self:
        return self.filter(grantee_type=GranteeType.USER, grantee_user=user)

    def role_grants(self, role: str) -> Self:
        return self.filter(grantee_type=GranteeType.ROLE, grantee_role=role)
