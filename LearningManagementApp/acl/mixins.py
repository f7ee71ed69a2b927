"""Abstract base for content guarded by ACL entries."""

from django.contrib.contenttypes.fields import GenericRelation
from django.db import models


class AclProtectedModel(models.Model):
    """Content with a reverse relation to its ACL entries (deleted together with the content).

    Subclasses expose `course` and name their creator field in `acl_owner_field`.
    """
    acl_entries = GenericRelation(
        "acl.AclEntry", content_type_field="content_type", object_id_field="object_id"
    )

    acl_owner_field = "created_by"
    acl_is_public_field = None

    class Meta:
        abstract = True

    @property
    def acl_owner(self):
        return getattr(self, self.acl_owner_field, None)

    @property
    def acl_is_public(self) -> bool:
        return bool(self.acl_is_public_field and getattr(self, self.acl_is_public_field, False))
