"""Serializers for ACL entries and grant/revoke payloads."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from LearningManagementApp.acl.models import AclEntry
from LearningManagementApp.core.choices import GranteeType, PermissionType, UserRole

User = get_user_model()


class AclEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AclEntry
        fields = ["id", "permission_type", "grantee_type", "grantee_role", "grantee_user", "created_at"]


class GrantSerializer(serializers.Serializer):
    """A permission for either a role or a single user."""
    permission_type = serializers.ChoiceField(choices=PermissionType.choices)
    grantee_type = serializers.ChoiceField(choices=GranteeType.choices)
    grantee_role = serializers.ChoiceField(choices=UserRole.choices, required=False)
    grantee_user = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False)

    def validate(self, data):
        if data["grantee_type"] == GranteeType.ROLE:
            if not data.get("grantee_role"):
                raise serializers.ValidationError({"grantee_role": ["Required for role grants."]})
            data.pop("grantee_user", None)
        else:
            if not data.get("grantee_user"):
                raise serializers.ValidationError({"grantee_user": ["Required for user grants."]})
            data.pop("grantee_role", None)
        return data

    def grantee_kwargs(self) -> dict:
        data = self.validated_data
        if data["grantee_type"] == GranteeType.ROLE:
            return {"role": data["grantee_role"]}
        return {"user": data["grantee_user"]}


class BulkGrantSerializer(GrantSerializer):
    object_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
