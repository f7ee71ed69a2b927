"""Serializers for course modules, module resources and pages."""

from rest_framework import serializers

from LearningManagementApp.api.serializers.users import UserSerializer
from LearningManagementApp.content.models import CourseModule, ModuleResource, Page
from LearningManagementApp.core.choices import PublicationStatus, ResourceType
from LearningManagementApp.core.validators import validate_resource_url


class ModuleResourceSerializer(serializers.ModelSerializer):
    """File or link attached to a module; exactly one of ``file`` / ``url`` per resource type."""

    class Meta:
        model = ModuleResource
        fields = ["id", "title", "description", "resource_type", "file", "url", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_url(self, value: str) -> str:
        if value:
            validate_resource_url(value)
        return value

    def validate(self, data):
        if data.get("resource_type") == ResourceType.LINK and data.get("file"):
            raise serializers.ValidationError({"file": ["Link resources cannot carry a file."]})
        if data.get("resource_type") == ResourceType.FILE and data.get("url"):
            raise serializers.ValidationError({"url": ["File resources cannot carry a URL."]})
        return data


class ModuleWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = CourseModule
        fields = ["title", "description", "status", "is_public"]


class ModuleReadSerializer(serializers.ModelSerializer):
    resources = ModuleResourceSerializer(many=True, read_only=True)

    class Meta:
        model = CourseModule
        fields = [
            "id", "course", "title", "description", "order", "status", "is_public",
            "created_by", "resources", "created_at", "updated_at",
        ]


class ReorderSerializer(serializers.Serializer):
    """Ids in their new order."""
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class StatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PublicationStatus.choices)


class PageWriteSerializer(serializers.ModelSerializer):
    """Page payload; the module must belong to the page's course (checked by the service)."""
    slug = serializers.SlugField(max_length=280, required=False, allow_blank=True)

    class Meta:
        model = Page
        fields = ["title", "slug", "content", "content_type", "module", "status", "is_public"]


class PageReadSerializer(serializers.ModelSerializer):
    created_by = UserSerializer(read_only=True)
    rendered_content = serializers.SerializerMethodField()

    class Meta:
        model = Page
        fields = [
            "id", "course", "module", "title", "slug", "content", "rendered_content", "content_type",
            "status", "is_public", "order", "created_by", "created_at", "updated_at",
        ]

    def get_rendered_content(self, obj: Page) -> str:
        return obj.rendered_content()
