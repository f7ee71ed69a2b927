"""Serializers for announcements, discussions and threaded replies."""

from rest_framework import serializers

from LearningManagementApp.api.serializers.users import UserSerializer
from LearningManagementApp.communication.models import Announcement, Discussion, DiscussionReply
from LearningManagementApp.domain.services.communication_service import REPLY_MAX_LENGTH, REPLY_MIN_LENGTH


class AnnouncementWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Announcement
        fields = ["title", "content", "is_pinned"]


class AnnouncementReadSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Announcement
        fields = ["id", "course", "author", "title", "content", "is_pinned", "created_at", "updated_at"]


class DiscussionWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Discussion
        fields = ["title", "content", "is_pinned"]


class DiscussionReadSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)
    reply_count = serializers.SerializerMethodField()

    class Meta:
        model = Discussion
        fields = [
            "id", "course", "author", "title", "content", "is_pinned", "is_locked",
            "reply_count", "created_at", "updated_at",
        ]

    def get_reply_count(self, obj: Discussion) -> int:
        return obj.replies.filter(is_deleted=False).count()


class ReplyWriteSerializer(serializers.Serializer):
    content = serializers.CharField(min_length=REPLY_MIN_LENGTH, max_length=REPLY_MAX_LENGTH)
    parent_id = serializers.IntegerField(required=False, allow_null=True)


class ReplyReadSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)
    is_edited = serializers.BooleanField(read_only=True)

    class Meta:
        model = DiscussionReply
        fields = ["id", "discussion", "parent", "author", "content", "is_deleted", "is_edited", "edited_at", "created_at"]


class ReplyNodeSerializer(serializers.Serializer):
    """One node of the reply tree produced by ``communication_service.reply_tree``."""
    reply = ReplyReadSerializer()
    is_edited = serializers.BooleanField()
    can_edit = serializers.BooleanField()
    can_delete = serializers.BooleanField()
    reply_count = serializers.IntegerField()
    children = serializers.SerializerMethodField()

    def get_children(self, node: dict) -> list:
        return ReplyNodeSerializer(node["children"], many=True).data


class ReplyTreeSerializer(serializers.Serializer):
    replies = ReplyNodeSerializer(many=True)
    total_replies = serializers.IntegerField()
