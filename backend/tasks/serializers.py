from rest_framework import serializers
from django.contrib.auth import get_user_model
from backend.core.serializers import UserSerializer
from backend.projects.models import Milestone
from .models import Task, Comment, Attachment

User = get_user_model()


class TaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Task
        fields = ['id', 'project', 'milestone', 'title', 'description', 'status', 'priority',
                  'assignee', 'due_date', 'position', 'created_at', 'updated_at']
        read_only_fields = fields


class TaskWriteSerializer(serializers.Serializer):
    """Input for task create (full) and update (partial)"""
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES, required=False)
    priority = serializers.ChoiceField(choices=Task.PRIORITY_CHOICES, required=False)
    assignee = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    milestone = serializers.PrimaryKeyRelatedField(queryset=Milestone.objects.all(), required=False, allow_null=True)


class TaskMoveSerializer(serializers.Serializer):
    milestone = serializers.PrimaryKeyRelatedField(queryset=Milestone.objects.all(), required=False, allow_null=True)
    target_task = serializers.PrimaryKeyRelatedField(queryset=Task.objects.all(), required=False, allow_null=True)


class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Attachment
        fields = ['id', 'name', 'url', 'type', 'created_at']
        read_only_fields = ['id', 'created_at']


class CommentSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'task', 'user', 'content', 'attachments', 'created_at', 'updated_at']
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, default='')
    attachments = AttachmentSerializer(many=True, required=False, default=list)


class CommentUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True)


class SuggestionRequestSerializer(serializers.Serializer):
    description = serializers.CharField(allow_blank=True, default='')
    project_type = serializers.CharField(required=False, default='General')


class SuggestedTaskSerializer(serializers.Serializer):
    """Accepted suggestion submitted with a new project"""
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES, required=False, default=Task.STATUS_TODO)
    priority = serializers.ChoiceField(choices=Task.PRIORITY_CHOICES, required=False, default=Task.PRIORITY_MEDIUM)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)
