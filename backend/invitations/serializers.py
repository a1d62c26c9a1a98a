from rest_framework import serializers
from django.contrib.auth import get_user_model
from backend.core.serializers import UserSerializer
from backend.projects.permissions import ASSIGNABLE_ROLES, MEMBER
from .models import ProjectInvitation

User = get_user_model()


class ProjectInvitationSerializer(serializers.ModelSerializer):
    invited_user = UserSerializer(read_only=True)
    invited_by = UserSerializer(read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)

    class Meta:
        model = ProjectInvitation
        fields = ['id', 'project', 'project_name', 'invited_user', 'invited_by', 'role', 'status', 'created_at', 'updated_at']
        read_only_fields = fields


class InvitationCreateSerializer(serializers.Serializer):
    user_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, required=False, default=MEMBER)
