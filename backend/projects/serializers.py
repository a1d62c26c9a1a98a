from rest_framework import serializers
from backend.core.serializers import UserSerializer
from backend.tasks.models import Task
from backend.tasks.serializers import TaskSerializer, SuggestedTaskSerializer
from .models import Project, ProjectMember, Milestone
from .permissions import ASSIGNABLE_ROLES


class ProjectMemberSerializer(serializers.ModelSerializer):
    """Team entry: the member's profile plus their project role"""
    user = UserSerializer(read_only=True)

    class Meta:
        model = ProjectMember
        fields = ['id', 'user', 'role', 'created_at']
        read_only_fields = fields


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = ['id', 'project', 'title', 'description', 'due_date', 'created_at', 'updated_at']
        read_only_fields = ['id', 'project', 'created_at', 'updated_at']


class ProjectSerializer(serializers.ModelSerializer):
    """Full project payload with team, milestones and ordered tasks embedded"""
    created_by = UserSerializer(read_only=True)
    team = serializers.SerializerMethodField()
    milestones = serializers.SerializerMethodField()
    tasks = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id', 'name', 'description', 'template_type', 'progress',
            'created_by', 'team', 'milestones', 'tasks',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_team(self, obj):
        members = obj.members.select_related('user').order_by('created_at', 'id')
        return ProjectMemberSerializer(members, many=True).data

    def get_milestones(self, obj):
        return MilestoneSerializer(obj.milestones.order_by('created_at', 'id'), many=True).data

    def get_tasks(self, obj):
        tasks = Task.objects.filter(project=obj).order_by('position', 'id')
        return TaskSerializer(tasks, many=True).data


class ProjectCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    template_type = serializers.ChoiceField(choices=Project.TEMPLATE_CHOICES, required=False, default='general')
    tasks = SuggestedTaskSerializer(many=True, required=False, default=list)
    invitee_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Project name is required")
        return value.strip()


class ProjectUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    template_type = serializers.ChoiceField(choices=Project.TEMPLATE_CHOICES, required=False)


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES)


class MilestoneWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    due_date = serializers.DateField(required=False, allow_null=True)
