"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.projects.models import Project, ProjectMember, Milestone
from backend.tasks.models import Task, Comment, Attachment
from backend.invitations.models import ProjectInvitation
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""
    __test__ = False

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', name=None, is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            name=name or username.replace('_', ' ').title(),
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def create_project(owner, name=None, description='', template_type='general'):
        """Create a project with `owner` as its Owner member"""
        if not name:
            name = f'Project_{TestDataFactory.random_string(6)}'
        project = Project.objects.create(
            name=name,
            description=description,
            template_type=template_type,
            created_by=owner,
        )
        ProjectMember.objects.create(project=project, user=owner, role=ProjectMember.ROLE_OWNER)
        return project

    @staticmethod
    def add_member(project, user, role=ProjectMember.ROLE_MEMBER):
        """Add a user to a project with the given role"""
        return ProjectMember.objects.create(project=project, user=user, role=role)

    @staticmethod
    def create_milestone(project, title=None, due_date=None):
        """Create a test milestone"""
        return Milestone.objects.create(
            project=project,
            title=title or f'Milestone_{TestDataFactory.random_string(4)}',
            due_date=due_date,
        )

    @staticmethod
    def create_task(project, title=None, status=Task.STATUS_TODO, priority=Task.PRIORITY_MEDIUM,
                    position=None, milestone=None, assignee=None):
        """Create a test task; appended after the project's last position by default"""
        if position is None:
            last = Task.objects.filter(project=project).order_by('-position').first()
            position = (last.position if last else 0) + 1
        return Task.objects.create(
            project=project,
            title=title or f'Task_{TestDataFactory.random_string(6)}',
            status=status,
            priority=priority,
            position=position,
            milestone=milestone,
            assignee=assignee,
        )

    @staticmethod
    def create_comment(task, user, content='Looks good', attachments=()):
        """Create a test comment with optional attachment dicts"""
        comment = Comment.objects.create(task=task, user=user, content=content)
        for entry in attachments:
            Attachment.objects.create(comment=comment, **entry)
        return comment

    @staticmethod
    def create_invitation(project, invited_user, invited_by, role=ProjectMember.ROLE_MEMBER,
                          status=ProjectInvitation.STATUS_PENDING):
        """Create a test invitation without going through the workflow"""
        return ProjectInvitation.objects.create(
            project=project,
            invited_user=invited_user,
            invited_by=invited_by,
            role=role,
            status=status,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
