from django.conf import settings
from django.db import models


class Project(models.Model):
    """A team project; progress is derived from its tasks"""
    TEMPLATE_CHOICES = [
        ('marketing', 'Marketing Campaign'),
        ('software', 'Software Launch'),
        ('event', 'Event Planning'),
        ('general', 'General Project'),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    template_type = models.CharField(max_length=50, default='general')
    progress = models.PositiveSmallIntegerField(default=0)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_projects')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'projects'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(progress__lte=100), name='project_progress_lte_100'),
        ]


class ProjectMember(models.Model):
    """Pairs a user with a project-scoped role"""
    ROLE_OWNER = 'Owner'
    ROLE_MEMBER = 'Member'
    ROLE_VIEWER = 'Viewer'
    ROLE_CHOICES = [
        (ROLE_OWNER, 'Owner'),
        (ROLE_MEMBER, 'Member'),
        (ROLE_VIEWER, 'Viewer'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='project_memberships')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} - {self.project} ({self.role})"

    class Meta:
        db_table = 'project_members'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['project', 'user'], name='unique_project_member'),
        ]
        indexes = [
            models.Index(fields=['user', 'project'], name='idx_member_user_project'),
        ]


class Milestone(models.Model):
    """Named grouping of tasks with an optional due date"""
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='milestones')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    due_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'milestones'
        ordering = ['created_at', 'id']
