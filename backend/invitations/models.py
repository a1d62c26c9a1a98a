from django.conf import settings
from django.db import models
from backend.projects.models import Project, ProjectMember


class ProjectInvitation(models.Model):
    """Offer of project membership; only pending invitations can change state"""
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DECLINED = 'declined'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_DECLINED, 'Declined'),
    ]

    ROLE_CHOICES = [
        (ProjectMember.ROLE_MEMBER, 'Member'),
        (ProjectMember.ROLE_VIEWER, 'Viewer'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='invitations')
    invited_user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='received_invitations')
    invited_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='sent_invitations')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ProjectMember.ROLE_MEMBER)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.invited_user} -> {self.project} ({self.status})"

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING

    class Meta:
        db_table = 'project_invitations'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'invited_user'],
                condition=models.Q(status='pending'),
                name='unique_pending_invitation',
            ),
        ]
        indexes = [
            models.Index(fields=['invited_user', 'status'], name='idx_invitation_user_status'),
        ]
