from urllib.parse import quote

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model carrying the public profile"""
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150)
    avatar = models.URLField(max_length=500, blank=True)
    job_title = models.CharField(max_length=100, default='Team Member')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.username

    def get_avatar_url(self):
        """Stored avatar, or a generated initials avatar when none was uploaded"""
        if self.avatar:
            return self.avatar
        display = self.name or self.username
        return f"https://ui-avatars.com/api/?name={quote(display)}&background=random"

    class Meta:
        db_table = 'users'
        ordering = ['name']


class AuditLog(models.Model):
    """Audit log for critical project operations"""
    ACTION_CHOICES = [
        ('project_create', 'Project Created'),
        ('project_update', 'Project Updated'),
        ('project_delete', 'Project Deleted'),
        ('member_role_change', 'Member Role Changed'),
        ('member_remove', 'Member Removed'),
        ('invitation_create', 'Invitation Sent'),
        ('invitation_accept', 'Invitation Accepted'),
        ('invitation_decline', 'Invitation Declined'),
        ('invitation_cancel', 'Invitation Cancelled'),
        ('task_delete', 'Task Deleted'),
        ('milestone_delete', 'Milestone Deleted'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., project name, task title)")
    project_id = models.BigIntegerField(blank=True, null=True, help_text="Project the object belonged to, kept as a plain id so entries survive deletion")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_0e3a1f_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5b2c9d_idx'),
            models.Index(fields=['project_id'], name='audit_logs_project_7d41ab_idx'),
        ]
