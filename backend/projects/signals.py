"""
Cache invalidation signals
Drop a project's cached payload when the project or any of its rows change
"""
from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from backend.tasks.models import Task
from .cache import invalidate_project_cache
from .models import Project, ProjectMember, Milestone

logger = logging.getLogger(__name__)


def invalidate_now_and_after_commit(project_id):
    """
    Drop the payload immediately and again once the surrounding transaction
    commits, so a reader that cached pre-commit rows in between is evicted
    """
    invalidate_project_cache(project_id)

    def invalidate_after_commit():
        invalidate_project_cache(project_id)

    transaction.on_commit(invalidate_after_commit)


@receiver([post_save, post_delete], sender=Project)
def invalidate_project(sender, instance, **kwargs):
    invalidate_now_and_after_commit(instance.pk)


@receiver([post_save, post_delete], sender=ProjectMember)
@receiver([post_save, post_delete], sender=Milestone)
@receiver([post_save, post_delete], sender=Task)
def invalidate_owning_project(sender, instance, **kwargs):
    invalidate_now_and_after_commit(instance.project_id)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def invalidate_member_projects(sender, instance, created, **kwargs):
    # Team entries embed the member's profile
    if created:
        return
    for project_id in ProjectMember.objects.filter(user=instance).values_list('project_id', flat=True):
        invalidate_now_and_after_commit(project_id)
