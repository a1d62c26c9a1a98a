"""
Project, membership and milestone operations.

Each function checks the caller's role through `permissions` before writing,
and raises `backend.core.exceptions` errors that views turn into responses.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from backend.core.exceptions import ValidationFailed, NotFound
from backend.core.utils import create_audit_log
from . import permissions
from .models import Project, ProjectMember, Milestone

logger = logging.getLogger(__name__)

User = get_user_model()

PROJECT_TEMPLATES = [
    {'id': key, 'name': label} for key, label in Project.TEMPLATE_CHOICES
]

PROJECT_UPDATE_FIELDS = ('name', 'description', 'template_type')
MILESTONE_UPDATE_FIELDS = ('title', 'description', 'due_date')


# ==================== PROGRESS ====================

def compute_progress(completed, total):
    """Percentage of completed tasks, rounded half up; 0 for an empty project"""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def recalculate_progress(project):
    """Recompute and persist the project's progress from its current tasks"""
    from backend.tasks.models import Task

    tasks = Task.objects.filter(project=project)
    total = tasks.count()
    completed = tasks.filter(status=Task.STATUS_COMPLETED).count()
    progress = compute_progress(completed, total)
    if project.progress != progress:
        logger.debug(f"Project {project.id} progress {project.progress} -> {progress} ({completed}/{total})")
        project.progress = progress
        project.save(update_fields=['progress', 'updated_at'])
    return progress


# ==================== PROJECTS ====================

def get_project(project_id):
    try:
        return Project.objects.get(pk=project_id)
    except Project.DoesNotExist:
        raise NotFound("Project not found")


def projects_for_user(user):
    """Projects the user belongs to, newest first"""
    return Project.objects.filter(members__user=user).order_by('-created_at', '-id')


@transaction.atomic
def create_project(name, description, template_type, creator, tasks=(), invitee_ids=(), request=None):
    """
    Create a project with the creator as its only Owner.

    `tasks` are accepted suggestions created in order; `invitee_ids` receive
    pending Member invitations rather than direct membership.
    """
    from backend.tasks.services import bulk_create_tasks
    from backend.invitations.services import invite

    if not name or not name.strip():
        raise ValidationFailed("Project name is required")

    project = Project.objects.create(
        name=name.strip(),
        description=description or '',
        template_type=template_type or 'general',
        created_by=creator,
        progress=0,
    )
    ProjectMember.objects.create(project=project, user=creator, role=permissions.OWNER)

    if tasks:
        bulk_create_tasks(project, tasks)
        recalculate_progress(project)

    invited = 0
    for user_id in dict.fromkeys(invitee_ids):
        if user_id == creator.id:
            continue
        invitee = User.objects.filter(pk=user_id, is_active=True).first()
        if invitee is None:
            logger.warning(f"Skipping invitation for unknown user {user_id} on new project {project.id}")
            continue
        invite(project, invitee, permissions.MEMBER, creator)
        invited += 1

    create_audit_log(
        request=request,
        user=creator,
        action='project_create',
        model_name='Project',
        object_id=project.id,
        object_name=project.name,
        project_id=project.id,
        changes={'template_type': project.template_type, 'tasks': len(tasks), 'invited': invited},
    )
    logger.info(f"Project '{project.name}' (ID: {project.id}) created by {creator.username} with {len(tasks)} tasks, {invited} invitations")
    return project


def update_project(project, user, fields, request=None):
    permissions.require_owner(project, user, 'edit project settings')
    changes = {}
    for field in PROJECT_UPDATE_FIELDS:
        if field in fields:
            value = fields[field]
            if field == 'name':
                value = (value or '').strip()
                if not value:
                    raise ValidationFailed("Project name is required")
            if getattr(project, field) != value:
                changes[field] = {'old': getattr(project, field), 'new': value}
                setattr(project, field, value)
    if changes:
        project.save()
        create_audit_log(
            request=request, user=user, action='project_update', model_name='Project',
            object_id=project.id, object_name=project.name, project_id=project.id, changes=changes,
        )
        logger.info(f"Project {project.id} updated by {user.username}: {list(changes.keys())}")
    return project


def delete_project(project, user, request=None):
    permissions.require_owner(project, user, 'delete this project')
    project_id, project_name = project.id, project.name
    project.delete()
    create_audit_log(
        request=request, user=user, action='project_delete', model_name='Project',
        object_id=project_id, object_name=project_name, project_id=project_id,
    )
    logger.info(f"Project '{project_name}' (ID: {project_id}) deleted by {user.username}")


# ==================== MEMBERS ====================

def _get_membership(project, member_user_id):
    try:
        return ProjectMember.objects.select_related('user').get(project=project, user_id=member_user_id)
    except ProjectMember.DoesNotExist:
        raise NotFound("User is not a member of this project")


def change_member_role(project, user, member_user_id, role, request=None):
    permissions.require_owner(project, user, 'change member roles')
    if role not in permissions.ASSIGNABLE_ROLES:
        raise ValidationFailed(f"Role must be one of: {', '.join(permissions.ASSIGNABLE_ROLES)}")
    membership = _get_membership(project, member_user_id)
    if membership.role == permissions.OWNER:
        raise ValidationFailed("The project owner's role cannot be changed")
    old_role = membership.role
    if old_role != role:
        membership.role = role
        membership.save(update_fields=['role'])
        create_audit_log(
            request=request, user=user, action='member_role_change', model_name='ProjectMember',
            object_id=membership.id, object_name=str(membership.user), project_id=project.id,
            changes={'role': {'old': old_role, 'new': role}},
        )
        logger.info(f"User {membership.user_id} role in project {project.id}: {old_role} -> {role}")
    return membership


@transaction.atomic
def remove_member(project, user, member_user_id, request=None):
    """Remove a non-owner member; their tasks in this project become unassigned"""
    from backend.tasks.models import Task

    permissions.require_owner(project, user, 'remove members')
    membership = _get_membership(project, member_user_id)
    if membership.role == permissions.OWNER:
        raise ValidationFailed("The project owner cannot be removed")
    unassigned = Task.objects.filter(project=project, assignee_id=member_user_id).update(assignee=None)
    member_name = str(membership.user)
    membership.delete()
    create_audit_log(
        request=request, user=user, action='member_remove', model_name='ProjectMember',
        object_id=member_user_id, object_name=member_name, project_id=project.id,
        changes={'unassigned_tasks': unassigned},
    )
    logger.info(f"User {member_user_id} removed from project {project.id} by {user.username} ({unassigned} tasks unassigned)")


# ==================== MILESTONES ====================

def get_milestone(milestone_id):
    try:
        return Milestone.objects.select_related('project').get(pk=milestone_id)
    except Milestone.DoesNotExist:
        raise NotFound("Milestone not found")


def create_milestone(project, user, title, due_date=None, description=''):
    permissions.require_edit(project, user)
    if not title or not title.strip():
        raise ValidationFailed("Milestone title is required")
    milestone = Milestone.objects.create(
        project=project,
        title=title.strip(),
        due_date=due_date,
        description=description or '',
    )
    logger.info(f"Milestone '{milestone.title}' (ID: {milestone.id}) added to project {project.id} by {user.username}")
    return milestone


def update_milestone(milestone, user, fields):
    permissions.require_edit(milestone.project, user)
    updated = []
    for field in MILESTONE_UPDATE_FIELDS:
        if field in fields:
            value = fields[field]
            if field == 'title':
                value = (value or '').strip()
                if not value:
                    raise ValidationFailed("Milestone title is required")
            if field == 'description':
                value = value or ''
            setattr(milestone, field, value)
            updated.append(field)
    if updated:
        milestone.save(update_fields=updated + ['updated_at'])
    return milestone


def delete_milestone(milestone, user, request=None):
    """Delete a milestone; its tasks stay in the project, uncategorised"""
    project = milestone.project
    permissions.require_edit(project, user)
    milestone_id, title = milestone.id, milestone.title
    milestone.delete()
    create_audit_log(
        request=request, user=user, action='milestone_delete', model_name='Milestone',
        object_id=milestone_id, object_name=title, project_id=project.id,
    )
    logger.info(f"Milestone {milestone_id} deleted from project {project.id} by {user.username}")
