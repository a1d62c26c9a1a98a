"""
Task and comment operations.

Positions are strict integers within a project; ties (from concurrent
creates) are broken by id, and a move renumbers the whole project 1..n.
Progress is recomputed after every create, status change and delete.
"""
import logging

from django.db import transaction
from django.db.models import Max
from django.utils.dateparse import parse_date

from backend.core.exceptions import ValidationFailed, NotFound, PermissionDenied
from backend.core.utils import create_audit_log
from backend.projects import permissions
from backend.projects.models import Project
from backend.projects.services import recalculate_progress
from .models import Task, Comment, Attachment

logger = logging.getLogger(__name__)

TASK_FIELDS = ('title', 'description', 'status', 'priority', 'assignee', 'due_date', 'milestone')
STATUSES = [choice for choice, _ in Task.STATUS_CHOICES]
PRIORITIES = [choice for choice, _ in Task.PRIORITY_CHOICES]
ATTACHMENT_FIELDS = ('name', 'url', 'type')


def get_task(task_id):
    try:
        return Task.objects.select_related('project').get(pk=task_id)
    except Task.DoesNotExist:
        raise NotFound("Task not found")


def get_comment(comment_id):
    try:
        return Comment.objects.select_related('task__project', 'user').get(pk=comment_id)
    except Comment.DoesNotExist:
        raise NotFound("Comment not found")


def _next_position(project):
    current = Task.objects.filter(project=project).aggregate(max_position=Max('position'))['max_position']
    return (current or 0) + 1


def _clean_task_fields(project, fields):
    """Keep known fields and check they are valid for this project"""
    cleaned = {key: fields[key] for key in TASK_FIELDS if key in fields}

    if 'title' in cleaned:
        title = (cleaned['title'] or '').strip()
        if not title:
            raise ValidationFailed("Task title is required")
        cleaned['title'] = title
    if 'description' in cleaned:
        cleaned['description'] = cleaned['description'] or ''
    if 'status' in cleaned and cleaned['status'] not in STATUSES:
        raise ValidationFailed(f"Status must be one of: {', '.join(STATUSES)}")
    if 'priority' in cleaned and cleaned['priority'] not in PRIORITIES:
        raise ValidationFailed(f"Priority must be one of: {', '.join(PRIORITIES)}")
    if isinstance(cleaned.get('due_date'), str):
        parsed = parse_date(cleaned['due_date'])
        if parsed is None:
            raise ValidationFailed("Due date must be a valid YYYY-MM-DD date")
        cleaned['due_date'] = parsed

    assignee = cleaned.get('assignee')
    if assignee is not None and not permissions.is_member(project, assignee):
        raise ValidationFailed("Assignee must be a member of this project")

    milestone = cleaned.get('milestone')
    if milestone is not None and milestone.project_id != project.id:
        raise ValidationFailed("Milestone does not belong to this project")

    return cleaned


def create_task(project, user, fields):
    """Append a task to the end of the project order"""
    permissions.require_edit(project, user, 'create tasks')
    cleaned = _clean_task_fields(project, fields)
    if 'title' not in cleaned:
        raise ValidationFailed("Task title is required")

    with transaction.atomic():
        # Serialise position allocation per project
        Project.objects.select_for_update().filter(pk=project.pk).first()
        task = Task.objects.create(project=project, position=_next_position(project), **cleaned)
        recalculate_progress(project)

    logger.info(f"Task '{task.title}' (ID: {task.id}) created in project {project.id} at position {task.position} by {user.username}")
    return task


def bulk_create_tasks(project, tasks):
    """
    Create several tasks in order after the current last position.

    Used when a project is created from accepted suggestions; entries are
    plain dicts with title and optional description/status/priority/due_date.
    """
    position = _next_position(project)
    created = []
    for entry in tasks:
        fields = {key: entry[key] for key in ('title', 'description', 'status', 'priority', 'due_date') if entry.get(key) is not None}
        cleaned = _clean_task_fields(project, fields)
        if 'title' not in cleaned:
            raise ValidationFailed("Task title is required")
        created.append(Task.objects.create(project=project, position=position, **cleaned))
        position += 1
    return created


def update_task(task, user, fields):
    """Apply only the provided fields; progress follows status changes"""
    project = task.project
    permissions.require_edit(project, user, 'update tasks')
    cleaned = _clean_task_fields(project, fields)
    if not cleaned:
        return task

    status_changed = 'status' in cleaned and cleaned['status'] != task.status
    for key, value in cleaned.items():
        setattr(task, key, value)
    with transaction.atomic():
        task.save(update_fields=list(cleaned.keys()) + ['updated_at'])
        if status_changed:
            recalculate_progress(project)
    logger.info(f"Task {task.id} updated by {user.username}: {list(cleaned.keys())}")
    return task


def delete_task(task, user, request=None):
    """Delete a task with its comments and attachments"""
    project = task.project
    permissions.require_edit(project, user, 'delete tasks')
    task_id, title = task.id, task.title
    with transaction.atomic():
        task.delete()
        recalculate_progress(project)
    create_audit_log(
        request=request, user=user, action='task_delete', model_name='Task',
        object_id=task_id, object_name=title, project_id=project.id,
    )
    logger.info(f"Task {task_id} deleted from project {project.id} by {user.username}")


def move_task(task, user, milestone=None, target_task=None):
    """
    Move a task into `milestone` (None = uncategorised).

    With `target_task` the task is placed immediately before it, otherwise at
    the end of the project. Every task of the project is then renumbered
    1..n in (position, id) order.
    """
    project = task.project
    permissions.require_edit(project, user, 'move tasks')

    milestone_id = milestone.id if milestone is not None else None
    if milestone is not None and milestone.project_id != project.id:
        raise ValidationFailed("Milestone does not belong to this project")
    if target_task is not None:
        if target_task.project_id != project.id:
            raise ValidationFailed("Target task does not belong to this project")
        if target_task.pk == task.pk:
            raise ValidationFailed("A task cannot be moved relative to itself")
        if target_task.milestone_id != milestone_id:
            raise ValidationFailed("Target task is not in the target milestone")

    with transaction.atomic():
        ordered = list(
            Task.objects.select_for_update()
            .filter(project=project)
            .exclude(pk=task.pk)
            .order_by('position', 'id')
        )
        if target_task is not None:
            index = next((i for i, other in enumerate(ordered) if other.pk == target_task.pk), None)
            if index is None:
                raise NotFound("Target task not found")
            ordered.insert(index, task)
        else:
            ordered.append(task)

        changed = []
        for position, item in enumerate(ordered, start=1):
            if item is task:
                task.position = position
            elif item.position != position:
                item.position = position
                changed.append(item)
        if changed:
            Task.objects.bulk_update(changed, ['position'])
        task.milestone = milestone
        task.save(update_fields=['milestone', 'position', 'updated_at'])

    logger.info(f"Task {task.id} moved to milestone {milestone_id} at position {task.position} by {user.username}")
    return task


# ==================== COMMENTS ====================

def _clean_attachments(attachments):
    cleaned = []
    for entry in attachments or ():
        missing = [key for key in ATTACHMENT_FIELDS if not entry.get(key)]
        if missing:
            raise ValidationFailed(f"Attachment is missing: {', '.join(missing)}")
        cleaned.append({key: entry[key] for key in ATTACHMENT_FIELDS})
    return cleaned


def add_comment(task, user, content, attachments=()):
    """Any project member, viewers included, may comment"""
    permissions.require_read(task.project, user)
    content = (content or '').strip()
    cleaned_attachments = _clean_attachments(attachments)
    if not content and not cleaned_attachments:
        raise ValidationFailed("Comment must have content or at least one attachment")

    with transaction.atomic():
        comment = Comment.objects.create(task=task, user=user, content=content)
        Attachment.objects.bulk_create([
            Attachment(comment=comment, **entry) for entry in cleaned_attachments
        ])
    logger.info(f"Comment {comment.id} added to task {task.id} by {user.username} with {len(cleaned_attachments)} attachments")
    return comment


def update_comment(comment, user, content):
    permissions.require_read(comment.task.project, user)
    if comment.user_id != user.id:
        raise PermissionDenied("Only the author can edit a comment")
    content = (content or '').strip()
    if not content and not comment.attachments.exists():
        raise ValidationFailed("Comment must have content or at least one attachment")
    comment.content = content
    comment.save(update_fields=['content', 'updated_at'])
    return comment


def delete_comment(comment, user):
    """Authors may delete their comments; owners may delete any comment"""
    role = permissions.require_read(comment.task.project, user)
    if comment.user_id != user.id and role != permissions.OWNER:
        raise PermissionDenied("Only the author or a project owner can delete a comment")
    comment_id = comment.id
    comment.delete()
    logger.info(f"Comment {comment_id} deleted by {user.username}")
