"""
Invitation workflow: pending -> accepted | declined, or pending -> deleted.

Accepted and declined invitations are final. Acceptance locks the
invitation row and creates the membership in the same transaction, so an
invitation can never produce more than one membership.
"""
import logging

from django.db import IntegrityError, transaction

from backend.core.exceptions import ValidationFailed, NotFound, PermissionDenied
from backend.projects import permissions
from backend.projects.models import ProjectMember
from .models import ProjectInvitation
from .signals import (
    invitation_created, invitation_accepted,
    invitation_declined, invitation_cancelled,
)

logger = logging.getLogger(__name__)

ALREADY_MEMBER = "User is already a member of this project"
ALREADY_INVITED = "User already has a pending invitation to this project"
NOT_PENDING = "Invitation not found or already processed"


def get_invitation(invitation_id):
    try:
        return ProjectInvitation.objects.select_related('project', 'invited_user', 'invited_by').get(pk=invitation_id)
    except ProjectInvitation.DoesNotExist:
        raise NotFound("Invitation not found")


def invite(project, invitee, role, inviter, request=None):
    """Create a pending invitation; nothing is written when a check fails"""
    permissions.require_owner(project, inviter, 'invite users')
    if role not in permissions.ASSIGNABLE_ROLES:
        raise ValidationFailed(f"Role must be one of: {', '.join(permissions.ASSIGNABLE_ROLES)}")
    if permissions.is_member(project, invitee):
        raise ValidationFailed(ALREADY_MEMBER)
    if ProjectInvitation.objects.filter(
        project=project, invited_user=invitee, status=ProjectInvitation.STATUS_PENDING
    ).exists():
        raise ValidationFailed(ALREADY_INVITED)

    try:
        with transaction.atomic():
            invitation = ProjectInvitation.objects.create(
                project=project,
                invited_user=invitee,
                invited_by=inviter,
                role=role,
            )
    except IntegrityError:
        # Lost a race against a concurrent invite
        raise ValidationFailed(ALREADY_INVITED)

    invitation_created.send(sender=ProjectInvitation, invitation=invitation, user=inviter, request=request)
    return invitation


def accept(invitation, user, request=None):
    """Join the project with the invitation's role; returns the membership"""
    if invitation.invited_user_id != user.id:
        raise PermissionDenied("Only the invited user can accept this invitation")

    with transaction.atomic():
        locked = ProjectInvitation.objects.select_for_update().filter(pk=invitation.pk).first()
        if locked is None or not locked.is_pending:
            raise NotFound(NOT_PENDING)
        if ProjectMember.objects.filter(project_id=locked.project_id, user=user).exists():
            raise ValidationFailed(ALREADY_MEMBER)
        try:
            with transaction.atomic():
                membership = ProjectMember.objects.create(
                    project_id=locked.project_id,
                    user=user,
                    role=locked.role,
                )
        except IntegrityError:
            raise ValidationFailed(ALREADY_MEMBER)
        locked.status = ProjectInvitation.STATUS_ACCEPTED
        locked.save(update_fields=['status', 'updated_at'])

    invitation.status = locked.status
    invitation_accepted.send(sender=ProjectInvitation, invitation=locked, user=user, request=request)
    return membership


def decline(invitation, user, request=None):
    if invitation.invited_user_id != user.id:
        raise PermissionDenied("Only the invited user can decline this invitation")

    with transaction.atomic():
        locked = ProjectInvitation.objects.select_for_update().filter(pk=invitation.pk).first()
        if locked is None or not locked.is_pending:
            raise NotFound(NOT_PENDING)
        locked.status = ProjectInvitation.STATUS_DECLINED
        locked.save(update_fields=['status', 'updated_at'])

    invitation.status = locked.status
    invitation_declined.send(sender=ProjectInvitation, invitation=locked, user=user, request=request)
    return locked


def cancel(invitation, user, request=None):
    """Withdraw a pending invitation; returns False if it was already resolved"""
    permissions.require_owner(invitation.project, user, 'cancel invitations')
    deleted, _ = ProjectInvitation.objects.filter(
        pk=invitation.pk, status=ProjectInvitation.STATUS_PENDING
    ).delete()
    if not deleted:
        logger.info(f"Invitation {invitation.pk} already {invitation.status}; nothing to cancel")
        return False
    invitation_cancelled.send(sender=ProjectInvitation, invitation=invitation, user=user, request=request)
    return True


def pending_for_project(project, user):
    """Pending invitations of a project, newest first (Owner only)"""
    permissions.require_owner(project, user, 'view invitations')
    return (
        ProjectInvitation.objects
        .filter(project=project, status=ProjectInvitation.STATUS_PENDING)
        .select_related('project', 'invited_user', 'invited_by')
        .order_by('-created_at', '-id')
    )


def pending_for_user(user):
    """The user's own pending invitations, newest first"""
    return (
        ProjectInvitation.objects
        .filter(invited_user=user, status=ProjectInvitation.STATUS_PENDING)
        .select_related('project', 'invited_user', 'invited_by')
        .order_by('-created_at', '-id')
    )
