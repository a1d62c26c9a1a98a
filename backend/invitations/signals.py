"""
Invitation lifecycle signals
Sent by the service layer after each state change has been committed;
the receivers below record every transition in the audit log.
"""
from django.dispatch import Signal, receiver
import logging

from backend.core.utils import create_audit_log

logger = logging.getLogger(__name__)

# All four are sent with: invitation, user, request
invitation_created = Signal()
invitation_accepted = Signal()
invitation_declined = Signal()
invitation_cancelled = Signal()



def _audit(action, invitation, user, request):
    create_audit_log(
        request=request,
        user=user,
        action=action,
        model_name='ProjectInvitation',
        object_id=invitation.pk,
        object_name=str(invitation.invited_user),
        project_id=invitation.project_id,
        changes={'role': invitation.role, 'status': invitation.status},
    )


@receiver(invitation_created)
def audit_invitation_created(sender, invitation, user, request=None, **kwargs):
    _audit('invitation_create', invitation, user, request)
    logger.info(f"Invitation {invitation.id}: {invitation.invited_user_id} invited to project {invitation.project_id} as {invitation.role}")


@receiver(invitation_accepted)
def audit_invitation_accepted(sender, invitation, user, request=None, **kwargs):
    _audit('invitation_accept', invitation, user, request)
    logger.info(f"Invitation {invitation.id} accepted by {user.username}")


@receiver(invitation_declined)
def audit_invitation_declined(sender, invitation, user, request=None, **kwargs):
    _audit('invitation_decline', invitation, user, request)
    logger.info(f"Invitation {invitation.id} declined by {user.username}")


@receiver(invitation_cancelled)
def audit_invitation_cancelled(sender, invitation, user, request=None, **kwargs):
    _audit('invitation_cancel', invitation, user, request)
    logger.info(f"Invitation {invitation.id} cancelled by {user.username}")
