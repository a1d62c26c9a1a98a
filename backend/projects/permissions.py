"""
Project role checks.

Every service that reads or mutates project data resolves the caller's
membership here first; the HTTP layer never decides access on its own.
"""
from backend.core.exceptions import PermissionDenied
from .models import ProjectMember

OWNER = ProjectMember.ROLE_OWNER
MEMBER = ProjectMember.ROLE_MEMBER
VIEWER = ProjectMember.ROLE_VIEWER

READ_ROLES = (OWNER, MEMBER, VIEWER)
EDIT_ROLES = (OWNER, MEMBER)
MANAGE_ROLES = (OWNER,)

# Roles an invitation or a role change may grant
ASSIGNABLE_ROLES = (MEMBER, VIEWER)


def get_member_role(project, user):
    """Return the user's role in the project, or None for non-members"""
    if user is None or not user.is_authenticated:
        return None
    return (
        ProjectMember.objects
        .filter(project=project, user=user)
        .values_list('role', flat=True)
        .first()
    )


def is_member(project, user):
    return ProjectMember.objects.filter(project=project, user=user).exists()


def require_role(project, user, roles, action='perform this action'):
    """Raise PermissionDenied unless the user holds one of `roles` in the project"""
    role = get_member_role(project, user)
    if role is None:
        raise PermissionDenied("You are not a member of this project")
    if role not in roles:
        raise PermissionDenied(f"{role}s are not allowed to {action}")
    return role


def require_read(project, user):
    return require_role(project, user, READ_ROLES, 'view this project')


def require_edit(project, user, action='modify tasks or milestones'):
    return require_role(project, user, EDIT_ROLES, action)


def require_owner(project, user, action='manage this project'):
    return require_role(project, user, MANAGE_ROLES, action)
