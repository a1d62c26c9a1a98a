import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.exceptions import ServiceError
from backend.projects.serializers import ProjectMemberSerializer
from backend.projects.services import get_project
from . import services
from .serializers import ProjectInvitationSerializer, InvitationCreateSerializer

logger = logging.getLogger('backend.invitations')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def project_invitations(request, pk):
    """List a project's pending invitations or invite a user (owners only)"""
    try:
        project = get_project(pk)
        if request.method == 'GET':
            invitations = services.pending_for_project(project, request.user)
            return Response(ProjectInvitationSerializer(invitations, many=True).data)

        serializer = InvitationCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        invitation = services.invite(
            project,
            serializer.validated_data['user_id'],
            serializer.validated_data['role'],
            request.user,
            request=request,
        )
        return Response(ProjectInvitationSerializer(invitation).data, status=status.HTTP_201_CREATED)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} invitation request on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_invitations for project {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_invitations(request):
    """Pending invitations addressed to the current user"""
    invitations = services.pending_for_user(request.user)
    return Response(ProjectInvitationSerializer(invitations, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invitation_accept(request, pk):
    try:
        invitation = services.get_invitation(pk)
        membership = services.accept(invitation, request.user, request=request)
        return Response(ProjectMemberSerializer(membership).data)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} could not accept invitation {pk}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error accepting invitation {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invitation_decline(request, pk):
    try:
        invitation = services.get_invitation(pk)
        invitation = services.decline(invitation, request.user, request=request)
        return Response(ProjectInvitationSerializer(invitation).data)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} could not decline invitation {pk}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error declining invitation {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def invitation_cancel(request, pk):
    """Withdraw a pending invitation; already-resolved invitations are left alone"""
    try:
        invitation = services.get_invitation(pk)
        if not services.cancel(invitation, request.user, request=request):
            return Response({'error': services.NOT_PENDING}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} could not cancel invitation {pk}: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error cancelling invitation {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
