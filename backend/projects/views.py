import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.exceptions import ServiceError
from . import permissions, services
from .cache import get_cached_project, cache_project_data
from .serializers import (
    ProjectSerializer, ProjectCreateSerializer, ProjectUpdateSerializer,
    ProjectMemberSerializer, MemberRoleSerializer,
    MilestoneSerializer, MilestoneWriteSerializer,
)

logger = logging.getLogger('backend.projects')


def serialize_project(project):
    """Full project payload, served from the per-project cache when present"""
    data = get_cached_project(project.id)
    if data is None:
        data = ProjectSerializer(project).data
        cache_project_data(project.id, data)
    return data


# Project views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def project_list_create(request):
    """List the caller's projects or create a new one"""
    try:
        if request.method == 'GET':
            projects = services.projects_for_user(request.user)
            response_data = [serialize_project(project) for project in projects]
            logger.debug(f"Returning {len(response_data)} projects for {request.user.username}")
            return Response(response_data)

        serializer = ProjectCreateSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Project creation validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        project = services.create_project(
            name=data['name'],
            description=data.get('description', ''),
            template_type=data.get('template_type', 'general'),
            creator=request.user,
            tasks=data.get('tasks', []),
            invitee_ids=data.get('invitee_ids', []),
            request=request,
        )
        return Response(serialize_project(project), status=status.HTTP_201_CREATED)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} project request rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_templates(request):
    return Response(services.PROJECT_TEMPLATES)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def project_detail(request, pk):
    """Retrieve, update or delete a project"""
    try:
        project = services.get_project(pk)

        if request.method == 'GET':
            permissions.require_read(project, request.user)
            return Response(serialize_project(project))
        elif request.method == 'PATCH':
            serializer = ProjectUpdateSerializer(data=request.data, partial=True)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            project = services.update_project(project, request.user, serializer.validated_data, request=request)
            return Response(serialize_project(project))
        else:  # DELETE
            services.delete_project(project, request.user, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} request on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_detail for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# Member views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_members(request, pk):
    """Team with profiles and roles"""
    try:
        project = services.get_project(pk)
        permissions.require_read(project, request.user)
        members = project.members.select_related('user').order_by('created_at', 'id')
        return Response(ProjectMemberSerializer(members, many=True).data)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} member list on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_members for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def project_member_detail(request, pk, user_id):
    """Change a member's role or remove them from the project"""
    try:
        project = services.get_project(pk)
        if request.method == 'PATCH':
            serializer = MemberRoleSerializer(data=request.data)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            membership = services.change_member_role(
                project, request.user, user_id, serializer.validated_data['role'], request=request
            )
            return Response(ProjectMemberSerializer(membership).data)
        else:  # DELETE
            services.remove_member(project, request.user, user_id, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} member change on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_member_detail for project {pk}, user {user_id}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# Milestone views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def project_milestones(request, pk):
    try:
        project = services.get_project(pk)
        if request.method == 'GET':
            permissions.require_read(project, request.user)
            milestones = project.milestones.order_by('created_at', 'id')
            return Response(MilestoneSerializer(milestones, many=True).data)

        serializer = MilestoneWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        milestone = services.create_milestone(
            project,
            request.user,
            serializer.validated_data['title'],
            due_date=serializer.validated_data.get('due_date'),
            description=serializer.validated_data.get('description', ''),
        )
        return Response(MilestoneSerializer(milestone).data, status=status.HTTP_201_CREATED)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} milestone request on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_milestones for project {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def milestone_detail(request, pk):
    try:
        milestone = services.get_milestone(pk)
        if request.method == 'PATCH':
            serializer = MilestoneWriteSerializer(data=request.data, partial=True)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            milestone = services.update_milestone(milestone, request.user, serializer.validated_data)
            return Response(MilestoneSerializer(milestone).data)
        else:  # DELETE
            services.delete_milestone(milestone, request.user, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} request on milestone {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in milestone_detail for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
