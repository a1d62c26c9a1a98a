import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from backend.core.exceptions import ServiceError
from backend.projects import permissions
from backend.projects.services import get_project
from . import services
from .filters import TaskFilter
from .models import Task
from .serializers import (
    TaskSerializer, TaskWriteSerializer, TaskMoveSerializer,
    CommentSerializer, CommentCreateSerializer, CommentUpdateSerializer,
    SuggestionRequestSerializer,
)
from .suggestions import generate_tasks

logger = logging.getLogger('backend.tasks')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def project_tasks(request, pk):
    """List a project's tasks (filterable) or create a task"""
    try:
        project = get_project(pk)
        if request.method == 'GET':
            permissions.require_read(project, request.user)
            queryset = Task.objects.filter(project=project).order_by('position', 'id')
            task_filter = TaskFilter(request.query_params, queryset=queryset)
            if not task_filter.is_valid():
                return Response(task_filter.errors, status=status.HTTP_400_BAD_REQUEST)
            return Response(TaskSerializer(task_filter.qs, many=True).data)

        serializer = TaskWriteSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Task creation validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        task = services.create_task(project, request.user, serializer.validated_data)
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} task request on project {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in project_tasks for project {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def task_detail(request, pk):
    """Retrieve, partially update or delete a task"""
    try:
        task = services.get_task(pk)

        if request.method == 'GET':
            permissions.require_read(task.project, request.user)
            return Response(TaskSerializer(task).data)
        elif request.method == 'PATCH':
            serializer = TaskWriteSerializer(data=request.data, partial=True)
            if not serializer.is_valid():
                logger.warning(f"Task {pk} update validation failed: {serializer.errors}")
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            task = services.update_task(task, request.user, serializer.validated_data)
            return Response(TaskSerializer(task).data)
        else:  # DELETE
            services.delete_task(task, request.user, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} request on task {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in task_detail for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def task_move(request, pk):
    """Move a task to a milestone, optionally before another task"""
    try:
        task = services.get_task(pk)
        serializer = TaskMoveSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        task = services.move_task(
            task,
            request.user,
            milestone=serializer.validated_data.get('milestone'),
            target_task=serializer.validated_data.get('target_task'),
        )
        return Response(TaskSerializer(task).data)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} move of task {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in task_move for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def task_comments(request, pk):
    """List a task's comments or add one"""
    try:
        task = services.get_task(pk)
        if request.method == 'GET':
            permissions.require_read(task.project, request.user)
            comments = task.comments.select_related('user').prefetch_related('attachments')
            return Response(CommentSerializer(comments, many=True).data)

        serializer = CommentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        comment = services.add_comment(
            task,
            request.user,
            serializer.validated_data.get('content', ''),
            serializer.validated_data.get('attachments', []),
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} comment request on task {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in task_comments for task {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def comment_detail(request, pk):
    """Edit or delete a comment"""
    try:
        comment = services.get_comment(pk)
        if request.method == 'PATCH':
            serializer = CommentUpdateSerializer(data=request.data)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            comment = services.update_comment(comment, request.user, serializer.validated_data['content'])
            return Response(CommentSerializer(comment).data)
        else:  # DELETE
            services.delete_comment(comment, request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        logger.warning(f"User {request.user.username} request on comment {pk} rejected: {e}")
        return Response({'error': str(e)}, status=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error in comment_detail for pk {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def suggest_tasks(request):
    """Generate starter task suggestions for a project description"""
    serializer = SuggestionRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    suggestions = generate_tasks(
        serializer.validated_data['description'],
        serializer.validated_data['project_type'] or 'General',
    )
    logger.info(f"User {request.user.username} requested task suggestions ({len(suggestions)} returned)")
    return Response(suggestions)
