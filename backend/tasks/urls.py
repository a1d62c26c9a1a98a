from django.urls import path
from .views import (
    project_tasks, task_detail, task_move,
    task_comments, comment_detail,
    suggest_tasks,
)

urlpatterns = [
    # Task endpoints
    path('projects/<int:pk>/tasks/', project_tasks, name='project-tasks'),
    path('tasks/<int:pk>/', task_detail, name='task-detail'),
    path('tasks/<int:pk>/move/', task_move, name='task-move'),

    # Comment endpoints
    path('tasks/<int:pk>/comments/', task_comments, name='task-comments'),
    path('comments/<int:pk>/', comment_detail, name='comment-detail'),

    # Suggestion endpoint
    path('suggestions/tasks/', suggest_tasks, name='suggest-tasks'),
]
