from django.urls import path
from .views import (
    project_list_create, project_templates, project_detail,
    project_members, project_member_detail,
    project_milestones, milestone_detail,
)

urlpatterns = [
    # Project endpoints
    path('projects/', project_list_create, name='project-list-create'),
    path('projects/templates/', project_templates, name='project-templates'),
    path('projects/<int:pk>/', project_detail, name='project-detail'),

    # Member endpoints
    path('projects/<int:pk>/members/', project_members, name='project-members'),
    path('projects/<int:pk>/members/<int:user_id>/', project_member_detail, name='project-member-detail'),

    # Milestone endpoints
    path('projects/<int:pk>/milestones/', project_milestones, name='project-milestones'),
    path('milestones/<int:pk>/', milestone_detail, name='milestone-detail'),
]
