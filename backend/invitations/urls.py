from django.urls import path
from .views import (
    project_invitations, my_invitations,
    invitation_accept, invitation_decline, invitation_cancel,
)

urlpatterns = [
    path('projects/<int:pk>/invitations/', project_invitations, name='project-invitations'),
    path('invitations/', my_invitations, name='my-invitations'),
    path('invitations/<int:pk>/', invitation_cancel, name='invitation-cancel'),
    path('invitations/<int:pk>/accept/', invitation_accept, name='invitation-accept'),
    path('invitations/<int:pk>/decline/', invitation_decline, name='invitation-decline'),
]
