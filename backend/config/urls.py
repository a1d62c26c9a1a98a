"""
URL configuration for the Teamboard backend.

Every app mounts its routes under the versioned `api/v1/` prefix.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Teamboard Admin Panel"
admin.site.site_title = "Teamboard Admin Portal"
admin.site.index_title = "Welcome to the Teamboard Admin"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.projects.urls')),
    path('api/v1/', include('backend.tasks.urls')),
    path('api/v1/', include('backend.invitations.urls')),
]
