from django.contrib import admin
from .models import ProjectInvitation


@admin.register(ProjectInvitation)
class ProjectInvitationAdmin(admin.ModelAdmin):
    list_display = ['project', 'invited_user', 'invited_by', 'role', 'status', 'created_at']
    list_filter = ['status', 'role']
    search_fields = ['project__name', 'invited_user__username', 'invited_user__email']
    readonly_fields = ['created_at', 'updated_at']
