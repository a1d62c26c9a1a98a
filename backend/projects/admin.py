from django.contrib import admin
from .models import Project, ProjectMember, Milestone


class ProjectMemberInline(admin.TabularInline):
    model = ProjectMember
    extra = 0
    raw_id_fields = ['user']


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'template_type', 'progress', 'created_by', 'created_at']
    list_filter = ['template_type']
    search_fields = ['name', 'description']
    readonly_fields = ['progress', 'created_at', 'updated_at']
    inlines = [ProjectMemberInline, MilestoneInline]


@admin.register(ProjectMember)
class ProjectMemberAdmin(admin.ModelAdmin):
    list_display = ['project', 'user', 'role', 'created_at']
    list_filter = ['role']
    search_fields = ['project__name', 'user__username', 'user__email']


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'due_date', 'created_at']
    search_fields = ['title', 'project__name']
