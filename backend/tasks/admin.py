from django.contrib import admin
from .models import Task, Comment, Attachment


class AttachmentInline(admin.TabularInline):
    model = Attachment
    extra = 0


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'milestone', 'status', 'priority', 'assignee', 'due_date', 'position']
    list_filter = ['status', 'priority', 'project']
    search_fields = ['title', 'description', 'project__name']
    ordering = ['project', 'position', 'id']


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'comment', 'created_at']
    search_fields = ['name', 'url']


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['task', 'user', 'created_at']
    search_fields = ['content', 'user__username', 'task__title']
    ordering = ['-created_at']
    inlines = [AttachmentInline]
