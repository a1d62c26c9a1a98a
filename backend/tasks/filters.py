import django_filters
from django.db.models import Q
from .models import Task


class TaskFilter(django_filters.FilterSet):
    """Query-string filters for a project's task list"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=Task.STATUS_CHOICES)
    priority = django_filters.ChoiceFilter(choices=Task.PRIORITY_CHOICES)
    assignee = django_filters.NumberFilter(field_name='assignee_id', lookup_expr='exact')
    # Numeric id, or "none" for tasks outside any milestone
    milestone = django_filters.CharFilter(method='filter_milestone', label='Milestone')
    due_before = django_filters.DateFilter(field_name='due_date', lookup_expr='lte')
    due_after = django_filters.DateFilter(field_name='due_date', lookup_expr='gte')

    class Meta:
        model = Task
        fields = ['search', 'status', 'priority', 'assignee', 'milestone', 'due_before', 'due_after']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(Q(title__icontains=value) | Q(description__icontains=value))

    def filter_milestone(self, queryset, name, value):
        value = (value or '').strip().lower()
        if not value:
            return queryset
        if value == 'none':
            return queryset.filter(milestone__isnull=True)
        if not value.isdigit():
            return queryset.none()
        return queryset.filter(milestone_id=int(value))
