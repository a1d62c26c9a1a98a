from django.apps import AppConfig


class ProjectsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.projects'
    label = 'projects'

    def ready(self):
        """Import signals when app is ready"""
        import backend.projects.signals  # noqa: F401  # Cache invalidation signals
