from django.apps import AppConfig


class InvitationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.invitations'
    label = 'invitations'

    def ready(self):
        """Import signals when app is ready"""
        import backend.invitations.signals  # noqa: F401  # Audit log receivers
