from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from backend.projects.models import Project
from backend.projects.services import recalculate_progress


class Command(BaseCommand):
    help = 'Recomputes stored project progress from task completion'

    def add_arguments(self, parser):
        parser.add_argument(
            '--project-id',
            type=int,
            help='Only recalculate this project',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        projects = Project.objects.all().order_by('id')
        if options.get('project_id') is not None:
            projects = projects.filter(pk=options['project_id'])
            if not projects.exists():
                raise CommandError(f"Project {options['project_id']} does not exist")

        self.stdout.write(f"Checking progress for {projects.count()} projects...")
        fixed = 0

        with transaction.atomic():
            for project in projects:
                stored = project.progress
                progress = recalculate_progress(project)
                if stored != progress:
                    fixed += 1
                    self.stdout.write(self.style.SUCCESS(
                        f"  - {project.name} (ID: {project.id}): {stored}% -> {progress}%"
                    ))

            if dry_run:
                self.stdout.write(self.style.WARNING(f"\nDry run complete. {fixed} projects would change."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS(f"\nProgress recalculated. {fixed} projects updated."))
