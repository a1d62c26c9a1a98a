"""
Comprehensive test suite for Projects module
Tests: progress calculation, project lifecycle, role enforcement, members,
milestones, payload caching and the progress repair command
"""
from io import StringIO
from unittest import mock
from django.core.cache import cache
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from rest_framework import status
from backend.core.exceptions import PermissionDenied, ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invitations.models import ProjectInvitation
from backend.projects import services
from backend.projects.cache import get_cached_project, cache_project_data
from backend.projects.models import Project, ProjectMember, Milestone
from backend.tasks import services as task_services
from backend.tasks.models import Task


class ProgressCalculationTests(TestCase):
    """Test progress rounding and recalculation"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)

    def test_compute_progress_empty_project(self):
        """Test a project without tasks has zero progress"""
        self.assertEqual(services.compute_progress(0, 0), 0)

    def test_compute_progress_rounds_half_up(self):
        """Test progress is rounded to the nearest integer, halves up"""
        self.assertEqual(services.compute_progress(1, 3), 33)
        self.assertEqual(services.compute_progress(2, 3), 67)
        self.assertEqual(services.compute_progress(1, 8), 13)
        self.assertEqual(services.compute_progress(1, 200), 1)
        self.assertEqual(services.compute_progress(5, 5), 100)

    def test_progress_follows_tasks(self):
        """Test 1 of 2 completed gives 50, adding a third task gives 33"""
        TestDataFactory.create_task(self.project, status=Task.STATUS_COMPLETED)
        TestDataFactory.create_task(self.project)
        self.assertEqual(services.recalculate_progress(self.project), 50)

        TestDataFactory.create_task(self.project)
        services.recalculate_progress(self.project)
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 33)

    def test_delete_completed_task_recomputes(self):
        """Test 4 tasks with 2 completed gives 50, deleting a completed one gives 33"""
        created = [
            task_services.create_task(self.project, self.owner, {'title': title, 'status': task_status})
            for title, task_status in [
                ('One', Task.STATUS_COMPLETED),
                ('Two', Task.STATUS_COMPLETED),
                ('Three', Task.STATUS_TODO),
                ('Four', Task.STATUS_IN_PROGRESS),
            ]
        ]
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 50)
        task_services.delete_task(created[0], self.owner)
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 33)

    def test_all_tasks_deleted_resets_progress(self):
        """Test progress drops back to zero when no tasks remain"""
        task = TestDataFactory.create_task(self.project, status=Task.STATUS_COMPLETED)
        services.recalculate_progress(self.project)
        task.delete()
        self.assertEqual(services.recalculate_progress(self.project), 0)


class ProjectServiceTests(TestCase):
    """Test project creation and owner-only operations"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.outsider = TestDataFactory.create_user()

    def test_create_project_makes_creator_owner(self):
        """Test the creator is the sole Owner of a new project"""
        project = services.create_project('Launch', 'Desc', 'software', self.owner)
        self.assertEqual(project.progress, 0)
        members = list(project.members.values_list('user_id', 'role'))
        self.assertEqual(members, [(self.owner.id, ProjectMember.ROLE_OWNER)])

    def test_create_project_with_tasks_and_invitees(self):
        """Test accepted suggestions become ordered tasks and team picks become invitations"""
        project = services.create_project(
            'Launch', '', 'software', self.owner,
            tasks=[
                {'title': 'First', 'priority': 'High'},
                {'title': 'Second', 'status': 'Completed'},
            ],
            invitee_ids=[self.member.id, self.member.id, self.owner.id, 999999],
        )
        titles = list(Task.objects.filter(project=project).order_by('position').values_list('title', 'position'))
        self.assertEqual(titles, [('First', 1), ('Second', 2)])
        self.assertEqual(project.progress, 50)
        invitations = ProjectInvitation.objects.filter(project=project)
        self.assertEqual(invitations.count(), 1)
        self.assertEqual(invitations.first().invited_user, self.member)
        self.assertEqual(invitations.first().role, ProjectMember.ROLE_MEMBER)
        self.assertFalse(ProjectMember.objects.filter(project=project, user=self.member).exists())

    def test_create_project_requires_name(self):
        """Test a blank name is rejected and nothing is written"""
        with self.assertRaises(ValidationFailed):
            services.create_project('  ', '', 'general', self.owner)
        self.assertEqual(Project.objects.count(), 0)

    def test_create_project_writes_audit_log(self):
        """Test project creation is audited"""
        project = services.create_project('Audited', '', 'general', self.owner)
        self.assertTrue(AuditLog.objects.filter(action='project_create', project_id=project.id).exists())

    def test_only_owner_updates_project(self):
        """Test members cannot edit project settings"""
        project = TestDataFactory.create_project(self.owner, name='Old')
        TestDataFactory.add_member(project, self.member)
        with self.assertRaises(PermissionDenied):
            services.update_project(project, self.member, {'name': 'New'})
        services.update_project(project, self.owner, {'name': 'New'})
        project.refresh_from_db()
        self.assertEqual(project.name, 'New')

    def test_projects_for_user_only_memberships(self):
        """Test a user only sees projects they belong to"""
        mine = TestDataFactory.create_project(self.owner)
        TestDataFactory.create_project(self.outsider)
        self.assertEqual(list(services.projects_for_user(self.owner)), [mine])

    def test_delete_project_cascades(self):
        """Test deleting a project removes its members, milestones, tasks and invitations"""
        project = TestDataFactory.create_project(self.owner)
        milestone = TestDataFactory.create_milestone(project)
        TestDataFactory.create_task(project, milestone=milestone)
        TestDataFactory.create_invitation(project, self.member, self.owner)
        services.delete_project(project, self.owner)
        self.assertFalse(Project.objects.filter(pk=project.pk).exists())
        self.assertEqual(Task.objects.count(), 0)
        self.assertEqual(Milestone.objects.count(), 0)
        self.assertEqual(ProjectInvitation.objects.count(), 0)
        self.assertEqual(ProjectMember.objects.count(), 0)


class MemberManagementTests(TestCase):
    """Test role changes and member removal"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.member)

    def test_change_role(self):
        """Test an owner can demote a member to viewer"""
        membership = services.change_member_role(self.project, self.owner, self.member.id, ProjectMember.ROLE_VIEWER)
        self.assertEqual(membership.role, ProjectMember.ROLE_VIEWER)
        self.assertTrue(AuditLog.objects.filter(action='member_role_change').exists())

    def test_cannot_grant_owner(self):
        """Test the Owner role cannot be handed out through a role change"""
        with self.assertRaises(ValidationFailed):
            services.change_member_role(self.project, self.owner, self.member.id, ProjectMember.ROLE_OWNER)

    def test_owner_role_is_fixed(self):
        """Test the owner's own role cannot be changed"""
        with self.assertRaises(ValidationFailed):
            services.change_member_role(self.project, self.owner, self.owner.id, ProjectMember.ROLE_VIEWER)

    def test_owner_cannot_be_removed(self):
        """Test removing the owner fails and the membership stays"""
        with self.assertRaises(ValidationFailed):
            services.remove_member(self.project, self.owner, self.owner.id)
        self.assertTrue(ProjectMember.objects.filter(project=self.project, user=self.owner).exists())

    def test_member_cannot_remove_others(self):
        """Test only owners remove members"""
        with self.assertRaises(PermissionDenied):
            services.remove_member(self.project, self.member, self.owner.id)

    def test_remove_member_unassigns_tasks(self):
        """Test a removed member's tasks become unassigned"""
        task = TestDataFactory.create_task(self.project, assignee=self.member)
        services.remove_member(self.project, self.owner, self.member.id)
        task.refresh_from_db()
        self.assertIsNone(task.assignee)
        self.assertFalse(ProjectMember.objects.filter(project=self.project, user=self.member).exists())


class MilestoneServiceTests(TestCase):
    """Test milestone operations"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)

    def test_viewer_cannot_create_milestone(self):
        """Test viewers are read-only for milestones"""
        with self.assertRaises(PermissionDenied):
            services.create_milestone(self.project, self.viewer, 'Beta')

    def test_delete_milestone_detaches_tasks(self):
        """Test deleting a milestone keeps its tasks, uncategorised"""
        milestone = services.create_milestone(self.project, self.owner, 'Beta')
        task = TestDataFactory.create_task(self.project, milestone=milestone)
        services.delete_milestone(milestone, self.owner)
        task.refresh_from_db()
        self.assertIsNone(task.milestone)

    def test_update_milestone_partial(self):
        """Test only provided fields change"""
        milestone = services.create_milestone(self.project, self.owner, 'Beta')
        services.update_milestone(milestone, self.owner, {'description': 'Public beta'})
        milestone.refresh_from_db()
        self.assertEqual(milestone.title, 'Beta')
        self.assertEqual(milestone.description, 'Public beta')


class ProjectAPITests(TestCase):
    """Test project endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.outsider = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner, name='Website')
        TestDataFactory.add_member(self.project, self.member)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_templates(self):
        """Test the fixed template list"""
        response = self.client.get('/api/v1/projects/templates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['id'] for t in response.data], ['marketing', 'software', 'event', 'general'])

    def test_list_embeds_team_milestones_and_tasks(self):
        """Test the list returns the full payload per project"""
        milestone = TestDataFactory.create_milestone(self.project, title='Alpha')
        TestDataFactory.create_task(self.project, title='Second', position=2, milestone=milestone)
        TestDataFactory.create_task(self.project, title='First', position=1)
        response = self.client.get('/api/v1/projects/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        payload = response.data[0]
        self.assertEqual([m['role'] for m in payload['team']], ['Owner', 'Member', 'Viewer'])
        self.assertIn('avatar', payload['team'][0]['user'])
        self.assertEqual([m['title'] for m in payload['milestones']], ['Alpha'])
        self.assertEqual([t['title'] for t in payload['tasks']], ['First', 'Second'])

    def test_create_project(self):
        """Test creating a project through the API"""
        response = self.client.post('/api/v1/projects/', {
            'name': 'Campaign',
            'description': 'Spring campaign',
            'template_type': 'marketing',
            'tasks': [{'title': 'Brief', 'priority': 'High'}],
            'invitee_ids': [self.member.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['template_type'], 'marketing')
        self.assertEqual(len(response.data['tasks']), 1)
        self.assertEqual(len(response.data['team']), 1)
        self.assertTrue(ProjectInvitation.objects.filter(project_id=response.data['id'], invited_user=self.member).exists())

    def test_create_project_invalid_template(self):
        """Test unknown template types are rejected"""
        response = self.client.post('/api/v1/projects/', {'name': 'X', 'template_type': 'cooking'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_member_forbidden(self):
        """Test non-members get 403 on project detail"""
        self.client.authenticate_user(self.outsider)
        response = self.client.get(f'/api/v1/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'You are not a member of this project')

    def test_missing_project(self):
        """Test unknown projects return 404"""
        response = self.client.get('/api/v1/projects/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_viewer_cannot_update(self):
        """Test viewers cannot edit the project"""
        self.client.authenticate_user(self.viewer)
        response = self.client.patch(f'/api/v1/projects/{self.project.id}/', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_member_cannot_delete(self):
        """Test only owners delete projects"""
        self.client.authenticate_user(self.member)
        response = self.client.delete(f'/api/v1/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Project.objects.filter(pk=self.project.pk).exists())

    def test_owner_update_and_delete(self):
        """Test owners can edit and delete the project"""
        response = self.client.patch(f'/api/v1/projects/{self.project.id}/', {'name': 'Website v2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Website v2')
        response = self.client.delete(f'/api/v1/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_member_endpoints(self):
        """Test listing, role change and removal through the API"""
        response = self.client.get(f'/api/v1/projects/{self.project.id}/members/')
        self.assertEqual(len(response.data), 3)
        response = self.client.patch(
            f'/api/v1/projects/{self.project.id}/members/{self.member.id}/', {'role': 'Viewer'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'Viewer')
        response = self.client.delete(f'/api/v1/projects/{self.project.id}/members/{self.owner.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v1/projects/{self.project.id}/members/{self.member.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_member_list_unexpected_error(self):
        """Test an unexpected failure is logged and answered with a generic 500"""
        with mock.patch('backend.projects.views.ProjectMemberSerializer', side_effect=RuntimeError('boom')):
            with self.assertLogs('backend.projects', level='ERROR'):
                response = self.client.get(f'/api/v1/projects/{self.project.id}/members/')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'An unexpected error occurred')

    def test_milestone_endpoints(self):
        """Test milestone create, update and delete through the API"""
        response = self.client.post(
            f'/api/v1/projects/{self.project.id}/milestones/', {'title': 'Beta', 'due_date': '2030-01-31'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        milestone_id = response.data['id']
        response = self.client.patch(f'/api/v1/milestones/{milestone_id}/', {'title': 'Public Beta'}, format='json')
        self.assertEqual(response.data['title'], 'Public Beta')
        self.assertEqual(response.data['due_date'], '2030-01-31')
        response = self.client.delete(f'/api/v1/milestones/{milestone_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_payload_cache_invalidated_on_change(self):
        """Test a cached payload is dropped when a task changes"""
        self.client.get(f'/api/v1/projects/{self.project.id}/')
        self.assertIsNotNone(get_cached_project(self.project.id))

        TestDataFactory.create_task(self.project, title='Fresh')
        self.assertIsNone(get_cached_project(self.project.id))

        response = self.client.get(f'/api/v1/projects/{self.project.id}/')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['Fresh'])

    def test_profile_change_invalidates_team(self):
        """Test editing a member's profile refreshes the embedded team"""
        self.client.get(f'/api/v1/projects/{self.project.id}/')
        self.member.name = 'Renamed'
        self.member.save()
        self.assertIsNone(get_cached_project(self.project.id))

    def test_payload_cached_before_commit_is_evicted(self):
        """Test a payload cached from pre-commit rows is dropped once the write commits"""
        task = TestDataFactory.create_task(self.project)
        stale = self.client.get(f'/api/v1/projects/{self.project.id}/').data
        self.assertEqual(stale['progress'], 0)

        with self.captureOnCommitCallbacks(execute=True):
            with transaction.atomic():
                task_services.update_task(task, self.member, {'status': Task.STATUS_COMPLETED})
                # Another request reads committed rows and refills the cache
                cache_project_data(self.project.id, stale)
            self.assertEqual(get_cached_project(self.project.id)['progress'], 0)

        self.assertIsNone(get_cached_project(self.project.id))
        response = self.client.get(f'/api/v1/projects/{self.project.id}/')
        self.assertEqual(response.data['progress'], 100)


class RecalculateProgressCommandTests(TestCase):
    """Test the recalculate_progress management command"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.create_task(self.project, status=Task.STATUS_COMPLETED)
        TestDataFactory.create_task(self.project)
        Project.objects.filter(pk=self.project.pk).update(progress=0)

    def test_dry_run_changes_nothing(self):
        """Test dry run reports but does not save"""
        out = StringIO()
        call_command('recalculate_progress', '--dry-run', stdout=out)
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 0)
        self.assertIn('0% -> 50%', out.getvalue())

    def test_repairs_progress(self):
        """Test stored progress is corrected"""
        call_command('recalculate_progress', '--project-id', str(self.project.id), stdout=StringIO())
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 50)

    def test_only_stale_projects_reported(self):
        """Test projects whose stored progress is already right are left out"""
        current = TestDataFactory.create_project(self.owner, name='Current')
        TestDataFactory.create_task(current, status=Task.STATUS_COMPLETED)
        services.recalculate_progress(current)
        out = StringIO()
        call_command('recalculate_progress', stdout=out)
        self.assertNotIn('Current', out.getvalue())
        self.assertIn('1 projects updated', out.getvalue())
        current.refresh_from_db()
        self.assertEqual(current.progress, 100)
