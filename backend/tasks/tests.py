"""
Comprehensive test suite for Tasks module
Tests: task CRUD and ordering, progress updates, moves between milestones,
comments with attachments, list filters and generated suggestions
"""
import json
from unittest import mock

import requests
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from backend.core.exceptions import NotFound, PermissionDenied, ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.projects.models import ProjectMember
from backend.tasks import services
from backend.tasks.models import Task, Comment, Attachment
from backend.tasks.suggestions import generate_tasks, parse_suggestions, SuggestionError


def ordered_titles(project):
    return list(Task.objects.filter(project=project).order_by('position', 'id').values_list('title', flat=True))


def positions(project):
    return list(Task.objects.filter(project=project).order_by('position', 'id').values_list('position', flat=True))


class TaskServiceTests(TestCase):
    """Test task create, update and delete"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.outsider = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.member)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)

    def test_create_appends_to_end(self):
        """Test new tasks get increasing positions"""
        first = services.create_task(self.project, self.member, {'title': 'One'})
        second = services.create_task(self.project, self.member, {'title': 'Two'})
        self.assertEqual((first.position, second.position), (1, 2))
        self.assertEqual(first.status, Task.STATUS_TODO)
        self.assertEqual(first.priority, Task.PRIORITY_MEDIUM)

    def test_viewer_cannot_create(self):
        """Test viewers are refused with a role-specific message"""
        with self.assertRaises(PermissionDenied) as ctx:
            services.create_task(self.project, self.viewer, {'title': 'Nope'})
        self.assertEqual(str(ctx.exception), 'Viewers are not allowed to create tasks')
        self.assertEqual(Task.objects.count(), 0)

    def test_non_member_cannot_create(self):
        """Test non-members are refused"""
        with self.assertRaises(PermissionDenied):
            services.create_task(self.project, self.outsider, {'title': 'Nope'})

    def test_blank_title_rejected(self):
        """Test a whitespace title is refused"""
        with self.assertRaises(ValidationFailed):
            services.create_task(self.project, self.owner, {'title': '   '})

    def test_assignee_must_be_member(self):
        """Test tasks cannot be assigned outside the team"""
        with self.assertRaises(ValidationFailed):
            services.create_task(self.project, self.owner, {'title': 'X', 'assignee': self.outsider})
        task = services.create_task(self.project, self.owner, {'title': 'X', 'assignee': self.member})
        self.assertEqual(task.assignee, self.member)

    def test_milestone_must_belong_to_project(self):
        """Test a milestone from another project is refused"""
        other = TestDataFactory.create_project(self.owner)
        foreign = TestDataFactory.create_milestone(other)
        with self.assertRaises(ValidationFailed):
            services.create_task(self.project, self.owner, {'title': 'X', 'milestone': foreign})

    def test_status_change_updates_progress(self):
        """Test completing a task recomputes project progress"""
        task = services.create_task(self.project, self.member, {'title': 'One'})
        services.create_task(self.project, self.member, {'title': 'Two'})
        services.update_task(task, self.member, {'status': Task.STATUS_COMPLETED})
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 50)

    def test_partial_update_keeps_other_fields(self):
        """Test only provided fields are written"""
        task = services.create_task(self.project, self.member, {'title': 'One', 'priority': Task.PRIORITY_HIGH})
        services.update_task(task, self.member, {'title': 'Renamed'})
        task.refresh_from_db()
        self.assertEqual(task.title, 'Renamed')
        self.assertEqual(task.priority, Task.PRIORITY_HIGH)

    def test_status_change_rolled_back_when_progress_fails(self):
        """Test a failed progress recalculation leaves the stored status untouched"""
        task = services.create_task(self.project, self.member, {'title': 'One'})
        with mock.patch('backend.tasks.services.recalculate_progress', side_effect=RuntimeError('boom')):
            with self.assertRaises(RuntimeError):
                services.update_task(task, self.member, {'status': Task.STATUS_COMPLETED})
        task.refresh_from_db()
        self.project.refresh_from_db()
        self.assertEqual(task.status, Task.STATUS_TODO)
        self.assertEqual(self.project.progress, 0)

    def test_delete_updates_progress_and_audits(self):
        """Test deletion recomputes progress and writes an audit entry"""
        done = services.create_task(self.project, self.member, {'title': 'Done', 'status': Task.STATUS_COMPLETED})
        services.create_task(self.project, self.member, {'title': 'Open'})
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 50)
        done_id = done.id
        services.delete_task(done, self.member)
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 0)
        self.assertTrue(AuditLog.objects.filter(action='task_delete', object_id=str(done_id)).exists())

    def test_delete_cascades_comments(self):
        """Test a task's comments and attachments go with it"""
        task = TestDataFactory.create_task(self.project)
        TestDataFactory.create_comment(task, self.owner, attachments=[{'name': 'a.png', 'url': 'https://x/a.png', 'type': 'image/png'}])
        services.delete_task(task, self.owner)
        self.assertEqual(Comment.objects.count(), 0)
        self.assertEqual(Attachment.objects.count(), 0)


class TaskMoveTests(TestCase):
    """Test reordering and milestone moves"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)
        self.a = TestDataFactory.create_task(self.project, title='A')
        self.b = TestDataFactory.create_task(self.project, title='B')
        self.c = TestDataFactory.create_task(self.project, title='C')

    def test_move_before_target(self):
        """Test a task is placed immediately before the target"""
        services.move_task(self.c, self.owner, target_task=self.a)
        self.assertEqual(ordered_titles(self.project), ['C', 'A', 'B'])
        self.assertEqual(positions(self.project), [1, 2, 3])

    def test_move_to_end(self):
        """Test no target appends to the end"""
        services.move_task(self.a, self.owner)
        self.assertEqual(ordered_titles(self.project), ['B', 'C', 'A'])

    def test_move_renumbers_ties(self):
        """Test duplicate positions are made contiguous by id order"""
        Task.objects.filter(project=self.project).update(position=5)
        services.move_task(self.a, self.owner)
        self.assertEqual(ordered_titles(self.project), ['B', 'C', 'A'])
        self.assertEqual(positions(self.project), [1, 2, 3])

    def test_move_into_milestone(self):
        """Test moving a task into a milestone before one of its tasks"""
        milestone = TestDataFactory.create_milestone(self.project)
        services.move_task(self.b, self.owner, milestone=milestone)
        services.move_task(self.a, self.owner, milestone=milestone, target_task=self.b)
        self.a.refresh_from_db()
        self.b.refresh_from_db()
        self.assertEqual(self.a.milestone, milestone)
        self.assertLess(self.a.position, self.b.position)
        self.assertEqual(ordered_titles(self.project), ['C', 'A', 'B'])

    def test_target_must_share_milestone(self):
        """Test the target must be inside the destination milestone"""
        milestone = TestDataFactory.create_milestone(self.project)
        with self.assertRaises(ValidationFailed):
            services.move_task(self.a, self.owner, milestone=milestone, target_task=self.b)

    def test_deleted_target_not_found(self):
        """Test a target removed after it was looked up gives NotFound and no reorder"""
        Task.objects.filter(pk=self.c.pk).delete()
        with self.assertRaises(NotFound) as ctx:
            services.move_task(self.a, self.owner, target_task=self.c)
        self.assertEqual(str(ctx.exception), 'Target task not found')
        self.assertEqual(ordered_titles(self.project), ['A', 'B'])

    def test_cannot_target_self(self):
        with self.assertRaises(ValidationFailed):
            services.move_task(self.a, self.owner, target_task=self.a)

    def test_foreign_milestone_rejected(self):
        """Test milestones of other projects are refused"""
        other = TestDataFactory.create_project(self.owner)
        with self.assertRaises(ValidationFailed):
            services.move_task(self.a, self.owner, milestone=TestDataFactory.create_milestone(other))

    def test_viewer_cannot_move(self):
        with self.assertRaises(PermissionDenied):
            services.move_task(self.a, self.viewer)


class CommentServiceTests(TestCase):
    """Test comments and attachments"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.outsider = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.member)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)
        self.task = TestDataFactory.create_task(self.project)

    def test_viewer_can_comment(self):
        """Test viewers may join the discussion"""
        comment = services.add_comment(self.task, self.viewer, 'Question?')
        self.assertEqual(comment.user, self.viewer)

    def test_outsider_cannot_comment(self):
        with self.assertRaises(PermissionDenied):
            services.add_comment(self.task, self.outsider, 'Hi')

    def test_empty_comment_rejected(self):
        """Test a comment needs text or an attachment"""
        with self.assertRaises(ValidationFailed):
            services.add_comment(self.task, self.member, '   ')

    def test_attachment_only_comment(self):
        """Test an attachment alone is enough"""
        comment = services.add_comment(self.task, self.member, '', [
            {'name': 'spec.pdf', 'url': 'https://files/spec.pdf', 'type': 'application/pdf'},
        ])
        self.assertEqual(comment.attachments.count(), 1)

    def test_incomplete_attachment_rejected(self):
        """Test attachments need name, url and type"""
        with self.assertRaises(ValidationFailed):
            services.add_comment(self.task, self.member, 'See file', [{'name': 'a.png', 'url': ''}])
        self.assertEqual(Comment.objects.count(), 0)

    def test_only_author_edits(self):
        """Test other members cannot edit a comment"""
        comment = services.add_comment(self.task, self.member, 'Original')
        with self.assertRaises(PermissionDenied):
            services.update_comment(comment, self.owner, 'Changed')
        services.update_comment(comment, self.member, 'Changed')
        comment.refresh_from_db()
        self.assertEqual(comment.content, 'Changed')

    def test_owner_deletes_any_comment(self):
        """Test owners moderate comments while other members cannot"""
        comment = services.add_comment(self.task, self.viewer, 'Spam')
        with self.assertRaises(PermissionDenied):
            services.delete_comment(comment, self.member)
        services.delete_comment(comment, self.owner)
        self.assertFalse(Comment.objects.filter(pk=comment.pk).exists())


class TaskAPITests(TestCase):
    """Test task and comment endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.viewer = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.member)
        TestDataFactory.add_member(self.project, self.viewer, ProjectMember.ROLE_VIEWER)
        self.milestone = TestDataFactory.create_milestone(self.project)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.member)

    def url(self, suffix=''):
        return f'/api/v1/projects/{self.project.id}/tasks/{suffix}'

    def test_create_and_list(self):
        """Test creating a task and reading it back"""
        response = self.client.post(self.url(), {
            'title': 'Write copy',
            'priority': 'High',
            'assignee': self.member.id,
            'due_date': '2030-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['position'], 1)
        response = self.client.get(self.url())
        self.assertEqual([t['title'] for t in response.data], ['Write copy'])

    def test_create_missing_title(self):
        response = self.client.post(self.url(), {'priority': 'High'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_viewer_create_forbidden(self):
        """Test viewers get 403 with the role message"""
        self.client.authenticate_user(self.viewer)
        response = self.client.post(self.url(), {'title': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Viewers are not allowed to create tasks')

    def test_filters(self):
        """Test status, milestone and search filters"""
        TestDataFactory.create_task(self.project, title='Design logo', status=Task.STATUS_COMPLETED, milestone=self.milestone)
        TestDataFactory.create_task(self.project, title='Write blog', priority=Task.PRIORITY_HIGH)
        TestDataFactory.create_task(self.project, title='Plan launch', assignee=self.member)

        response = self.client.get(self.url(), {'status': 'Completed'})
        self.assertEqual([t['title'] for t in response.data], ['Design logo'])
        response = self.client.get(self.url(), {'milestone': 'none'})
        self.assertEqual([t['title'] for t in response.data], ['Write blog', 'Plan launch'])
        response = self.client.get(self.url(), {'milestone': self.milestone.id})
        self.assertEqual([t['title'] for t in response.data], ['Design logo'])
        response = self.client.get(self.url(), {'search': 'BLOG'})
        self.assertEqual([t['title'] for t in response.data], ['Write blog'])
        response = self.client.get(self.url(), {'assignee': self.member.id})
        self.assertEqual([t['title'] for t in response.data], ['Plan launch'])
        response = self.client.get(self.url(), {'priority': 'High'})
        self.assertEqual([t['title'] for t in response.data], ['Write blog'])

    def test_patch_task(self):
        """Test partial updates through the API"""
        task = TestDataFactory.create_task(self.project, title='Old')
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'Completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'Completed')
        self.assertEqual(response.data['title'], 'Old')
        self.project.refresh_from_db()
        self.assertEqual(self.project.progress, 100)

    def test_delete_task(self):
        task = TestDataFactory.create_task(self.project)
        response = self.client.delete(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_move_endpoint(self):
        """Test moving a task into a milestone through the API"""
        first = TestDataFactory.create_task(self.project, title='First')
        second = TestDataFactory.create_task(self.project, title='Second')
        response = self.client.post(f'/api/v1/tasks/{second.id}/move/', {
            'milestone': self.milestone.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['milestone'], self.milestone.id)
        response = self.client.post(f'/api/v1/tasks/{first.id}/move/', {
            'milestone': self.milestone.id,
            'target_task': second.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(ordered_titles(self.project), ['First', 'Second'])

    def test_comment_endpoints(self):
        """Test adding, listing, editing and deleting comments"""
        task = TestDataFactory.create_task(self.project)
        self.client.authenticate_user(self.viewer)
        response = self.client.post(f'/api/v1/tasks/{task.id}/comments/', {
            'content': 'Looks great',
            'attachments': [{'name': 'shot.png', 'url': 'https://files/shot.png', 'type': 'image/png'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        comment_id = response.data['id']
        self.assertEqual(response.data['attachments'][0]['name'], 'shot.png')
        self.assertEqual(response.data['user']['id'], self.viewer.id)

        response = self.client.get(f'/api/v1/tasks/{task.id}/comments/')
        self.assertEqual(len(response.data), 1)

        response = self.client.patch(f'/api/v1/comments/{comment_id}/', {'content': 'Edited'}, format='json')
        self.assertEqual(response.data['content'], 'Edited')

        self.client.authenticate_user(self.member)
        response = self.client.delete(f'/api/v1/comments/{comment_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.owner)
        response = self.client.delete(f'/api/v1/comments/{comment_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_empty_comment_rejected(self):
        task = TestDataFactory.create_task(self.project)
        response = self.client.post(f'/api/v1/tasks/{task.id}/comments/', {'content': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Comment must have content or at least one attachment')


def gemini_response(items, status_code=200):
    response = mock.Mock()
    response.status_code = status_code
    response.text = 'error' if status_code != 200 else ''
    response.json.return_value = {
        'candidates': [{'content': {'parts': [{'text': json.dumps(items)}]}}],
    }
    return response


@override_settings(
    GEMINI_API_KEY='test-key',
    TASK_SUGGESTION_MAX_RETRIES=3,
    TASK_SUGGESTION_BACKOFF_SECONDS=1,
)
class SuggestionTests(TestCase):
    """Test generated task suggestions, retries and fallback"""

    @override_settings(GEMINI_API_KEY='')
    def test_fallback_without_key(self):
        """Test the fixed five tasks are returned when no key is configured"""
        with mock.patch('backend.tasks.suggestions.requests.post') as post:
            tasks = generate_tasks('Launch a website', 'Software')
        post.assert_not_called()
        self.assertEqual([t['id'] for t in tasks], ['sim-1', 'sim-2', 'sim-3', 'sim-4', 'sim-5'])
        self.assertEqual(tasks[0]['title'], 'Initial Project Setup')
        self.assertEqual(tasks[0]['due_date'], timezone.localdate().isoformat())
        self.assertIsNone(tasks[1]['due_date'])

    @mock.patch('backend.tasks.suggestions.time.sleep')
    @mock.patch('backend.tasks.suggestions.requests.post')
    def test_generated_tasks(self, post, sleep):
        """Test generated items get ids, Todo status and staggered due dates"""
        post.return_value = gemini_response([
            {'title': 'Kickoff', 'priority': 'High'},
            {'title': 'Research', 'priority': 'Urgent'},
        ])
        tasks = generate_tasks('Launch a website', 'Software')
        self.assertEqual([t['title'] for t in tasks], ['Kickoff', 'Research'])
        self.assertEqual(tasks[1]['priority'], 'Medium')
        self.assertTrue(all(t['status'] == 'Todo' for t in tasks))
        self.assertTrue(tasks[0]['id'].startswith('generated-'))
        self.assertLess(tasks[0]['due_date'], tasks[1]['due_date'])
        sleep.assert_not_called()

    @mock.patch('backend.tasks.suggestions.time.sleep')
    @mock.patch('backend.tasks.suggestions.requests.post')
    def test_well_formed_list_kept_whole(self, post, sleep):
        """Test a six item answer comes back complete and in order"""
        items = [
            {'title': title, 'priority': priority}
            for title, priority in [
                ('Brief', 'High'), ('Budget', 'Medium'), ('Venue', 'High'),
                ('Speakers', 'Low'), ('Promotion', 'Medium'), ('Retro', 'Low'),
            ]
        ]
        post.return_value = gemini_response(items)
        tasks = generate_tasks('Trade show', 'Event')
        self.assertEqual(len(tasks), 6)
        self.assertEqual([(t['title'], t['priority']) for t in tasks], [(i['title'], i['priority']) for i in items])
        self.assertEqual(len({t['id'] for t in tasks}), 6)
        self.assertEqual(post.call_count, 1)
        sleep.assert_not_called()

    @mock.patch('backend.tasks.suggestions.time.sleep')
    @mock.patch('backend.tasks.suggestions.requests.post')
    def test_truncates_to_eight(self, post, sleep):
        post.return_value = gemini_response([{'title': f'T{i}', 'priority': 'Low'} for i in range(12)])
        self.assertEqual(len(generate_tasks('x', 'General')), 8)

    @mock.patch('backend.tasks.suggestions.time.sleep')
    @mock.patch('backend.tasks.suggestions.requests.post')
    def test_retry_then_success(self, post, sleep):
        """Test a failed attempt is retried after the first backoff"""
        post.side_effect = [
            requests.exceptions.ConnectionError('down'),
            gemini_response([{'title': 'Recovered', 'priority': 'Low'}]),
        ]
        tasks = generate_tasks('x', 'General')
        self.assertEqual(tasks[0]['title'], 'Recovered')
        sleep.assert_called_once_with(1.0)

    @mock.patch('backend.tasks.suggestions.time.sleep')
    @mock.patch('backend.tasks.suggestions.requests.post')
    def test_fallback_after_retries(self, post, sleep):
        """Test three failures back off 1s then 2s and fall back"""
        post.return_value = gemini_response([], status_code=500)
        tasks = generate_tasks('x', 'General')
        self.assertEqual(post.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])
        self.assertEqual(tasks[0]['id'], 'sim-1')

    def test_parse_rejects_empty_and_malformed(self):
        """Test empty arrays and bad JSON count as failed attempts"""
        with self.assertRaises(SuggestionError):
            parse_suggestions('[]')
        with self.assertRaises(SuggestionError):
            parse_suggestions('not json')
        with self.assertRaises(SuggestionError):
            parse_suggestions('{"title": "x"}')

    @override_settings(GEMINI_API_KEY='')
    def test_suggestion_endpoint(self):
        """Test the HTTP endpoint returns suggestions"""
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.post('/api/v1/suggestions/tasks/', {'description': 'Trade show', 'project_type': 'Event'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 5)
