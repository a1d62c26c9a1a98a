"""
Test suite for the core app
Tests: registration, login, profile, user search and audit log access
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.models import User, AuditLog
from backend.core.utils import create_audit_log


class UserModelTests(TestCase):
    """Test User model helpers"""

    def test_str_prefers_name(self):
        """Test string representation uses the display name"""
        user = TestDataFactory.create_user(username='jane', name='Jane Doe')
        self.assertEqual(str(user), 'Jane Doe')

    def test_default_job_title(self):
        """Test new users get the default job title"""
        user = TestDataFactory.create_user()
        self.assertEqual(user.job_title, 'Team Member')

    def test_generated_avatar_when_missing(self):
        """Test an initials avatar URL is produced when no avatar is stored"""
        user = TestDataFactory.create_user(name='Jane Doe')
        self.assertIn('ui-avatars.com', user.get_avatar_url())
        self.assertIn('Jane%20Doe', user.get_avatar_url())

    def test_stored_avatar_is_returned(self):
        """Test a stored avatar wins over the generated one"""
        user = TestDataFactory.create_user()
        user.avatar = 'https://cdn.example.com/a.png'
        user.save()
        self.assertEqual(user.get_avatar_url(), 'https://cdn.example.com/a.png')


class AuthAPITests(TestCase):
    """Test registration, login and token refresh"""

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_tokens(self):
        """Test registration creates a user and returns a token pair"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'newbie',
            'email': 'newbie@test.com',
            'name': 'New Bie',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Str0ng-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'newbie@test.com')
        self.assertTrue(User.objects.filter(username='newbie').exists())

    def test_register_password_mismatch(self):
        """Test registration fails when passwords differ"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'newbie',
            'email': 'newbie@test.com',
            'name': 'New Bie',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Different-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(username='newbie').exists())

    def test_register_duplicate_email(self):
        """Test registration rejects an email that is already taken"""
        TestDataFactory.create_user(username='first', email='taken@test.com')
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'second',
            'email': 'taken@test.com',
            'name': 'Second',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Str0ng-Passw0rd!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_includes_user(self):
        """Test login returns the user profile next to the tokens"""
        TestDataFactory.create_user(username='alice', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'alice',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'alice')
        self.assertIn('access', response.data)

    def test_login_wrong_password(self):
        """Test login fails with bad credentials"""
        TestDataFactory.create_user(username='alice', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'alice',
            'password': 'wrong',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        """Test a refresh token yields a new access token"""
        TestDataFactory.create_user(username='alice', password='testpass123')
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'alice',
            'password': 'testpass123',
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_unauthenticated_request_rejected(self):
        """Test protected endpoints require a token"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ProfileAPITests(TestCase):
    """Test the current user's profile endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(name='Alice')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_get_me(self):
        """Test the profile endpoint returns the caller"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.user.id)

    def test_update_profile(self):
        """Test name and job title can be edited"""
        response = self.client.patch('/api/v1/auth/me/', {'name': 'Alice Smith', 'job_title': 'Designer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'Alice Smith')
        self.assertEqual(self.user.job_title, 'Designer')

    def test_blank_name_rejected(self):
        """Test a blank display name is refused"""
        response = self.client.patch('/api/v1/auth/me/', {'name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class UserSearchAPITests(TestCase):
    """Test user listing and search"""

    def setUp(self):
        self.user = TestDataFactory.create_user(name='Searcher')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_search_by_name_and_email(self):
        """Test search matches name or email, case-insensitively"""
        TestDataFactory.create_user(username='bob', email='bob@corp.com', name='Bob Builder')
        TestDataFactory.create_user(username='carol', email='carol@corp.com', name='Carol')
        response = self.client.get('/api/v1/users/search/', {'q': 'builder'})
        self.assertEqual([u['username'] for u in response.data], ['bob'])
        response = self.client.get('/api/v1/users/search/', {'q': 'CORP.COM'})
        self.assertEqual(len(response.data), 2)

    def test_search_limit(self):
        """Test search returns at most ten users"""
        for i in range(12):
            TestDataFactory.create_user(username=f'match_{i}', name=f'Match {i}')
        response = self.client.get('/api/v1/users/search/', {'q': 'match'})
        self.assertEqual(len(response.data), 10)

    def test_empty_query(self):
        """Test an empty query returns nothing"""
        response = self.client.get('/api/v1/users/search/', {'q': ''})
        self.assertEqual(response.data, [])

    def test_user_detail_not_found(self):
        """Test unknown user ids return 404"""
        response = self.client.get('/api/v1/users/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_requires_fields(self):
        """Test incomplete entries are skipped instead of raising"""
        self.assertIsNone(create_audit_log(user=self.user, action='project_create'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_non_staff_sees_own_entries(self):
        """Test regular users only list their own entries"""
        create_audit_log(user=self.user, action='project_create', model_name='Project', object_id=1, project_id=1)
        create_audit_log(user=self.other, action='project_create', model_name='Project', object_id=2, project_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '1')

    def test_filter_by_project(self):
        """Test filtering by project id"""
        create_audit_log(user=self.user, action='project_create', model_name='Project', object_id=1, project_id=1)
        create_audit_log(user=self.user, action='task_delete', model_name='Task', object_id=7, project_id=2)
        response = self.client.get('/api/v1/audit-logs/', {'project': 2})
        self.assertEqual([entry['action'] for entry in response.data], ['task_delete'])

    def test_invalid_project_filter(self):
        """Test a non-numeric project filter is rejected"""
        response = self.client.get('/api/v1/audit-logs/', {'project': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
