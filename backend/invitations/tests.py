"""
Test suite for Invitations module
Tests: invite checks, accept/decline/cancel state machine, signals and endpoints
"""
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from backend.core.exceptions import NotFound, PermissionDenied, ValidationFailed
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.invitations import services
from backend.invitations.models import ProjectInvitation
from backend.invitations.signals import invitation_accepted
from backend.projects.models import ProjectMember


class InvitationModelTests(TestCase):
    """Test the pending-only uniqueness constraint"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.invitee = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)

    def test_duplicate_pending_rejected_by_database(self):
        """Test two pending invitations for the same user cannot coexist"""
        TestDataFactory.create_invitation(self.project, self.invitee, self.owner)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                TestDataFactory.create_invitation(self.project, self.invitee, self.owner)

    def test_resolved_invitations_do_not_block(self):
        """Test a declined invitation does not prevent a new one"""
        TestDataFactory.create_invitation(self.project, self.invitee, self.owner, status=ProjectInvitation.STATUS_DECLINED)
        invitation = TestDataFactory.create_invitation(self.project, self.invitee, self.owner)
        self.assertTrue(invitation.is_pending)


class InviteServiceTests(TestCase):
    """Test invitation creation rules"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.member = TestDataFactory.create_user()
        self.invitee = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        TestDataFactory.add_member(self.project, self.member)

    def test_invite_creates_pending(self):
        """Test an owner invite creates a pending invitation and an audit entry"""
        invitation = services.invite(self.project, self.invitee, ProjectMember.ROLE_VIEWER, self.owner)
        self.assertEqual(invitation.status, ProjectInvitation.STATUS_PENDING)
        self.assertEqual(invitation.role, ProjectMember.ROLE_VIEWER)
        self.assertTrue(AuditLog.objects.filter(action='invitation_create', object_id=str(invitation.id)).exists())

    def test_only_owner_invites(self):
        """Test members cannot invite"""
        with self.assertRaises(PermissionDenied):
            services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.member)
        self.assertEqual(ProjectInvitation.objects.count(), 0)

    def test_cannot_invite_as_owner(self):
        """Test invitations only grant Member or Viewer"""
        with self.assertRaises(ValidationFailed):
            services.invite(self.project, self.invitee, ProjectMember.ROLE_OWNER, self.owner)

    def test_existing_member_rejected(self):
        """Test inviting a member fails before any row is written"""
        with self.assertRaises(ValidationFailed) as ctx:
            services.invite(self.project, self.member, ProjectMember.ROLE_MEMBER, self.owner)
        self.assertEqual(str(ctx.exception), 'User is already a member of this project')
        self.assertEqual(ProjectInvitation.objects.count(), 0)

    def test_duplicate_pending_rejected(self):
        """Test a second pending invitation is refused with a clear message"""
        services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        with self.assertRaises(ValidationFailed) as ctx:
            services.invite(self.project, self.invitee, ProjectMember.ROLE_VIEWER, self.owner)
        self.assertEqual(str(ctx.exception), 'User already has a pending invitation to this project')
        self.assertEqual(ProjectInvitation.objects.count(), 1)


class InvitationWorkflowTests(TestCase):
    """Test accept, decline and cancel transitions"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.invitee = TestDataFactory.create_user()
        self.stranger = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        self.invitation = services.invite(self.project, self.invitee, ProjectMember.ROLE_VIEWER, self.owner)

    def test_accept_creates_one_membership(self):
        """Test accepting joins the project with the invited role"""
        membership = services.accept(self.invitation, self.invitee)
        self.assertEqual(membership.role, ProjectMember.ROLE_VIEWER)
        self.invitation.refresh_from_db()
        self.assertEqual(self.invitation.status, ProjectInvitation.STATUS_ACCEPTED)
        self.assertEqual(ProjectMember.objects.filter(project=self.project, user=self.invitee).count(), 1)

    def test_accept_twice_fails(self):
        """Test accepted invitations are final"""
        services.accept(self.invitation, self.invitee)
        with self.assertRaises(NotFound) as ctx:
            services.accept(self.invitation, self.invitee)
        self.assertEqual(str(ctx.exception), 'Invitation not found or already processed')
        self.assertEqual(ProjectMember.objects.filter(project=self.project, user=self.invitee).count(), 1)

    def test_only_invitee_accepts(self):
        with self.assertRaises(PermissionDenied):
            services.accept(self.invitation, self.stranger)
        with self.assertRaises(PermissionDenied):
            services.accept(self.invitation, self.owner)

    def test_accept_when_already_member_rolls_back(self):
        """Test an existing membership aborts acceptance and leaves the invitation pending"""
        TestDataFactory.add_member(self.project, self.invitee)
        with self.assertRaises(ValidationFailed):
            services.accept(self.invitation, self.invitee)
        self.invitation.refresh_from_db()
        self.assertEqual(self.invitation.status, ProjectInvitation.STATUS_PENDING)
        self.assertEqual(ProjectMember.objects.get(project=self.project, user=self.invitee).role, ProjectMember.ROLE_MEMBER)

    def test_decline(self):
        """Test declining changes no membership and cannot be repeated"""
        services.decline(self.invitation, self.invitee)
        self.invitation.refresh_from_db()
        self.assertEqual(self.invitation.status, ProjectInvitation.STATUS_DECLINED)
        self.assertFalse(ProjectMember.objects.filter(project=self.project, user=self.invitee).exists())
        with self.assertRaises(NotFound):
            services.accept(self.invitation, self.invitee)

    def test_reinvite_after_decline(self):
        """Test a declined user can be invited again"""
        services.decline(self.invitation, self.invitee)
        again = services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        self.assertTrue(again.is_pending)

    def test_cancel(self):
        """Test owners delete pending invitations; resolved ones are left alone"""
        self.assertTrue(services.cancel(self.invitation, self.owner))
        self.assertFalse(ProjectInvitation.objects.filter(pk=self.invitation.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='invitation_cancel').exists())

        declined = services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        services.decline(declined, self.invitee)
        self.assertFalse(services.cancel(declined, self.owner))
        self.assertTrue(ProjectInvitation.objects.filter(pk=declined.pk).exists())

    def test_cancel_requires_owner(self):
        with self.assertRaises(PermissionDenied):
            services.cancel(self.invitation, self.invitee)

    def test_accepted_signal_sent(self):
        """Test receivers are told about acceptance"""
        received = []

        def handler(sender, invitation, user, **kwargs):
            received.append((invitation.pk, user.pk))

        invitation_accepted.connect(handler)
        try:
            services.accept(self.invitation, self.invitee)
        finally:
            invitation_accepted.disconnect(handler)
        self.assertEqual(received, [(self.invitation.pk, self.invitee.pk)])

    def test_pending_queries(self):
        """Test pending lists are newest first and owner-restricted for projects"""
        other_project = TestDataFactory.create_project(self.owner)
        newer = services.invite(other_project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        self.assertEqual(list(services.pending_for_user(self.invitee)), [newer, self.invitation])
        self.assertEqual(list(services.pending_for_project(self.project, self.owner)), [self.invitation])
        with self.assertRaises(PermissionDenied):
            services.pending_for_project(self.project, self.invitee)


class InvitationAPITests(TestCase):
    """Test invitation endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.invitee = TestDataFactory.create_user()
        self.project = TestDataFactory.create_project(self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_invite_and_accept(self):
        """Test the full invite then accept flow over HTTP"""
        response = self.client.post(f'/api/v1/projects/{self.project.id}/invitations/', {
            'user_id': self.invitee.id,
            'role': 'Member',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        invitation_id = response.data['id']

        response = self.client.get(f'/api/v1/projects/{self.project.id}/invitations/')
        self.assertEqual([i['id'] for i in response.data], [invitation_id])

        self.client.authenticate_user(self.invitee)
        response = self.client.get('/api/v1/invitations/')
        self.assertEqual(response.data[0]['project_name'], self.project.name)

        response = self.client.post(f'/api/v1/invitations/{invitation_id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'Member')

        response = self.client.post(f'/api/v1/invitations/{invitation_id}/accept/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Invitation not found or already processed')

    def test_duplicate_invite_message(self):
        """Test the duplicate-invitation error reaches the client verbatim"""
        url = f'/api/v1/projects/{self.project.id}/invitations/'
        self.client.post(url, {'user_id': self.invitee.id}, format='json')
        response = self.client.post(url, {'user_id': self.invitee.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'User already has a pending invitation to this project')

    def test_decline_and_cancel(self):
        """Test decline over HTTP, then cancelling the resolved invitation"""
        invitation = services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        self.client.authenticate_user(self.invitee)
        response = self.client.post(f'/api/v1/invitations/{invitation.id}/decline/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'declined')

        self.client.authenticate_user(self.owner)
        response = self.client.delete(f'/api/v1/invitations/{invitation.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_pending(self):
        invitation = services.invite(self.project, self.invitee, ProjectMember.ROLE_MEMBER, self.owner)
        response = self.client.delete(f'/api/v1/invitations/{invitation.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
