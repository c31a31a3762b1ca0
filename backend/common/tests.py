from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase
from rest_framework.test import APIRequestFactory

from .exceptions import (
	ConflictError,
	ForbiddenError,
	InputValidationError,
	UnauthenticatedError,
	api_exception_handler,
)
from .permissions import (
	IsPassenger,
	IsRideMember,
	ensure_role,
	is_role_allowed,
)


class StubUser:
	is_authenticated = True

	def __init__(self, role):
		self.role = role


class AccessPolicyTests(SimpleTestCase):
	def test_role_membership(self):
		self.assertTrue(is_role_allowed('rider', ('rider',)))
		self.assertFalse(is_role_allowed('passenger', ('rider', 'admin')))
		self.assertFalse(is_role_allowed(None, ('rider',)))
		self.assertFalse(is_role_allowed('', ('',)))

	def test_ensure_role(self):
		user = StubUser('admin')

		self.assertIs(ensure_role(user, 'admin'), user)
		with self.assertRaises(ForbiddenError):
			ensure_role(StubUser('passenger'), 'admin')
		with self.assertRaises(UnauthenticatedError):
			ensure_role(AnonymousUser(), 'admin')
		with self.assertRaises(UnauthenticatedError):
			ensure_role(None, 'admin')

	def test_permission_classes(self):
		request = APIRequestFactory().get('/')

		request.user = StubUser('passenger')
		self.assertTrue(IsPassenger().has_permission(request, None))
		self.assertTrue(IsRideMember().has_permission(request, None))

		request.user = StubUser('admin')
		self.assertFalse(IsPassenger().has_permission(request, None))
		self.assertFalse(IsRideMember().has_permission(request, None))

		request.user = AnonymousUser()
		self.assertFalse(IsPassenger().has_permission(request, None))


class ExceptionHandlerTests(SimpleTestCase):
	def test_service_error_payload(self):
		response = api_exception_handler(ConflictError('Taken'), {})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data, {'success': False, 'error': 'conflict', 'message': 'Taken'})

	def test_field_errors_included(self):
		exc = InputValidationError(errors={'fare': ['Too low']})

		response = api_exception_handler(exc, {})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['errors'], {'fare': ['Too low']})
		self.assertEqual(response.data['message'], 'Invalid input')
