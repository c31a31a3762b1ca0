import io

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from PIL import Image
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken
from unittest.mock import patch

from riders.models import RiderProfile
from .models import User
from . import services


def png_upload(name='avatar.png', color='red'):
	buffer = io.BytesIO()
	Image.new('RGB', (8, 8), color=color).save(buffer, format='PNG')
	return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


class RegistrationTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	def register_passenger(self, **overrides):
		payload = {
			'name': 'Jane Doe',
			'email': 'Jane@Campus.edu',
			'phone': '0712345678',
			'gender': 'female',
			'registration_number': 'SCT-221-001',
			'password': 'password123',
		}
		payload.update(overrides)
		return self.client.post(reverse('accounts:passenger-register'), payload, format='json')

	def test_passenger_register_returns_tokens_and_cookie(self):
		response = self.register_passenger()

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'passenger')
		self.assertEqual(response.data['user']['email'], 'jane@campus.edu')
		self.assertIn(settings.AUTH_COOKIE_NAME, response.cookies)
		self.assertTrue(response.cookies[settings.AUTH_COOKIE_NAME]['httponly'])

		token = AccessToken(response.data['tokens']['access'])
		self.assertEqual(token['role'], 'passenger')

	def test_duplicate_email_or_phone_rejected(self):
		self.register_passenger()

		response = self.register_passenger(phone='0799999999')
		self.assertEqual(response.status_code, 400)

		response = self.register_passenger(email='other@campus.edu')
		self.assertEqual(response.status_code, 400)
		self.assertEqual(User.objects.count(), 1)

	def test_rider_register_creates_profile(self):
		response = self.client.post(reverse('accounts:rider-register'), {
			'name': 'John Rider',
			'license_number': 'DL-778812',
			'license_plate': 'kmda 123a',
			'phone': '0722000111',
			'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'rider')
		self.assertEqual(response.data['user']['license_plate'], 'KMDA 123A')
		self.assertTrue(RiderProfile.objects.filter(user__phone='0722000111').exists())

	def test_duplicate_plate_rejected(self):
		User.objects.create_user(username='0722000000', password='x' * 8, role='rider', name='R', phone='0722000000')
		RiderProfile.objects.create(user=User.objects.get(phone='0722000000'), license_number='DL', license_plate='KMDA 123A')

		response = self.client.post(reverse('accounts:rider-register'), {
			'name': 'John Rider',
			'license_number': 'DL-778812',
			'license_plate': 'KMDA 123A',
			'phone': '0722000111',
			'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 400)


class LoginTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.passenger = User.objects.create_user(
			username='jane@campus.edu', email='jane@campus.edu', password='password123',
			role='passenger', name='Jane', phone='0712345678'
		)
		self.rider = User.objects.create_user(
			username='0722000111', password='password123', role='rider', name='John', phone='0722000111'
		)
		self.admin = User.objects.create_user(
			username='admin@campus.edu', email='admin@campus.edu', password='password123',
			role='admin', name='Admin'
		)

	def test_passenger_login_by_email(self):
		response = self.client.post(reverse('accounts:passenger-login'), {
			'email': 'JANE@campus.edu', 'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['id'], self.passenger.id)
		self.assertEqual(AccessToken(response.data['tokens']['access'])['role'], 'passenger')

	def test_wrong_password_is_401(self):
		response = self.client.post(reverse('accounts:passenger-login'), {
			'email': 'jane@campus.edu', 'password': 'wrongpass',
		}, format='json')

		self.assertEqual(response.status_code, 401)

	def test_login_endpoint_is_role_specific(self):
		response = self.client.post(reverse('accounts:admin-login'), {
			'email': 'jane@campus.edu', 'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 401)

	def test_rider_login_by_phone(self):
		response = self.client.post(reverse('accounts:rider-login'), {
			'phone': '0722000111', 'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(AccessToken(response.data['tokens']['access'])['role'], 'rider')

	def test_admin_login(self):
		response = self.client.post(reverse('accounts:admin-login'), {
			'email': 'admin@campus.edu', 'password': 'password123',
		}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['role'], 'admin')

	def test_cookie_authenticates_requests(self):
		tokens = services.issue_tokens(self.passenger)
		self.client.cookies[settings.AUTH_COOKIE_NAME] = tokens['access']

		response = self.client.get(reverse('accounts:me'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['id'], self.passenger.id)

	def test_header_wins_over_cookie(self):
		self.client.cookies[settings.AUTH_COOKIE_NAME] = services.issue_tokens(self.passenger)['access']
		self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + services.issue_tokens(self.rider)['access'])

		response = self.client.get(reverse('accounts:me'))

		self.assertEqual(response.data['user']['id'], self.rider.id)

	def test_garbage_cookie_is_401(self):
		self.client.cookies[settings.AUTH_COOKIE_NAME] = 'not-a-token'

		response = self.client.get(reverse('accounts:me'))

		self.assertEqual(response.status_code, 401)

	def test_no_credentials_is_401(self):
		response = self.client.get(reverse('accounts:me'))

		self.assertEqual(response.status_code, 401)

	def test_refresh_issues_new_access_token(self):
		refresh = services.issue_tokens(self.passenger)['refresh']

		response = self.client.post(reverse('accounts:token-refresh'), {'refresh': refresh}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(str(AccessToken(response.data['access'])['user_id']), str(self.passenger.id))

		response = self.client.post(reverse('accounts:token-refresh'), {'refresh': 'junk'}, format='json')
		self.assertEqual(response.status_code, 401)

	def test_logout_clears_cookie(self):
		response = self.client.post(reverse('accounts:logout'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.cookies[settings.AUTH_COOKIE_NAME].value, '')


class ProfileTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.user = User.objects.create_user(
			username='jane@campus.edu', email='jane@campus.edu', password='password123',
			role='passenger', name='Jane', phone='0712345678'
		)
		User.objects.create_user(
			username='bob@campus.edu', email='bob@campus.edu', password='password123',
			role='passenger', name='Bob', phone='0712000000'
		)
		self.client.force_authenticate(user=self.user)

	def test_patch_profile(self):
		response = self.client.patch(reverse('accounts:me'), {'name': 'Jane D'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['name'], 'Jane D')

	def test_patch_rejects_taken_phone(self):
		response = self.client.patch(reverse('accounts:me'), {'phone': '0712000000'}, format='json')

		self.assertEqual(response.status_code, 400)

	def test_upload_photo(self):
		response = self.client.post(reverse('accounts:profile-photo'), {'photo': png_upload()}, format='multipart')

		self.assertEqual(response.status_code, 200)
		self.user.refresh_from_db()
		self.assertTrue(self.user.profile_photo.name.startswith('profile_photos/user_%d_' % self.user.id))
		self.assertTrue(response.data['user']['profile_photo_url'].startswith('http://testserver/'))

	def test_replacing_photo_deletes_previous_file_after_commit(self):
		self.client.post(reverse('accounts:profile-photo'), {'photo': png_upload()}, format='multipart')
		self.user.refresh_from_db()
		old_name = self.user.profile_photo.name

		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			self.client.post(reverse('accounts:profile-photo'), {'photo': png_upload(color='blue')}, format='multipart')

		self.assertEqual(len(callbacks), 1)
		self.assertFalse(default_storage.exists(old_name))
		self.user.refresh_from_db()
		self.assertTrue(default_storage.exists(self.user.profile_photo.name))

	def test_non_image_rejected(self):
		upload = SimpleUploadedFile('notes.png', b'definitely not a png', content_type='image/png')

		response = self.client.post(reverse('accounts:profile-photo'), {'photo': upload}, format='multipart')

		self.assertEqual(response.status_code, 400)

	@patch('accounts.services.delete_profile_photo_task.delay')
	def test_delete_photo(self, mock_delay):
		self.client.post(reverse('accounts:profile-photo'), {'photo': png_upload()}, format='multipart')
		self.user.refresh_from_db()
		name = self.user.profile_photo.name

		with self.captureOnCommitCallbacks(execute=True):
			response = self.client.delete(reverse('accounts:profile-photo'))

		self.assertEqual(response.status_code, 200)
		mock_delay.assert_called_once_with(name)

		response = self.client.delete(reverse('accounts:profile-photo'))
		self.assertEqual(response.status_code, 404)


class SeedAdminCommandTests(TestCase):
	@override_settings(ADMIN_EMAIL='Root@Campus.edu', ADMIN_PASSWORD='secret123')
	def test_seed_admin_is_idempotent(self):
		call_command('seed_admin')
		call_command('seed_admin')

		admins = User.objects.filter(role='admin')
		self.assertEqual(admins.count(), 1)
		self.assertEqual(admins.get().email, 'root@campus.edu')
		self.assertTrue(admins.get().check_password('secret123'))
