from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from accounts.models import User
from common.exceptions import ForbiddenError, InputValidationError
from rides.models import Ride
from dashboard import services


class AdminDashboardTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.admin = User.objects.create_user(
			username='admin@campus.edu', email='admin@campus.edu', password='admin1234',
			role='admin', name='Admin'
		)
		self.alice = User.objects.create_user(
			username='alice@campus.edu', email='alice@campus.edu', password='pass1234',
			role='passenger', name='Alice', phone='0711000001'
		)
		self.rex = User.objects.create_user(
			username='0722000001', password='rider1234', role='rider', name='Rex', phone='0722000001'
		)
		Ride.objects.create(
			passenger=self.alice, ride_type='single', pickup_address='A', destination_address='B', fare=10
		)
		Ride.objects.create(
			passenger=self.alice, ride_type='single', pickup_address='C', destination_address='D', fare=20,
			status='completed', rider=self.rex
		)

	def test_stats(self):
		self.client.force_authenticate(user=self.admin)

		response = self.client.get(reverse('dashboard:admin-stats'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['total_riders'], 1)
		self.assertEqual(response.data['total_passengers'], 1)
		self.assertEqual(response.data['total_rides'], 2)
		self.assertEqual(response.data['rides_by_status'], {
			'pending': 1, 'accepted': 0, 'ongoing': 0, 'completed': 1, 'cancelled': 0,
		})

	def test_user_list_filters_by_role(self):
		self.client.force_authenticate(user=self.admin)

		response = self.client.get(reverse('dashboard:admin-users'), {'role': 'rider'})

		self.assertEqual(response.status_code, 200)
		self.assertEqual([u['id'] for u in response.data['users']], [self.rex.id])

	def test_user_list_rejects_unknown_role(self):
		self.client.force_authenticate(user=self.admin)

		response = self.client.get(reverse('dashboard:admin-users'), {'role': 'driver'})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

	def test_ride_list_newest_first(self):
		self.client.force_authenticate(user=self.admin)

		response = self.client.get(reverse('dashboard:admin-rides'))

		self.assertEqual(response.data['count'], 2)
		self.assertEqual(response.data['rides'][0]['pickup_address'], 'C')
		self.assertEqual(response.data['rides'][0]['rider']['id'], self.rex.id)

	def test_non_admins_are_refused(self):
		for user in (self.alice, self.rex):
			self.client.force_authenticate(user=user)
			self.assertEqual(self.client.get(reverse('dashboard:admin-stats')).status_code, 403)

	def test_services_enforce_admin_role(self):
		with self.assertRaises(ForbiddenError):
			services.stats(self.alice)
		with self.assertRaises(InputValidationError):
			services.list_users(self.admin, 'nobody')
