from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate
from unittest.mock import patch

from accounts.models import User
from riders.models import RiderProfile
from common.exceptions import api_exception_handler
from .models import Ride, RideParticipant, Rating
from .views import RideDetailView


class RideApiFlowTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.alice = User.objects.create_user(
			username='alice@campus.edu',
			email='alice@campus.edu',
			password='pass1234',
			role='passenger',
			name='Alice',
			phone='0711000001'
		)
		self.bob = User.objects.create_user(
			username='bob@campus.edu',
			email='bob@campus.edu',
			password='pass1234',
			role='passenger',
			name='Bob',
			phone='0711000002'
		)
		self.rex = User.objects.create_user(
			username='0722000001',
			password='rider1234',
			role='rider',
			name='Rex',
			phone='0722000001'
		)
		self.ray = User.objects.create_user(
			username='0722000002',
			password='rider1234',
			role='rider',
			name='Ray',
			phone='0722000002'
		)
		RiderProfile.objects.create(user=self.rex, license_number='DL-1', license_plate='KAA 001A')
		RiderProfile.objects.create(user=self.ray, license_number='DL-2', license_plate='KAA 002B')

	def post_as(self, user, url, data=None):
		self.client.force_authenticate(user=user)
		return self.client.post(url, data or {}, format='json')

	def get_as(self, user, url):
		self.client.force_authenticate(user=user)
		return self.client.get(url)

	def create_shared(self, user=None, **extra):
		payload = {
			'pickup_address': 'Main Gate',
			'destination_address': 'Town',
			'fare': '250.00',
			'vehicle_type': 'compact',
		}
		payload.update(extra)
		return self.post_as(user or self.alice, reverse('passengers:create-shared-ride'), payload)

	def test_single_ride_accept_complete_rate(self):
		response = self.post_as(self.alice, reverse('passengers:create-single-ride'), {
			'pickup_address': 'Hostel A',
			'pickup_latitude': '-1.094500',
			'pickup_longitude': '37.014300',
			'destination_address': 'Library',
			'fare': '80.00',
		})
		self.assertEqual(response.status_code, 201)
		ride_id = response.data['ride']['id']
		self.assertEqual(response.data['ride']['status'], 'pending')

		response = self.get_as(self.rex, reverse('riders:rider-available-single'))
		self.assertEqual(response.status_code, 200)
		self.assertEqual([r['id'] for r in response.data['rides']], [ride_id])

		response = self.post_as(self.rex, reverse('riders:rider-accept-ride', args=[ride_id]), {
			'latitude': '-1.095000',
			'longitude': '37.015000',
		})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['rider']['license_plate'], 'KAA 001A')

		response = self.post_as(self.rex, reverse('riders:rider-complete-ride', args=[ride_id]))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'completed')

		response = self.post_as(self.alice, reverse('rides:rate-ride', args=[ride_id]), {
			'ratee_id': self.rex.id,
			'rating': 5,
		})
		self.assertEqual(response.status_code, 201)
		self.assertEqual(Rating.objects.get(ride_id=ride_id).rating, 5)

	def test_second_accept_is_409(self):
		ride = Ride.objects.create(
			passenger=self.alice, ride_type='single', pickup_address='A', destination_address='B', fare=10
		)
		url = reverse('riders:rider-accept-ride', args=[ride.id])

		first = self.post_as(self.rex, url, {'latitude': 0, 'longitude': 0})
		second = self.post_as(self.ray, url, {'latitude': 0, 'longitude': 0})

		self.assertEqual(first.status_code, 200)
		self.assertEqual(second.status_code, 409)
		self.assertEqual(second.data['error'], 'ride_unavailable')
		self.assertFalse(second.data['success'])

	def test_accept_unknown_ride_is_404(self):
		response = self.post_as(self.rex, reverse('riders:rider-accept-ride', args=[9999]), {
			'latitude': 0, 'longitude': 0,
		})

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'ride_not_found')

	def test_shared_ride_join_until_full(self):
		response = self.create_shared(capacity=2)
		self.assertEqual(response.status_code, 201)
		code = response.data['shared_code']
		self.assertEqual(response.data['ride']['capacity'], 2)

		response = self.post_as(self.bob, reverse('passengers:join-shared-ride'), {'code': code.lower()})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['participant']['passenger']['id'], self.bob.id)

		carol = User.objects.create_user(
			username='carol@campus.edu', email='carol@campus.edu', password='pass1234',
			role='passenger', name='Carol', phone='0711000003'
		)
		response = self.post_as(carol, reverse('passengers:join-shared-ride'), {'code': code})
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'ride_full')

	def test_join_twice_is_400(self):
		code = self.create_shared().data['shared_code']

		response = self.post_as(self.alice, reverse('passengers:join-shared-ride'), {'code': code})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'already_joined')

	def test_join_with_malformed_code_is_400(self):
		response = self.post_as(self.bob, reverse('passengers:join-shared-ride'), {'code': 'AB'})

		self.assertEqual(response.status_code, 400)
		self.assertIn('code', response.data)

	def test_shared_ride_needs_known_vehicle_type(self):
		response = self.create_shared(vehicle_type='bus')

		self.assertEqual(response.status_code, 400)
		self.assertIn('vehicle_type', response.data)

	def test_oversized_capacity_is_400(self):
		response = self.create_shared(vehicle_type='van', capacity=10 ** 19)

		self.assertEqual(response.status_code, 400)
		self.assertIn('capacity', response.data)
		self.assertEqual(Ride.objects.count(), 0)

	def test_fare_with_extra_decimal_places_is_400(self):
		response = self.create_shared(fare='250.005')

		self.assertEqual(response.status_code, 400)
		self.assertIn('fare', response.data)

	def test_full_shared_ride_hidden_from_riders(self):
		self.create_shared(capacity=1)
		open_id = self.create_shared(user=self.bob, capacity=3).data['ride']['id']

		response = self.get_as(self.rex, reverse('riders:rider-available-shared'))

		self.assertEqual([r['id'] for r in response.data['rides']], [open_id])
		self.assertEqual(response.data['rides'][0]['participant_count'], 1)

	def test_participant_leaves_and_creator_cancels(self):
		response = self.create_shared()
		ride_id = response.data['ride']['id']
		self.post_as(self.bob, reverse('passengers:join-shared-ride'), {'code': response.data['shared_code']})

		response = self.post_as(self.bob, reverse('passengers:cancel-ride', args=[ride_id]))
		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['left_ride'])
		self.assertEqual(response.data['status'], 'pending')

		response = self.post_as(self.alice, reverse('passengers:cancel-ride', args=[ride_id]))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'cancelled')

	def test_cancel_by_stranger_is_403(self):
		ride_id = self.create_shared().data['ride']['id']

		response = self.post_as(self.bob, reverse('passengers:cancel-ride', args=[ride_id]))

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error'], 'not_part_of_ride')

	def test_passenger_history(self):
		own_id = self.create_shared(user=self.bob).data['ride']['id']
		response = self.create_shared()
		self.post_as(self.bob, reverse('passengers:join-shared-ride'), {'code': response.data['shared_code']})

		response = self.get_as(self.bob, reverse('passengers:ride-history'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 2)
		self.assertIn(own_id, [r['id'] for r in response.data['rides']])

	def test_role_gates(self):
		response = self.get_as(self.alice, reverse('riders:rider-available-single'))
		self.assertEqual(response.status_code, 403)

		response = self.post_as(self.rex, reverse('passengers:create-single-ride'), {
			'pickup_address': 'A', 'destination_address': 'B', 'fare': '1.00',
		})
		self.assertEqual(response.status_code, 403)

		self.client.force_authenticate(user=None)
		response = self.client.get(reverse('passengers:ride-history'))
		self.assertEqual(response.status_code, 401)

	def test_rate_before_completion_is_400(self):
		ride = Ride.objects.create(
			passenger=self.alice, ride_type='single', pickup_address='A', destination_address='B', fare=10
		)
		RideParticipant.objects.create(ride=ride, passenger=self.alice)

		response = self.post_as(self.alice, reverse('rides:rate-ride', args=[ride.id]), {
			'ratee_id': self.alice.id, 'rating': 4,
		})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_state')

	def test_rate_out_of_range_is_400(self):
		response = self.post_as(self.alice, reverse('rides:rate-ride', args=[1]), {
			'ratee_id': self.rex.id, 'rating': 7,
		})

		self.assertEqual(response.status_code, 400)
		self.assertIn('rating', response.data)

	def test_rider_current_ride_and_history(self):
		ride = Ride.objects.create(
			passenger=self.alice, ride_type='single', pickup_address='A', destination_address='B', fare=10
		)
		self.assertEqual(self.get_as(self.rex, reverse('riders:rider-current-ride')).status_code, 404)

		self.post_as(self.rex, reverse('riders:rider-accept-ride', args=[ride.id]), {'latitude': 0, 'longitude': 0})

		response = self.get_as(self.rex, reverse('riders:rider-current-ride'))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['id'], ride.id)

		response = self.get_as(self.rex, reverse('riders:rider-history'))
		self.assertEqual(response.data['count'], 1)


class RideDetailViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.alice = User.objects.create_user(
			username='alice@campus.edu', email='alice@campus.edu', password='pass1234',
			role='passenger', name='Alice', phone='0711000001'
		)
		self.eve = User.objects.create_user(
			username='eve@campus.edu', email='eve@campus.edu', password='pass1234',
			role='passenger', name='Eve', phone='0711000009'
		)
		self.ride = Ride.objects.create(
			passenger=self.alice, ride_type='shared', shared_code='AB12', capacity=4,
			pickup_address='A', destination_address='B', fare=10, vehicle_type='compact'
		)
		RideParticipant.objects.create(ride=self.ride, passenger=self.alice)

	def test_member_gets_expanded_ride(self):
		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.alice)
		response = RideDetailView.as_view()(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['shared_code'], 'AB12')
		self.assertEqual(len(response.data['ride']['participants']), 1)

	def test_stranger_is_refused(self):
		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.eve)
		response = RideDetailView.as_view()(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 403)

	@patch('rides.views.ride_management.get_ride_detail', side_effect=RuntimeError('boom'))
	def test_unexpected_error_becomes_generic_500(self, mock_detail):
		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.alice)
		response = RideDetailView.as_view()(request, ride_id=self.ride.id)

		mock_detail.assert_called_once()
		self.assertEqual(response.status_code, 500)
		self.assertEqual(response.data, {'success': False, 'error': 'server_error', 'message': 'Server error'})

	def test_handler_passes_drf_errors_through(self):
		from rest_framework.exceptions import NotAuthenticated

		response = api_exception_handler(NotAuthenticated(), {'view': None})

		self.assertEqual(response.status_code, 401)
