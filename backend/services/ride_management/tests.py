import contextlib
import itertools
import threading
import unittest
from decimal import Decimal
from unittest.mock import patch

from django.db import connection, transaction
from django.test import TestCase, TransactionTestCase, override_settings

from accounts.models import User
from riders.models import RiderProfile
from rides.models import Ride, RideParticipant, Rating
from rides.serializers import RideSerializer
from services import ride_management
from services.ride_management import Place, RideStore, MAX_CAPACITY
from services.ride_management.shared_code import (
	SHARED_CODE_ALPHABET,
	create_unique_shared_code,
	generate_shared_code,
	is_well_formed_shared_code,
	normalize_shared_code,
)
from services.ride_management.ratings import validate_score
from common.exceptions import ForbiddenError, UnauthenticatedError


_phones = itertools.count(1)


def make_passenger(tag):
	return User.objects.create_user(
		username='%s@campus.edu' % tag,
		email='%s@campus.edu' % tag,
		password='pass1234',
		role='passenger',
		name=tag.title(),
		phone='07%08d' % next(_phones),
	)


def make_rider(tag, plate):
	user = User.objects.create_user(
		username=tag,
		password='rider1234',
		role='rider',
		name=tag.title(),
		phone='08%08d' % next(_phones),
	)
	RiderProfile.objects.create(user=user, license_number='DL-%s' % tag, license_plate=plate)
	return user


PICKUP = Place(address='Main Gate', latitude=Decimal('-1.094500'), longitude=Decimal('37.014300'))
DESTINATION = Place(address='Library', latitude=Decimal('-1.096100'), longitude=Decimal('37.016600'))


class SharedCodeTests(TestCase):
	def test_generated_code_is_four_alphanumerics(self):
		code = generate_shared_code()

		self.assertEqual(len(code), 4)
		self.assertTrue(all(c in SHARED_CODE_ALPHABET for c in code))
		self.assertTrue(is_well_formed_shared_code(code))

	def test_normalize_uppercases_and_strips(self):
		self.assertEqual(normalize_shared_code(' ab1c '), 'AB1C')
		self.assertEqual(normalize_shared_code(None), '')

	def test_malformed_codes_rejected(self):
		self.assertFalse(is_well_formed_shared_code('AB1'))
		self.assertFalse(is_well_formed_shared_code('AB-C'))

	def test_regenerates_on_collision(self):
		seen = []

		def exists(code):
			seen.append(code)
			return len(seen) < 3

		code = create_unique_shared_code(exists, max_attempts=6)

		self.assertEqual(len(seen), 3)
		self.assertEqual(code, seen[-1])

	def test_exhausted_after_max_attempts(self):
		calls = []

		def always_taken(code):
			calls.append(code)
			return True

		with self.assertRaises(ride_management.SharedCodeExhaustedError):
			create_unique_shared_code(always_taken, max_attempts=6)
		self.assertEqual(len(calls), 6)


class RideCreationTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.rider = make_rider('rex', 'KAA 001A')

	def test_single_ride_starts_pending_with_creator_as_participant(self):
		result = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare='150.00')

		ride = result.ride
		self.assertTrue(result.success)
		self.assertEqual(ride.ride_type, 'single')
		self.assertEqual(ride.status, 'pending')
		self.assertIsNone(ride.shared_code)
		self.assertIsNone(ride.rider)
		self.assertEqual(ride.fare, Decimal('150.00'))
		self.assertTrue(RideParticipant.objects.filter(ride=ride, passenger=self.alice).exists())

	def test_negative_fare_rejected(self):
		with self.assertRaises(ride_management.RideValidationError) as ctx:
			ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=-1)

		self.assertIn('fare', ctx.exception.errors)
		self.assertEqual(Ride.objects.count(), 0)

	def test_blank_address_rejected(self):
		with self.assertRaises(ride_management.RideValidationError):
			ride_management.create_single_ride(self.alice, Place(address='  '), DESTINATION, fare=10)

	def test_shared_ride_capacity_follows_vehicle_type(self):
		result = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='mini_van'
		)

		self.assertEqual(result.ride.capacity, 7)
		self.assertEqual(result.ride.ride_type, 'shared')
		self.assertEqual(result.extra['shared_code'], result.ride.shared_code)
		self.assertTrue(is_well_formed_shared_code(result.ride.shared_code))
		self.assertEqual(RideParticipant.objects.filter(ride=result.ride).count(), 1)

	def test_explicit_capacity_wins(self):
		result = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='van', capacity=3
		)

		self.assertEqual(result.ride.capacity, 3)

	@override_settings(RIDE_VEHICLE_CAPACITIES={'tuk_tuk': 3})
	def test_capacity_table_comes_from_settings(self):
		result = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=50, vehicle_type='tuk_tuk'
		)

		self.assertEqual(result.ride.capacity, 3)

	def test_unknown_vehicle_type_rejected(self):
		with self.assertRaises(ride_management.RideValidationError) as ctx:
			ride_management.create_shared_ride(
				self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='bus'
			)

		self.assertIn('vehicle_type', ctx.exception.errors)

	def test_non_positive_capacity_rejected(self):
		for capacity in (0, -2, True):
			with self.assertRaises(ride_management.RideValidationError):
				ride_management.create_shared_ride(
					self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='van', capacity=capacity
				)

	def test_capacity_above_column_limit_rejected(self):
		for capacity in (MAX_CAPACITY + 1, 10 ** 19):
			with self.assertRaises(ride_management.RideValidationError) as ctx:
				ride_management.create_shared_ride(
					self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='van', capacity=capacity
				)
			self.assertIn('capacity', ctx.exception.errors)
		self.assertEqual(Ride.objects.count(), 0)

	def test_largest_capacity_is_stored(self):
		result = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='van', capacity=MAX_CAPACITY
		)

		result.ride.refresh_from_db()
		self.assertEqual(result.ride.capacity, MAX_CAPACITY)

	def test_values_finer_than_the_columns_rejected(self):
		cases = [
			({'fare': '10.005'}, 'fare'),
			({'fare': 10, 'distance_km': Decimal('1.234')}, 'distance_km'),
			({'fare': 10, 'pickup': Place('Gate', Decimal('-1.0945001'), None)}, 'pickup_latitude'),
			({'fare': 'NaN'}, 'fare'),
		]
		for kwargs, field in cases:
			kwargs.setdefault('pickup', PICKUP)
			with self.assertRaises(ride_management.RideValidationError) as ctx:
				ride_management.create_single_ride(self.alice, destination=DESTINATION, **kwargs)
			self.assertIn(field, ctx.exception.errors)
		self.assertEqual(Ride.objects.count(), 0)

	def test_returned_fare_matches_stored_row(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=Decimal('12.5')).ride

		stored = Ride.objects.get(id=ride.id)
		self.assertEqual(ride.fare, stored.fare)

	def test_code_exhaustion_surfaces_and_creates_nothing(self):
		with patch.object(ride_management.default_store, 'shared_code_exists', return_value=True):
			with self.assertRaises(ride_management.SharedCodeExhaustedError):
				ride_management.create_shared_ride(
					self.alice, PICKUP, DESTINATION, fare=300, vehicle_type='van'
				)

		self.assertEqual(Ride.objects.count(), 0)

	def test_rider_cannot_create_rides(self):
		with self.assertRaises(ForbiddenError):
			ride_management.create_single_ride(self.rider, PICKUP, DESTINATION, fare=10)

	def test_anonymous_caller_is_unauthenticated(self):
		with self.assertRaises(UnauthenticatedError):
			ride_management.create_single_ride(None, PICKUP, DESTINATION, fare=10)


class JoinSharedRideTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.carol = make_passenger('carol')
		self.ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=200, vehicle_type='compact', capacity=2
		).ride

	def test_join_adds_participant(self):
		result = ride_management.join_shared_ride(self.bob, self.ride.shared_code)

		self.assertEqual(result.ride.id, self.ride.id)
		self.assertEqual(result.extra['participant'].passenger, self.bob)
		self.assertEqual(RideParticipant.objects.filter(ride=self.ride).count(), 2)

	def test_code_is_case_insensitive(self):
		ride_management.join_shared_ride(self.bob, self.ride.shared_code.lower())

		self.assertTrue(RideParticipant.objects.filter(ride=self.ride, passenger=self.bob).exists())

	def test_unknown_code_not_found(self):
		code = 'ZZZZ' if self.ride.shared_code != 'ZZZZ' else 'YYYY'
		with self.assertRaises(ride_management.RideNotFoundError):
			ride_management.join_shared_ride(self.bob, code)

	def test_full_ride_rejects_join(self):
		ride_management.join_shared_ride(self.bob, self.ride.shared_code)

		with self.assertRaises(ride_management.RideFullError):
			ride_management.join_shared_ride(self.carol, self.ride.shared_code)
		self.assertEqual(RideParticipant.objects.filter(ride=self.ride).count(), 2)

	def test_creator_cannot_join_twice(self):
		with self.assertRaises(ride_management.AlreadyJoinedError):
			ride_management.join_shared_ride(self.alice, self.ride.shared_code)

	def test_full_is_reported_before_already_joined(self):
		ride_management.join_shared_ride(self.bob, self.ride.shared_code)

		with self.assertRaises(ride_management.RideFullError):
			ride_management.join_shared_ride(self.bob, self.ride.shared_code)

	def test_cannot_join_cancelled_ride(self):
		ride_management.cancel_ride(self.alice, self.ride.id)

		with self.assertRaises(ride_management.InvalidRideStateError):
			ride_management.join_shared_ride(self.bob, self.ride.shared_code)

	def test_accepted_ride_can_still_be_joined(self):
		rider = make_rider('rex', 'KAA 001A')
		ride_management.accept_ride(rider, self.ride.id, 1, 2)

		ride_management.join_shared_ride(self.bob, self.ride.shared_code)

		self.assertEqual(RideParticipant.objects.filter(ride=self.ride).count(), 2)

	def test_duplicate_insert_maps_to_already_joined(self):
		ride_management.join_shared_ride(self.bob, self.ride.shared_code)

		with self.assertRaises(ride_management.AlreadyJoinedError):
			ride_management.default_store.add_participant(self.ride, self.bob)


class CancelRideTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.rider = make_rider('rex', 'KAA 001A')

	def test_creator_cancels_pending_single(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		result = ride_management.cancel_ride(self.alice, ride.id)

		ride.refresh_from_db()
		self.assertEqual(result.message, 'Single ride cancelled')
		self.assertEqual(ride.status, 'cancelled')
		self.assertIsNotNone(ride.cancelled_at)

	def test_stranger_cannot_cancel(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.cancel_ride(self.bob, ride.id)

	def test_cancel_accepted_ride_releases_rider(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rider, ride.id, '-1.09', '37.01')

		result = ride_management.cancel_ride(self.alice, ride.id)

		ride.refresh_from_db()
		self.assertEqual(result.message, 'Ride cancelled (was accepted)')
		self.assertTrue(result.extra['was_assigned'])
		self.assertEqual(ride.status, 'cancelled')
		self.assertIsNone(ride.rider)
		self.assertIsNone(ride.accepted_latitude)
		self.assertIsNone(ride.accepted_at)

	def test_participant_leaves_pending_shared_ride(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		ride_management.join_shared_ride(self.bob, ride.shared_code)

		result = ride_management.cancel_ride(self.bob, ride.id)

		ride.refresh_from_db()
		self.assertEqual(result.message, 'You left the shared ride')
		self.assertEqual(ride.status, 'pending')
		self.assertFalse(RideParticipant.objects.filter(ride=ride, passenger=self.bob).exists())

	def test_creator_cancels_pending_shared_ride(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		ride_management.join_shared_ride(self.bob, ride.shared_code)

		result = ride_management.cancel_ride(self.alice, ride.id)

		ride.refresh_from_db()
		self.assertEqual(result.message, 'Shared ride cancelled (creator cancelled)')
		self.assertEqual(ride.status, 'cancelled')

	def test_participant_cancels_accepted_shared_ride(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		ride_management.join_shared_ride(self.bob, ride.shared_code)
		ride_management.accept_ride(self.rider, ride.id, 0, 0)

		ride_management.cancel_ride(self.bob, ride.id)

		ride.refresh_from_db()
		self.assertEqual(ride.status, 'cancelled')
		self.assertIsNone(ride.rider_id)

	def test_completed_ride_cannot_be_cancelled(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rider, ride.id, 0, 0)
		ride_management.complete_ride(self.rider, ride.id)

		with self.assertRaises(ride_management.InvalidRideStateError):
			ride_management.cancel_ride(self.alice, ride.id)

	def test_missing_ride(self):
		with self.assertRaises(ride_management.RideNotFoundError):
			ride_management.cancel_ride(self.alice, 999999)


class RiderOperationTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.rex = make_rider('rex', 'KAA 001A')
		self.ray = make_rider('ray', 'KAA 002B')

	def test_accept_sets_rider_and_location(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		result = ride_management.accept_ride(self.rex, ride.id, '-1.095000', '37.015000')

		self.assertEqual(result.ride.status, 'accepted')
		self.assertEqual(result.ride.rider, self.rex)
		self.assertEqual(result.ride.accepted_latitude, Decimal('-1.095000'))
		self.assertIsNotNone(result.ride.accepted_at)

	def test_second_accept_conflicts(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, ride.id, 0, 0)

		with self.assertRaises(ride_management.RideConflictError):
			ride_management.accept_ride(self.ray, ride.id, 0, 0)

		ride.refresh_from_db()
		self.assertEqual(ride.rider, self.rex)

	def test_accept_missing_ride(self):
		with self.assertRaises(ride_management.RideNotFoundError):
			ride_management.accept_ride(self.rex, 424242, 0, 0)

	def test_passenger_cannot_accept(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		with self.assertRaises(ForbiddenError):
			ride_management.accept_ride(self.bob, ride.id, 0, 0)

	def test_complete_by_accepting_rider(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, ride.id, 0, 0)

		result = ride_management.complete_ride(self.rex, ride.id)

		ride.refresh_from_db()
		self.assertEqual(result.message, 'Ride completed')
		self.assertEqual(ride.status, 'completed')
		self.assertIsNotNone(ride.completed_at)
		self.assertIsNone(ride.accepted_latitude)

	def test_complete_by_other_rider_forbidden(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, ride.id, 0, 0)

		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.complete_ride(self.ray, ride.id)

	def test_complete_pending_ride_forbidden_for_unassigned_rider(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.complete_ride(self.rex, ride.id)

	def test_complete_twice_is_invalid_state(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, ride.id, 0, 0)
		ride_management.complete_ride(self.rex, ride.id)

		with self.assertRaises(ride_management.InvalidRideStateError):
			ride_management.complete_ride(self.rex, ride.id)

	def test_ongoing_ride_can_be_completed(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, ride.id, 0, 0)
		Ride.objects.filter(id=ride.id).update(status='ongoing')

		ride_management.complete_ride(self.rex, ride.id)

		ride.refresh_from_db()
		self.assertEqual(ride.status, 'completed')

	def test_available_rides_by_type_oldest_first(self):
		first = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		second = ride_management.create_single_ride(self.bob, PICKUP, DESTINATION, fare=20).ride
		ride_management.create_shared_ride(self.alice, PICKUP, DESTINATION, fare=30, vehicle_type='van')
		taken = ride_management.create_single_ride(self.bob, PICKUP, DESTINATION, fare=40).ride
		ride_management.accept_ride(self.rex, taken.id, 0, 0)

		rides = list(ride_management.list_available_rides(self.ray, 'single'))

		self.assertEqual([r.id for r in rides], [first.id, second.id])

	def test_full_shared_rides_are_not_available(self):
		full = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=30, vehicle_type='van', capacity=1
		).ride
		open_ride = ride_management.create_shared_ride(
			self.bob, PICKUP, DESTINATION, fare=30, vehicle_type='van', capacity=2
		).ride

		rides = list(ride_management.list_available_rides(self.rex, 'shared'))

		self.assertEqual([r.id for r in rides], [open_ride.id])
		self.assertNotIn(full.id, [r.id for r in rides])

	def test_accept_location_finer_than_column_rejected(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		with self.assertRaises(ride_management.RideValidationError) as ctx:
			ride_management.accept_ride(self.rex, ride.id, '-1.0950001', '37.015')

		self.assertIn('latitude', ctx.exception.errors)
		ride.refresh_from_db()
		self.assertEqual(ride.status, 'pending')

	def test_ride_listings_serialize_in_one_query(self):
		for fare in (10, 20, 30):
			ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=fare).ride
			ride_management.accept_ride(self.rex, ride.id, 0, 0)
		for fare in (40, 50):
			ride_management.create_shared_ride(self.bob, PICKUP, DESTINATION, fare=fare, vehicle_type='van')
		ride_management.create_single_ride(self.bob, PICKUP, DESTINATION, fare=60)

		with self.assertNumQueries(1):
			history = RideSerializer(ride_management.get_rider_rides(self.rex), many=True).data
		with self.assertNumQueries(1):
			shared = RideSerializer(ride_management.list_available_rides(self.ray, 'shared'), many=True).data
		with self.assertNumQueries(1):
			single = RideSerializer(ride_management.list_available_rides(self.ray, 'single'), many=True).data

		self.assertEqual(len(history), 3)
		self.assertEqual(history[0]['rider']['license_plate'], 'KAA 001A')
		self.assertEqual([r['participant_count'] for r in shared], [1, 1])
		self.assertEqual([r['participant_count'] for r in single], [1])

	def test_unknown_ride_type_rejected(self):
		with self.assertRaises(ride_management.RideValidationError):
			ride_management.list_available_rides(self.rex, 'bus')

	def test_rider_history_only_contains_own_rides(self):
		mine = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		theirs = ride_management.create_single_ride(self.bob, PICKUP, DESTINATION, fare=10).ride
		ride_management.accept_ride(self.rex, mine.id, 0, 0)
		ride_management.accept_ride(self.ray, theirs.id, 0, 0)

		rides = list(ride_management.get_rider_rides(self.rex))

		self.assertEqual([r.id for r in rides], [mine.id])


class RideDetailTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.rex = make_rider('rex', 'KAA 001A')
		self.admin = User.objects.create_user(
			username='admin@campus.edu', email='admin@campus.edu', password='admin1234', role='admin', name='Admin'
		)
		self.ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

	def test_creator_and_admin_see_ride(self):
		self.assertEqual(ride_management.get_ride_detail(self.alice, self.ride.id).id, self.ride.id)
		self.assertEqual(ride_management.get_ride_detail(self.admin, self.ride.id).id, self.ride.id)

	def test_unrelated_users_are_refused(self):
		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.get_ride_detail(self.bob, self.ride.id)
		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.get_ride_detail(self.rex, self.ride.id)

	def test_accepting_rider_sees_ride(self):
		ride_management.accept_ride(self.rex, self.ride.id, 0, 0)

		self.assertEqual(ride_management.get_ride_detail(self.rex, self.ride.id).rider, self.rex)

	def test_passenger_history_has_created_and_joined(self):
		shared = ride_management.create_shared_ride(
			self.bob, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		ride_management.join_shared_ride(self.alice, shared.shared_code)

		ride_ids = {p.ride_id for p in ride_management.get_passenger_rides(self.alice)}

		self.assertEqual(ride_ids, {self.ride.id, shared.id})


class RatingTests(TestCase):
	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.carol = make_passenger('carol')
		self.rex = make_rider('rex', 'KAA 001A')
		self.ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		ride_management.join_shared_ride(self.bob, self.ride.shared_code)
		ride_management.accept_ride(self.rex, self.ride.id, 0, 0)

	def complete(self):
		ride_management.complete_ride(self.rex, self.ride.id)

	def test_score_range(self):
		for bad in (0, 6, 2.5, '5', True):
			with self.assertRaises(ride_management.RideValidationError):
				validate_score(bad)
		self.assertEqual(validate_score(5), 5)

	def test_invalid_score_checked_before_ride_lookup(self):
		with self.assertRaises(ride_management.RideValidationError):
			ride_management.rate_ride(self.alice, 999999, self.rex.id, 9)

	def test_cannot_rate_before_completion(self):
		with self.assertRaises(ride_management.InvalidRideStateError):
			ride_management.rate_ride(self.alice, self.ride.id, self.rex.id, 5)

	def test_participant_rates_rider(self):
		self.complete()

		rating = ride_management.rate_ride(self.bob, self.ride.id, self.rex.id, 4)

		self.assertEqual(rating.rating, 4)
		self.assertEqual(rating.rater, self.bob)
		self.assertEqual(rating.ratee, self.rex)

	def test_rider_rates_passenger(self):
		self.complete()

		ride_management.rate_ride(self.rex, self.ride.id, self.alice.id, 5)

		self.assertEqual(Rating.objects.filter(ride=self.ride, ratee=self.alice).count(), 1)

	def test_unrelated_rater_forbidden(self):
		self.complete()

		with self.assertRaises(ride_management.RideForbiddenError):
			ride_management.rate_ride(self.carol, self.ride.id, self.rex.id, 5)

	def test_unrelated_ratee_rejected(self):
		self.complete()

		with self.assertRaises(ride_management.RateeNotRelatedError):
			ride_management.rate_ride(self.alice, self.ride.id, self.carol.id, 5)

	def test_repeat_ratings_are_kept(self):
		self.complete()

		ride_management.rate_ride(self.alice, self.ride.id, self.rex.id, 5)
		ride_management.rate_ride(self.alice, self.ride.id, self.rex.id, 3)

		self.assertEqual(Rating.objects.filter(ride=self.ride, rater=self.alice).count(), 2)


class RivalAcceptsFirstStore(RideStore):
	"""The rival rider's UPDATE commits between our decision to accept and our own UPDATE."""

	def __init__(self, rival):
		self.rival = rival

	def compare_and_set(self, ride_id, expected_statuses, **changes):
		Ride.objects.filter(id=ride_id, status='pending').update(status='accepted', rider=self.rival)
		return super().compare_and_set(ride_id, expected_statuses, **changes)


class RecordingStore(RideStore):
	"""Logs each join step together with how many atomic blocks are open."""

	def __init__(self):
		self.calls = []
		self.depth = 0

	@contextlib.contextmanager
	def atomic(self):
		self.depth += 1
		try:
			with transaction.atomic():
				yield
		finally:
			self.depth -= 1

	def get_ride_by_code(self, code, for_update=False):
		self.calls.append(('lock' if for_update else 'read', self.depth))
		return super().get_ride_by_code(code, for_update=for_update)

	def count_participants(self, ride):
		self.calls.append(('count', self.depth))
		return super().count_participants(ride)

	def add_participant(self, ride, passenger):
		self.calls.append(('insert', self.depth))
		return super().add_participant(ride, passenger)


class SeatTakenWhileWaitingStore(RideStore):
	"""Another passenger's join commits while we wait for the row lock."""

	def __init__(self, rival):
		self.rival = rival

	def get_ride_by_code(self, code, for_update=False):
		ride = super().get_ride_by_code(code, for_update=for_update)
		RideParticipant.objects.create(ride=ride, passenger=self.rival)
		return ride


class InterleavedRaceTests(TestCase):
	"""Race orderings replayed deterministically, so they run on any database."""

	def setUp(self):
		self.alice = make_passenger('alice')
		self.bob = make_passenger('bob')
		self.carol = make_passenger('carol')
		self.rex = make_rider('rex', 'KAA 001A')
		self.ray = make_rider('ray', 'KAA 002B')

	def test_accept_losing_the_race_conflicts_and_keeps_winner(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride

		with self.assertRaises(ride_management.RideConflictError):
			ride_management.accept_ride(self.ray, ride.id, 0, 0, store=RivalAcceptsFirstStore(self.rex))

		ride.refresh_from_db()
		self.assertEqual(ride.status, 'accepted')
		self.assertEqual(ride.rider_id, self.rex.id)

	def test_join_locks_row_before_recount_and_insert(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		store = RecordingStore()

		ride_management.join_shared_ride(self.bob, ride.shared_code, store=store)

		self.assertEqual(store.calls, [('lock', 1), ('count', 1), ('insert', 1)])

	def test_last_seat_taken_while_waiting_for_lock(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van', capacity=2
		).ride

		with self.assertRaises(ride_management.RideFullError):
			ride_management.join_shared_ride(
				self.carol, ride.shared_code, store=SeatTakenWhileWaitingStore(self.bob)
			)

		self.assertEqual(RideParticipant.objects.filter(ride=ride).count(), 2)
		self.assertFalse(RideParticipant.objects.filter(ride=ride, passenger=self.carol).exists())

	def test_four_seat_ride_takes_three_joiners(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='compact'
		).ride
		joiners = [self.bob, self.carol, make_passenger('dave'), make_passenger('erin')]

		outcomes = []
		for passenger in joiners:
			try:
				outcomes.append(ride_management.join_shared_ride(passenger, ride.shared_code))
			except ride_management.RideFullError as exc:
				outcomes.append(exc)

		self.assertEqual(sum(isinstance(o, ride_management.RideResult) for o in outcomes), 3)
		self.assertIsInstance(outcomes[-1], ride_management.RideFullError)
		self.assertEqual(RideParticipant.objects.filter(ride=ride).count(), 4)


def _run_in_threads(target, args_list):
	"""Start one thread per args tuple behind a barrier and collect outcomes."""
	barrier = threading.Barrier(len(args_list))
	outcomes = [None] * len(args_list)

	def worker(index, args):
		try:
			barrier.wait()
			outcomes[index] = target(*args)
		except Exception as exc:
			outcomes[index] = exc
		finally:
			connection.close()

	threads = [threading.Thread(target=worker, args=(i, a)) for i, a in enumerate(args_list)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	return outcomes


@unittest.skipUnless(connection.vendor == 'postgresql', 'row locks need PostgreSQL')
class ConcurrentRideTests(TransactionTestCase):
	def setUp(self):
		self.alice = make_passenger('alice')

	def test_only_one_rider_wins_accept(self):
		ride = ride_management.create_single_ride(self.alice, PICKUP, DESTINATION, fare=10).ride
		riders = [make_rider('rider%d' % i, 'KCC %03d' % i) for i in range(5)]

		outcomes = _run_in_threads(
			lambda rider: ride_management.accept_ride(rider, ride.id, 0, 0),
			[(r,) for r in riders],
		)

		wins = [o for o in outcomes if isinstance(o, ride_management.RideResult)]
		conflicts = [o for o in outcomes if isinstance(o, ride_management.RideConflictError)]
		self.assertEqual(len(wins), 1)
		self.assertEqual(len(conflicts), 4)
		ride.refresh_from_db()
		self.assertEqual(ride.rider_id, wins[0].ride.rider_id)

	def test_last_seat_goes_to_one_passenger(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van', capacity=2
		).ride
		joiners = [make_passenger('joiner%d' % i) for i in range(4)]

		outcomes = _run_in_threads(
			lambda p: ride_management.join_shared_ride(p, ride.shared_code),
			[(p,) for p in joiners],
		)

		joined = [o for o in outcomes if isinstance(o, ride_management.RideResult)]
		full = [o for o in outcomes if isinstance(o, ride_management.RideFullError)]
		self.assertEqual(len(joined), 1)
		self.assertEqual(len(full), 3)
		self.assertEqual(RideParticipant.objects.filter(ride=ride).count(), 2)

	def test_four_seat_ride_with_four_concurrent_joiners(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='compact'
		).ride
		joiners = [make_passenger('rush%d' % i) for i in range(4)]

		outcomes = _run_in_threads(
			lambda p: ride_management.join_shared_ride(p, ride.shared_code),
			[(p,) for p in joiners],
		)

		self.assertEqual(sum(isinstance(o, ride_management.RideResult) for o in outcomes), 3)
		self.assertEqual(sum(isinstance(o, ride_management.RideFullError) for o in outcomes), 1)
		self.assertEqual(RideParticipant.objects.filter(ride=ride).count(), 4)

	def test_same_passenger_joining_twice_at_once(self):
		ride = ride_management.create_shared_ride(
			self.alice, PICKUP, DESTINATION, fare=10, vehicle_type='van'
		).ride
		bob = make_passenger('bob')

		outcomes = _run_in_threads(
			lambda p: ride_management.join_shared_ride(p, ride.shared_code),
			[(bob,), (bob,)],
		)

		self.assertEqual(sum(isinstance(o, ride_management.RideResult) for o in outcomes), 1)
		self.assertEqual(sum(isinstance(o, ride_management.AlreadyJoinedError) for o in outcomes), 1)
		self.assertEqual(RideParticipant.objects.filter(ride=ride, passenger=bob).count(), 1)
