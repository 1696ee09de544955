from datetime import timedelta
from io import StringIO
from unittest.mock import patch, MagicMock

import requests
from django.core.cache import cache
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.utils import with_retry
from services.exceptions import (
	GeolocationPermissionDenied,
	LocationTimeout,
	MissingContactInfo,
	PermissionDenied,
	PositionUnavailable,
	StateConflict,
	TrackingLinkInvalid,
	TransientNetworkError,
)
from services.location_sharing import (
	ClientReportedGeolocation,
	LocationPublisher,
	PositionFix,
	get_resume_state,
	mark_sharing_stopped,
	reverse_geocode,
	PLACEHOLDER_ADDRESS,
	NO_ADDRESS,
)
from services.trip_tracking import SharingState, TripTracker, build_tracker_for_trip
from services.tracking_links import issue_tracking_token, resolve_tracking_token

from .models import Trip, TrackingToken, UserLocation
from .schema import normalize_location
from . import views


def _geocoder(lat, lng):
	return "12 Harbour Road"


class LocationSchemaTests(TestCase):
	def test_legacy_keys_are_normalized(self):
		snapshot = normalize_location({
			'latitude': '6.52',
			'longitude': 3.37,
			'isSharing': True,
			'vehicleId': 77,
			'timestamp': 1700000000000,
		})

		self.assertEqual(snapshot.lat, 6.52)
		self.assertEqual(snapshot.lng, 3.37)
		self.assertTrue(snapshot.is_sharing)
		self.assertEqual(snapshot.vehicle_id, '77')
		self.assertEqual(snapshot.timestamp.year, 2023)

	def test_stopped_snapshot_is_not_live(self):
		snapshot = normalize_location({'lat': 6.5, 'lng': 3.3, 'is_sharing': False})

		self.assertFalse(snapshot.is_live)
		self.assertIsNone(normalize_location(None))
		self.assertIsNone(normalize_location({}))


class TripTrackerTests(TestCase):
	def setUp(self):
		self.tracker = TripTracker(1, driver_id=10, customer_id=20)

	def test_no_locations_yet(self):
		view = self.tracker.view()

		self.assertEqual(view.state, SharingState.NEITHER)
		self.assertEqual(view.progress, 10)
		self.assertEqual(view.status_message, 'Awaiting location')
		self.assertIsNone(view.distance_meters)

	def test_stopped_location_counts_as_not_sharing(self):
		self.tracker.apply_location(10, {'lat': 6.5, 'lng': 3.3, 'is_sharing': False})

		view = self.tracker.view()
		self.assertIsNone(view.driver_location)
		self.assertFalse(view.as_dict()['driver_sharing'])
		self.assertEqual(view.progress, 10)

	def test_progress_follows_who_is_sharing(self):
		self.tracker.apply_location(20, {'lat': 6.5, 'lng': 3.3, 'is_sharing': True})
		self.assertEqual(self.tracker.view().progress, 35)

		self.tracker.apply_location(10, {'lat': 6.6, 'lng': 3.3, 'is_sharing': True})
		view = self.tracker.view()
		self.assertEqual(view.progress, 75)
		self.assertEqual(view.eta, '10-15 mins')
		self.assertGreater(view.distance_meters, 10000)

		self.tracker.apply_location(20, None)
		self.assertEqual(self.tracker.view().progress, 65)

	def test_unrelated_user_is_ignored(self):
		self.assertFalse(self.tracker.apply_location(99, {'lat': 1, 'lng': 1, 'is_sharing': True}))
		self.assertEqual(self.tracker.view().state, SharingState.NEITHER)


class LocationPublisherTests(TestCase):
	def setUp(self):
		cache.clear()
		self.driver = User.objects.create_user(
			username='driver', password='pass1234', is_driver=True, phone_number='+2348000000000'
		)
		self.customer = User.objects.create_user(username='customer', password='pass1234')
		self.trip = Trip.objects.create(
			driver=self.driver,
			customer=self.customer,
			pickup_location='Airport',
			destination='Harbour',
		)
		self.geolocation = ClientReportedGeolocation()
		self.publisher = LocationPublisher(self.geolocation, geocoder=_geocoder)

	def _start(self, user, trip_id=None):
		self.geolocation.report_position(PositionFix(lat=6.45, lng=3.39, accuracy=12.0))
		return self.publisher.start_sharing(user, user.id, trip_id=trip_id)

	def test_start_writes_location_and_mirrors_into_trip(self):
		snapshot = self._start(self.driver, trip_id=self.trip.id)

		self.assertTrue(snapshot.is_sharing)
		self.assertEqual(snapshot.address, '12 Harbour Road')
		location = UserLocation.objects.get(user=self.driver)
		self.assertTrue(location.is_sharing)
		self.assertEqual(location.trip_id, self.trip.id)

		self.trip.refresh_from_db()
		self.assertTrue(self.trip.driver_location['is_sharing'])
		self.assertEqual(self.trip.driver_location['lat'], 6.45)
		self.assertIsNone(self.trip.customer_location)
		self.assertEqual(get_resume_state(self.driver.id), {'trip_id': self.trip.id, 'vehicle_id': None})
		self.assertEqual(self.geolocation.active_watches, 1)

	def test_watch_updates_position(self):
		self._start(self.customer, trip_id=self.trip.id)

		self.geolocation.report_position(PositionFix(lat=6.50, lng=3.40))

		location = UserLocation.objects.get(user=self.customer)
		self.assertEqual(location.lat, 6.50)
		self.trip.refresh_from_db()
		self.assertEqual(self.trip.customer_location['lat'], 6.50)

	def test_stale_fix_is_dropped(self):
		self._start(self.customer)

		old = timezone.now() - timedelta(minutes=5)
		self.geolocation.report_position(PositionFix(lat=7.0, lng=4.0, timestamp=old))

		self.assertEqual(UserLocation.objects.get(user=self.customer).lat, 6.45)

	def test_driver_without_phone_cannot_share(self):
		self.driver.phone_number = ''
		self.driver.save()

		with self.assertRaises(MissingContactInfo):
			self._start(self.driver)
		self.assertFalse(UserLocation.objects.filter(user=self.driver).exists())

	def test_cannot_share_for_someone_else_or_a_foreign_trip(self):
		outsider = User.objects.create_user(username='outsider', password='pass1234')
		self.geolocation.report_position(PositionFix(lat=6.45, lng=3.39))

		with self.assertRaises(PermissionDenied):
			self.publisher.start_sharing(outsider, self.customer.id)
		with self.assertRaises(PermissionDenied):
			self.publisher.start_sharing(outsider, outsider.id, trip_id=self.trip.id)

	def test_cannot_share_into_a_finished_trip(self):
		Trip.objects.filter(id=self.trip.id).update(status='completed')

		with self.assertRaises(StateConflict):
			self._start(self.customer, trip_id=self.trip.id)

	def test_no_fix_means_position_unavailable(self):
		with self.assertRaises(PositionUnavailable):
			self.publisher.start_sharing(self.customer, self.customer.id)

	def test_device_error_before_start_is_raised(self):
		self.geolocation.report_error('timeout')

		with self.assertRaises(LocationTimeout):
			self.publisher.start_sharing(self.customer, self.customer.id)

	def test_stop_twice_leaves_sharing_off(self):
		self._start(self.customer, trip_id=self.trip.id)

		self.publisher.stop_sharing(self.customer, self.customer.id)
		self.publisher.stop_sharing(self.customer, self.customer.id)

		location = UserLocation.objects.get(user=self.customer)
		self.assertFalse(location.is_sharing)
		self.assertIsNone(location.trip_id)
		self.trip.refresh_from_db()
		self.assertFalse(self.trip.customer_location['is_sharing'])
		self.assertIsNone(get_resume_state(self.customer.id))
		self.assertEqual(self.geolocation.active_watches, 0)

	def test_switching_trips_clears_the_old_trip_copy(self):
		second_trip = Trip.objects.create(
			driver=self.driver,
			customer=self.customer,
			pickup_location='Harbour',
			destination='Stadium',
		)
		self._start(self.customer, trip_id=self.trip.id)
		self._start(self.customer, trip_id=second_trip.id)

		self.trip.refresh_from_db()
		self.assertFalse(self.trip.customer_location['is_sharing'])

		self.publisher.stop_sharing(self.customer, self.customer.id)

		self.trip.refresh_from_db()
		second_trip.refresh_from_db()
		self.assertFalse(self.trip.customer_location['is_sharing'])
		self.assertFalse(second_trip.customer_location['is_sharing'])

	def test_sharing_without_a_trip_clears_the_previous_trip_copy(self):
		self._start(self.customer, trip_id=self.trip.id)
		self._start(self.customer)

		self.trip.refresh_from_db()
		self.assertFalse(self.trip.customer_location['is_sharing'])
		self.assertTrue(UserLocation.objects.get(user=self.customer).is_sharing)

	def test_late_fix_after_stop_does_not_resume_sharing(self):
		self._start(self.customer)
		mark_sharing_stopped(self.customer.id)

		self.publisher._on_position(PositionFix(lat=9.0, lng=9.0))

		location = UserLocation.objects.get(user=self.customer)
		self.assertFalse(location.is_sharing)
		self.assertEqual(location.lat, 6.45)

	def test_watch_error_stops_sharing(self):
		errors = []
		publisher = LocationPublisher(self.geolocation, geocoder=_geocoder, on_error=errors.append)
		self.geolocation.report_position(PositionFix(lat=6.45, lng=3.39))
		publisher.start_sharing(self.customer, self.customer.id, trip_id=self.trip.id)

		self.geolocation.report_error('permission_denied')

		self.assertFalse(publisher.is_sharing)
		self.assertIsInstance(errors[0], GeolocationPermissionDenied)
		self.assertFalse(UserLocation.objects.get(user=self.customer).is_sharing)
		self.trip.refresh_from_db()
		self.assertFalse(self.trip.customer_location['is_sharing'])

	def test_tracker_is_built_from_stored_locations(self):
		self._start(self.driver, trip_id=self.trip.id)

		view = build_tracker_for_trip(self.trip).view()

		self.assertEqual(view.state, SharingState.DRIVER_ONLY)
		self.assertEqual(view.trip['id'], self.trip.id)


class ReverseGeocodeTests(TestCase):
	@patch('services.location_sharing.geocoding.requests.get')
	def test_returns_display_name(self, mock_get):
		mock_get.return_value = MagicMock(json=MagicMock(return_value={'display_name': 'Victoria Island, Lagos'}))

		self.assertEqual(reverse_geocode(6.42, 3.42), 'Victoria Island, Lagos')

	@patch('services.location_sharing.geocoding.requests.get')
	def test_failure_falls_back_to_placeholder(self, mock_get):
		mock_get.side_effect = requests.ConnectionError('offline')

		self.assertEqual(reverse_geocode(6.42, 3.42), PLACEHOLDER_ADDRESS)

	@patch('services.location_sharing.geocoding.requests.get')
	def test_missing_display_name(self, mock_get):
		mock_get.return_value = MagicMock(json=MagicMock(return_value={'error': 'Unable to geocode'}))

		self.assertEqual(reverse_geocode(0, 0), NO_ADDRESS)


class TripLifecycleTests(TestCase):
	def setUp(self):
		cache.clear()
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(
			username='driver', password='pass1234', is_driver=True, phone_number='+2348000000000'
		)
		self.customer = User.objects.create_user(username='customer', password='pass1234')
		self.trip = Trip.objects.create(
			driver=self.driver,
			customer=self.customer,
			pickup_location='Airport',
			destination='Harbour',
		)

	def _post(self, view, user, data=None, **kwargs):
		request = self.factory.post('/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def test_customer_books_a_trip(self):
		response = self._post(views.trips, self.customer, {
			'driver_id': self.driver.id,
			'pickup_location': 'Ikeja',
			'destination': 'Lekki',
		})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], 'active')

	def test_booking_a_non_driver_is_not_found(self):
		other = User.objects.create_user(username='other', password='pass1234')

		response = self._post(views.trips, self.customer, {
			'driver_id': other.id,
			'pickup_location': 'Ikeja',
			'destination': 'Lekki',
		})

		self.assertEqual(response.status_code, 404)

	@patch('services.location_sharing.publisher.reverse_geocode', _geocoder)
	def test_sharing_over_http_and_completing_stops_it(self):
		response = self._post(views.start_sharing, self.customer, {
			'lat': 6.45, 'lng': 3.39, 'trip_id': self.trip.id,
		})
		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['location']['is_sharing'])

		response = self._post(views.complete_trip_view, self.driver, trip_id=self.trip.id)
		self.assertEqual(response.status_code, 200)

		self.trip.refresh_from_db()
		self.assertEqual(self.trip.status, 'completed')
		self.assertIsNotNone(self.trip.completed_at)
		self.assertFalse(self.trip.customer_location['is_sharing'])
		self.assertFalse(UserLocation.objects.get(user=self.customer).is_sharing)

	def test_update_without_sharing_is_a_conflict(self):
		with patch('trips.views.reverse_geocode', _geocoder):
			response = self._post(views.update_location, self.customer, {'lat': 6.45, 'lng': 3.39})

		self.assertEqual(response.status_code, 409)

	def test_only_driver_completes(self):
		response = self._post(views.complete_trip_view, self.customer, trip_id=self.trip.id)

		self.assertEqual(response.status_code, 403)

	def test_finished_trip_cannot_be_cancelled(self):
		self._post(views.cancel_trip_view, self.customer, trip_id=self.trip.id)
		response = self._post(views.cancel_trip_view, self.driver, trip_id=self.trip.id)

		self.assertEqual(response.status_code, 409)

	def test_rating_only_after_trip_ends(self):
		response = self._post(views.rate_trip_view, self.customer, {'rating': 5}, trip_id=self.trip.id)
		self.assertEqual(response.status_code, 409)

		self._post(views.complete_trip_view, self.driver, trip_id=self.trip.id)
		response = self._post(views.rate_trip_view, self.customer, {'rating': 5, 'review': 'Smooth'}, trip_id=self.trip.id)

		self.assertEqual(response.status_code, 200)
		self.trip.refresh_from_db()
		self.assertEqual(self.trip.rating, 5)

	def test_outsider_cannot_view_tracking(self):
		outsider = User.objects.create_user(username='outsider', password='pass1234')
		request = self.factory.get('/')
		force_authenticate(request, user=outsider)

		response = views.trip_tracking_view(request, trip_id=self.trip.id)

		self.assertEqual(response.status_code, 403)


class TrackingLinkTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(username='tracked', password='pass1234', full_name='Ada Obi')
		self.token = issue_tracking_token(self.user, 'Mum')

	def _get(self, user_id, token):
		return views.public_tracking_view(self.factory.get('/'), user_id=user_id, token=token)

	def test_valid_link_shows_live_location(self):
		UserLocation.objects.create(user=self.user, lat=6.45, lng=3.39, is_sharing=True)

		response = self._get(self.user.id, self.token.token)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['name'], 'Ada Obi')
		self.assertTrue(response.data['is_sharing'])
		self.assertEqual(response.data['location']['lat'], 6.45)

	def test_stopped_location_is_hidden(self):
		UserLocation.objects.create(user=self.user, lat=6.45, lng=3.39, is_sharing=False)

		response = self._get(self.user.id, self.token.token)

		self.assertFalse(response.data['is_sharing'])
		self.assertIsNone(response.data['location'])

	def test_every_bad_link_fails_the_same_way(self):
		other = User.objects.create_user(username='other', password='pass1234')
		expired = issue_tracking_token(self.user)
		TrackingToken.objects.filter(id=expired.id).update(expires_at=timezone.now() - timedelta(minutes=1))

		responses = [
			self._get(self.user.id, 'no-such-token'),
			self._get(other.id, self.token.token),
			self._get(self.user.id, expired.token),
		]

		for response in responses:
			self.assertEqual(response.status_code, 410)
			self.assertEqual(response.data, {
				'error': TrackingLinkInvalid.default_message,
				'code': 'link_expired',
			})

	def test_revoked_link_is_invalid(self):
		request = self.factory.post('/')
		force_authenticate(request, user=self.user)
		response = views.revoke_tracking_token_view(request, token=self.token.token)
		self.assertEqual(response.status_code, 200)

		with self.assertRaises(TrackingLinkInvalid):
			resolve_tracking_token(self.user.id, self.token.token)

	def test_purge_command_removes_expired_and_revoked(self):
		expired = issue_tracking_token(self.user)
		TrackingToken.objects.filter(id=expired.id).update(expires_at=timezone.now() - timedelta(hours=2))
		revoked = issue_tracking_token(self.user)
		TrackingToken.objects.filter(id=revoked.id).update(is_valid=False)

		out = StringIO()
		call_command('purge_tracking_tokens', stdout=out)

		self.assertEqual(list(TrackingToken.objects.values_list('id', flat=True)), [self.token.id])
		self.assertIn('Deleted 2', out.getvalue())


class RetryTests(TestCase):
	@patch('common.utils.retry.time.sleep')
	def test_transient_errors_are_retried_then_surfaced(self, mock_sleep):
		calls = []

		@with_retry(attempts=3, initial_backoff=0.1)
		def flaky():
			calls.append(1)
			raise OperationalError('database is locked')

		with self.assertRaises(TransientNetworkError):
			flaky()
		self.assertEqual(len(calls), 3)
		self.assertEqual([c.args[0] for c in mock_sleep.call_args_list], [0.1, 0.2])

	@patch('common.utils.retry.time.sleep')
	def test_success_after_one_failure(self, mock_sleep):
		outcomes = [OperationalError('locked'), 'ok']

		@with_retry(attempts=3, initial_backoff=0.1)
		def flaky():
			outcome = outcomes.pop(0)
			if isinstance(outcome, Exception):
				raise outcome
			return outcome

		self.assertEqual(flaky(), 'ok')
		self.assertEqual(mock_sleep.call_count, 1)


class HealthCheckTests(TestCase):
	def test_reports_each_backing_service(self):
		from carhire_backend.views import health_check

		response = health_check(APIRequestFactory().get('/health/'))

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['services']['database'], 'healthy')
		self.assertEqual(response.data['services']['cache'], 'healthy')
		self.assertNotIn('redis', response.data['services'])
