from unittest.mock import patch

from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.core.cache import cache
from django.test import TransactionTestCase
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from services.chat import open_or_create_thread, send_message
from services.tracking_links import issue_tracking_token
from services.trip_management import complete_trip
from trips.models import Trip, UserLocation

from .middleware import JWTOrCookieAuthMiddleware
from .routing import websocket_urlpatterns

application = JWTOrCookieAuthMiddleware(URLRouter(websocket_urlpatterns))


def _geocoder(lat, lng):
	return "12 Harbour Road"


async def receive_until(communicator, msg_type, predicate=None, limit=10):
	"""Skip unrelated pushes until a message of ``msg_type`` (matching ``predicate``) arrives."""
	for _ in range(limit):
		message = await communicator.receive_json_from(timeout=3)
		if message.get('type') == msg_type and (predicate is None or predicate(message)):
			return message
	raise AssertionError(f"No {msg_type} message received")


class RealtimeTestCase(TransactionTestCase):
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

	def connect_as(self, user, path):
		token = AccessToken.for_user(user)
		return WebsocketCommunicator(application, f"{path}?token={token}")


class TripTrackingConsumerTests(RealtimeTestCase):
	async def test_tracker_follows_both_sources(self):
		communicator = self.connect_as(self.customer, f"/ws/trips/{self.trip.id}/track/")
		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		initial = await receive_until(communicator, 'tracker_view')
		self.assertEqual(initial['progress'], 10)
		self.assertEqual(initial['trip']['status'], 'active')

		await database_sync_to_async(UserLocation.objects.create)(
			user=self.driver, lat=6.45, lng=3.39, is_sharing=True, trip=self.trip
		)
		view = await receive_until(communicator, 'tracker_view', lambda m: m['driver_sharing'])
		self.assertEqual(view['progress'], 65)
		self.assertEqual(view['status_message'], 'Driver en route')

		await database_sync_to_async(complete_trip)(self.driver, self.trip.id)
		view = await receive_until(communicator, 'tracker_view', lambda m: m['progress'] == 10)
		self.assertEqual(view['trip']['status'], 'completed')

		await communicator.disconnect()

	async def test_outsider_is_refused(self):
		outsider = await database_sync_to_async(User.objects.create_user)(username='outsider', password='pass1234')
		communicator = self.connect_as(outsider, f"/ws/trips/{self.trip.id}/track/")
		await communicator.connect()

		error = await communicator.receive_json_from(timeout=3)
		self.assertEqual(error['type'], 'error')
		self.assertEqual(error['code'], 'permission_denied')
		closed = await communicator.receive_output(timeout=3)
		self.assertEqual(closed['type'], 'websocket.close')
		self.assertEqual(closed['code'], 4403)

		await communicator.disconnect()

	async def test_anonymous_connection_is_closed(self):
		communicator = WebsocketCommunicator(application, f"/ws/trips/{self.trip.id}/track/")
		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_invalid_jwt_is_anonymous(self):
		communicator = WebsocketCommunicator(application, "/ws/location/?token=not-a-jwt")
		connected, _ = await communicator.connect()

		self.assertFalse(connected)


class LocationConsumerTests(RealtimeTestCase):
	async def test_start_then_stop_sharing(self):
		with patch('services.location_sharing.publisher.reverse_geocode', _geocoder):
			communicator = self.connect_as(self.driver, "/ws/location/")
			connected, _ = await communicator.connect()
			self.assertTrue(connected)

			hello = await receive_until(communicator, 'connection_established')
			self.assertFalse(hello['resume_sharing'])

			await communicator.send_json_to({
				'type': 'start_sharing', 'lat': 6.45, 'lng': 3.39, 'trip_id': self.trip.id,
			})
			started = await receive_until(communicator, 'sharing_started')
			self.assertEqual(started['location']['address'], '12 Harbour Road')

			trip = await database_sync_to_async(Trip.objects.get)(id=self.trip.id)
			self.assertTrue(trip.driver_location['is_sharing'])

			await communicator.send_json_to({'type': 'stop_sharing'})
			await receive_until(communicator, 'sharing_stopped')

			location = await database_sync_to_async(UserLocation.objects.get)(user=self.driver)
			self.assertFalse(location.is_sharing)

			await communicator.disconnect()

	async def test_position_without_sharing_is_rejected(self):
		communicator = self.connect_as(self.customer, "/ws/location/")
		await communicator.connect()
		await receive_until(communicator, 'connection_established')

		await communicator.send_json_to({'type': 'position', 'lat': 6.45, 'lng': 3.39})
		error = await receive_until(communicator, 'error')

		self.assertEqual(error['code'], 'state_conflict')
		await communicator.disconnect()

	async def test_device_permission_error_is_reported(self):
		communicator = self.connect_as(self.customer, "/ws/location/")
		await communicator.connect()
		await receive_until(communicator, 'connection_established')

		await communicator.send_json_to({'type': 'start_sharing', 'error': 'permission_denied'})
		error = await receive_until(communicator, 'error')

		self.assertEqual(error['code'], 'permission_denied')
		self.assertIn('enable location services', error['message'])
		await communicator.disconnect()


class PublicTrackingConsumerTests(RealtimeTestCase):
	async def test_bad_link_is_closed(self):
		communicator = WebsocketCommunicator(application, f"/ws/track/{self.customer.id}/bogus-token/")
		connected, _ = await communicator.connect()
		self.assertTrue(connected)

		error = await communicator.receive_json_from(timeout=3)
		self.assertEqual(error['code'], 'link_expired')
		closed = await communicator.receive_output(timeout=3)
		self.assertEqual(closed['code'], 4410)

		await communicator.disconnect()

	async def test_link_streams_live_location(self):
		token = await database_sync_to_async(issue_tracking_token)(self.customer)
		communicator = WebsocketCommunicator(application, f"/ws/track/{self.customer.id}/{token.token}/")
		await communicator.connect()

		view = await receive_until(communicator, 'tracking_view')
		self.assertFalse(view['is_sharing'])

		await database_sync_to_async(UserLocation.objects.create)(
			user=self.customer, lat=6.45, lng=3.39, is_sharing=True
		)
		view = await receive_until(communicator, 'tracking_view', lambda m: m['is_sharing'])
		self.assertEqual(view['location']['lat'], 6.45)

		await communicator.disconnect()


class ChatConsumerTests(RealtimeTestCase):
	async def test_listing_is_pushed_again_on_new_message(self):
		thread, _ = await database_sync_to_async(open_or_create_thread)(
			self.customer, self.customer.id, self.driver.id
		)
		communicator = self.connect_as(self.customer, "/ws/chats/")
		await communicator.connect()

		listing = await receive_until(communicator, 'chat_threads')
		self.assertEqual(listing['threads'][0]['last_message'], 'No messages yet')
		self.assertEqual(listing['unread_total'], 0)

		await database_sync_to_async(send_message)(self.driver, thread.id, self.driver.id, 'Car is ready')
		listing = await receive_until(communicator, 'chat_threads', lambda m: m['unread_total'] == 1)
		self.assertEqual(listing['threads'][0]['last_message'], 'Car is ready')

		await communicator.send_json_to({'type': 'mark_read', 'thread_id': thread.id})
		marked = await receive_until(communicator, 'marked_read')
		self.assertEqual(marked['count'], 1)

		await communicator.disconnect()

	async def test_blank_message_gets_an_error(self):
		thread, _ = await database_sync_to_async(open_or_create_thread)(
			self.customer, self.customer.id, self.driver.id
		)
		communicator = self.connect_as(self.customer, "/ws/chats/")
		await communicator.connect()
		await receive_until(communicator, 'chat_threads')

		await communicator.send_json_to({'type': 'send_message', 'thread_id': thread.id, 'text': ''})
		error = await receive_until(communicator, 'error')

		self.assertEqual(error['code'], 'validation_error')
		await communicator.disconnect()
