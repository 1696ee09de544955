from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import Notification, User
from chats.models import ChatThread
from services.bookings import (
	accept_offer,
	create_request,
	delete_request,
	expire_stale_requests,
	make_offer,
	open_requests,
	update_request,
	withdraw_offer,
)
from services.exceptions import MissingFields, PermissionDenied, StateConflict, ValidationError

from .models import BookingRequest, Offer
from .tasks import expire_booking_requests
from . import views


def _post_request(customer, **overrides):
	fields = {'car_type': 'SUV', 'location': 'Lekki', 'urgent': False}
	fields.update(overrides)
	return create_request(customer, **fields)


@override_settings(MAX_ACTIVE_BOOKING_REQUESTS=3, BOOKING_REQUEST_TTL=timedelta(days=7))
class BookingRequestTests(TestCase):
	def setUp(self):
		self.customer = User.objects.create_user(username='customer', password='pass1234')

	def test_post_request_defaults(self):
		booking = _post_request(self.customer, start_date=date(2026, 3, 1), end_date=date(2026, 3, 3))

		self.assertEqual(booking.status, 'active')
		self.assertEqual(booking.destination, 'Lekki')
		self.assertTrue(booking.is_same_city)
		self.assertEqual(booking.views, 0)
		remaining = booking.expires_at - timezone.now()
		self.assertTrue(timedelta(days=6, hours=23) < remaining <= timedelta(days=7))

	def test_active_request_limit(self):
		for _ in range(3):
			_post_request(self.customer)

		with self.assertRaises(StateConflict):
			_post_request(self.customer)

		# A lapsed request no longer counts
		BookingRequest.objects.filter(id=BookingRequest.objects.first().id).update(
			expires_at=timezone.now() - timedelta(minutes=1)
		)
		_post_request(self.customer)
		self.assertEqual(BookingRequest.objects.filter(customer=self.customer).count(), 4)

	def test_required_fields_and_dates(self):
		with self.assertRaises(MissingFields):
			create_request(self.customer, car_type='SUV')
		with self.assertRaises(ValidationError):
			_post_request(self.customer, start_date=date(2026, 3, 3), end_date=date(2026, 3, 1))

	def test_only_owner_edits_or_deletes(self):
		booking = _post_request(self.customer)
		other = User.objects.create_user(username='other', password='pass1234')

		with self.assertRaises(PermissionDenied):
			update_request(other, booking.id, urgent=True)
		with self.assertRaises(PermissionDenied):
			delete_request(other, booking.id)

		updated = update_request(self.customer, booking.id, urgent=True, destination='Ikeja')
		self.assertTrue(updated.urgent)
		self.assertFalse(updated.is_same_city)

		delete_request(self.customer, booking.id)
		self.assertFalse(BookingRequest.objects.filter(id=booking.id).exists())

	def test_open_requests_skip_closed_ones(self):
		calm = _post_request(self.customer)
		urgent = _post_request(self.customer, urgent=True)
		lapsed = _post_request(self.customer)
		BookingRequest.objects.filter(id=lapsed.id).update(expires_at=timezone.now() - timedelta(hours=1))

		self.assertEqual([b.id for b in open_requests()], [urgent.id, calm.id])
		self.assertEqual([b.id for b in open_requests(urgent_only=True)], [urgent.id])

	def test_expiry_pass_marks_lapsed_requests(self):
		booking = _post_request(self.customer)
		BookingRequest.objects.filter(id=booking.id).update(expires_at=timezone.now() - timedelta(hours=1))

		self.assertEqual(expire_booking_requests(), 1)
		booking.refresh_from_db()
		self.assertEqual(booking.status, 'expired')
		self.assertEqual(expire_stale_requests(), 0)


class OfferTests(TestCase):
	def setUp(self):
		self.customer = User.objects.create_user(username='customer', password='pass1234', full_name='Bisi')
		self.driver = User.objects.create_user(
			username='driver', password='pass1234', is_driver=True, phone_number='+2348000000000'
		)
		self.rival = User.objects.create_user(
			username='rival', password='pass1234', is_driver=True, phone_number='+2348000000001'
		)
		self.booking = _post_request(self.customer)

	def test_only_drivers_offer_and_never_on_their_own_request(self):
		with self.assertRaises(PermissionDenied):
			make_offer(self.customer, self.booking.id, car_make='Corolla', price=15000)

		own = _post_request(self.driver)
		with self.assertRaises(PermissionDenied):
			make_offer(self.driver, own.id, car_make='Corolla', price=15000)

		with self.assertRaises(MissingFields):
			make_offer(self.driver, self.booking.id, car_make='', price=15000)

	def test_one_offer_per_driver_until_withdrawn(self):
		offer = make_offer(self.driver, self.booking.id, car_make='Corolla', price=15000)

		with self.assertRaises(StateConflict):
			make_offer(self.driver, self.booking.id, car_make='Camry', price=14000)

		withdraw_offer(self.driver, offer.id)
		again = make_offer(self.driver, self.booking.id, car_make='Camry', price=14000)

		self.assertEqual(list(self.booking.offers.values_list('id', flat=True)), [again.id])
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.views, 2)

	def test_cannot_offer_on_a_closed_request(self):
		BookingRequest.objects.filter(id=self.booking.id).update(expires_at=timezone.now() - timedelta(minutes=1))

		with self.assertRaises(StateConflict):
			make_offer(self.driver, self.booking.id, car_make='Corolla', price=15000)

	def test_offer_notifies_the_customer(self):
		with patch('realtime.notifications.push_user_notification'):
			with self.captureOnCommitCallbacks(execute=True):
				offer = make_offer(self.driver, self.booking.id, car_make='Corolla', price=15000)

		notification = Notification.objects.get(user=self.customer, key=f'offer_{offer.id}')
		self.assertEqual(notification.title, 'New offer')

	def test_accepting_an_offer_opens_the_chat(self):
		chosen = make_offer(self.driver, self.booking.id, car_make='Corolla', price=15000)
		passed_over = make_offer(self.rival, self.booking.id, car_make='Sienna', price=18000)

		with patch('realtime.notifications.push_user_notification'):
			with self.captureOnCommitCallbacks(execute=True):
				result = accept_offer(self.customer, chosen.id)

		self.assertEqual(result.offer.status, 'accepted')
		self.assertEqual(result.rejected_count, 1)
		passed_over.refresh_from_db()
		self.assertEqual(passed_over.status, 'rejected')
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, 'fulfilled')

		thread = result.thread
		self.assertTrue(result.thread_created)
		self.assertEqual(set(thread.participant_ids), {self.customer.id, self.driver.id})
		self.assertEqual(thread.car_info, {'id': f'request-{self.booking.id}', 'title': 'SUV - Lekki'})
		self.assertTrue(Notification.objects.filter(user=self.driver, key=f'offer_accepted_{chosen.id}').exists())

	def test_accept_rules(self):
		offer = make_offer(self.driver, self.booking.id, car_make='Corolla', price=15000)
		other = make_offer(self.rival, self.booking.id, car_make='Sienna', price=18000)

		with self.assertRaises(PermissionDenied):
			accept_offer(self.driver, offer.id)

		accept_offer(self.customer, offer.id)

		with self.assertRaises(StateConflict):
			accept_offer(self.customer, other.id)
		with self.assertRaises(StateConflict):
			withdraw_offer(self.driver, offer.id)
		with self.assertRaises(PermissionDenied):
			withdraw_offer(self.driver, other.id)
		self.assertEqual(ChatThread.objects.count(), 1)


class BookingViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.customer = User.objects.create_user(username='customer', password='pass1234')
		self.driver = User.objects.create_user(
			username='driver', password='pass1234', is_driver=True, phone_number='+2348000000000'
		)
		self.rival = User.objects.create_user(
			username='rival', password='pass1234', is_driver=True, phone_number='+2348000000001'
		)

	def _call(self, view, user, method='get', data=None, **kwargs):
		if method == 'get':
			request = self.factory.get('/api/bookings/')
		else:
			request = getattr(self.factory, method)('/api/bookings/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def test_post_and_browse(self):
		response = self._call(views.booking_requests, self.customer, 'post', {
			'car_type': 'Bus', 'location': 'Yaba', 'destination': 'Ibadan',
			'trip_type': 'event', 'passengers': '10+', 'budget': '80000', 'urgent': True,
		})
		self.assertEqual(response.status_code, 201)
		self.assertFalse(response.data['is_same_city'])

		listing = self._call(views.booking_requests, self.driver)
		self.assertEqual([r['id'] for r in listing.data], [response.data['id']])

	def test_fourth_request_is_a_conflict(self):
		for _ in range(3):
			_post_request(self.customer)

		response = self._call(views.booking_requests, self.customer, 'post', {'car_type': 'SUV', 'location': 'Lekki'})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['code'], 'state_conflict')

	def test_drivers_only_see_their_own_offer(self):
		booking = _post_request(self.customer)
		make_offer(self.driver, booking.id, car_make='Corolla', price=Decimal('15000'))
		make_offer(self.rival, booking.id, car_make='Sienna', price=Decimal('18000'))

		as_driver = self._call(views.booking_request_detail, self.driver, request_id=booking.id)
		as_owner = self._call(views.booking_request_detail, self.customer, request_id=booking.id)

		self.assertEqual(as_driver.data['offer_count'], 2)
		self.assertEqual([o['driver_id'] for o in as_driver.data['offers']], [self.driver.id])
		self.assertEqual(len(as_owner.data['offers']), 2)

	def test_offer_and_accept_over_http(self):
		booking = _post_request(self.customer)

		offered = self._call(
			views.make_offer_view, self.driver, 'post',
			{'car_make': 'Corolla', 'price': '15000', 'message': 'AC works'}, request_id=booking.id,
		)
		self.assertEqual(offered.status_code, 201)

		refused = self._call(views.accept_offer_view, self.driver, 'post', offer_id=offered.data['id'])
		self.assertEqual(refused.status_code, 403)

		accepted = self._call(views.accept_offer_view, self.customer, 'post', offer_id=offered.data['id'])
		self.assertEqual(accepted.status_code, 200)
		self.assertEqual(accepted.data['offer']['status'], 'accepted')
		self.assertEqual(sorted(accepted.data['chat']['participants']), sorted([self.customer.id, self.driver.id]))
		self.assertEqual(Offer.objects.get(id=offered.data['id']).status, 'accepted')
