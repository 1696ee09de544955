import hashlib
import hmac
import json
from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from bookings.models import BookingRequest
from chats.models import ChatThread
from services.bookings import create_request, make_offer
from services.chat import open_or_create_thread
from services.exceptions import InvalidVipLevel, MissingFields, NotFound, ValidationError
from services.location_sharing import get_resume_state, set_resume_state
from services.notifications import send_notification
from services.referrals import award_referral, issue_referral_code, resolve_referrer
from services.referrals.codes import CODE_ALPHABET, CODE_LENGTH
from services.vip import VIP_TERM, purchase_vip, vip_summary
from trips.models import TrackingToken, Trip

from .models import Notification, ReferralEntry, User, VipPurchase
from .views import MeView, RegisterView
from .vip_views import payment_webhook


@override_settings(POINTS_PER_REFERRAL=2, POINTS_REQUIRED_PER_FREE_RIDE=20)
class ReferralLedgerTests(TestCase):
	def setUp(self):
		self.referrer = User.objects.create_user(username='referrer', password='pass1234')
		self.newcomer = User.objects.create_user(username='newcomer', password='pass1234')

	def test_every_user_gets_a_unique_code(self):
		other = User.objects.create_user(username='other', password='pass1234')

		self.assertEqual(len(self.referrer.referral_code), CODE_LENGTH)
		self.assertTrue(set(self.referrer.referral_code) <= set(CODE_ALPHABET))
		self.assertNotEqual(self.referrer.referral_code, other.referral_code)
		self.assertNotIn(issue_referral_code(), {self.referrer.referral_code, other.referral_code})

	def test_resolve_referrer(self):
		self.assertEqual(resolve_referrer(self.referrer.referral_code), self.referrer.id)
		self.assertEqual(resolve_referrer(self.referrer.referral_code.lower()), self.referrer.id)
		self.assertIsNone(resolve_referrer('ZZZZZZZZ'))
		self.assertIsNone(resolve_referrer('short'))
		self.assertIsNone(resolve_referrer(None))

	def test_crossing_a_threshold_grants_exactly_one_free_ride(self):
		User.objects.filter(id=self.referrer.id).update(referral_points=18)

		with patch('realtime.notifications.push_user_notification'):
			with self.captureOnCommitCallbacks(execute=True):
				award = award_referral(self.referrer.id, self.newcomer.id)

		self.referrer.refresh_from_db()
		self.assertEqual(self.referrer.referral_points, 20)
		self.assertEqual(self.referrer.free_rides, 1)
		self.assertEqual(award.free_rides_awarded, 1)
		ride = Notification.objects.get(user=self.referrer, key='free_ride_1')
		self.assertEqual(ride.title, 'Free ride earned')
		self.assertTrue(Notification.objects.filter(user=self.referrer, key=f'referral_{self.newcomer.id}').exists())

	def test_no_free_ride_below_threshold(self):
		User.objects.filter(id=self.referrer.id).update(referral_points=4)

		with patch('realtime.notifications.push_user_notification'):
			with self.captureOnCommitCallbacks(execute=True):
				award_referral(self.referrer.id, self.newcomer.id)

		self.referrer.refresh_from_db()
		self.assertEqual(self.referrer.referral_points, 6)
		self.assertEqual(self.referrer.free_rides, 0)
		self.assertFalse(Notification.objects.filter(user=self.referrer, key__startswith='free_ride_').exists())
		self.assertTrue(Notification.objects.filter(user=self.referrer, key=f'referral_{self.newcomer.id}').exists())

	def test_resolve_award_reread_round_trip(self):
		referrer_id = resolve_referrer(self.referrer.referral_code)
		award_referral(referrer_id, self.newcomer.id)

		referrer = User.objects.get(id=referrer_id)
		self.assertEqual(referrer.referrals.count(), 1)
		entry = referrer.referrals.get()
		self.assertEqual(entry.referred_user_id, self.newcomer.id)
		self.assertEqual(entry.points, 2)
		self.assertEqual(entry.status, 'completed')
		self.assertEqual(referrer.referral_points, 2)
		self.assertEqual(referrer.referral_count, 1)

		self.newcomer.refresh_from_db()
		self.assertEqual(self.newcomer.referred_by_id, referrer_id)

	def test_repeat_award_for_same_user_changes_nothing(self):
		award_referral(self.referrer.id, self.newcomer.id)
		second = award_referral(self.referrer.id, self.newcomer.id)

		self.referrer.refresh_from_db()
		self.assertFalse(second.created)
		self.assertEqual(self.referrer.referral_points, 2)
		self.assertEqual(ReferralEntry.objects.count(), 1)

	def test_self_referral_and_missing_users_are_rejected(self):
		with self.assertRaises(ValidationError):
			award_referral(self.referrer.id, self.referrer.id)
		with self.assertRaises(NotFound):
			award_referral(999999, self.newcomer.id)

	def test_referral_count_unlocks_vip_tier(self):
		User.objects.filter(id=self.referrer.id).update(referral_count=14)

		award_referral(self.referrer.id, self.newcomer.id)

		self.referrer.refresh_from_db()
		self.assertEqual(self.referrer.referral_count, 15)
		self.assertEqual(self.referrer.vip_level, 1)

	def test_register_with_ref_awards_the_referrer(self):
		factory = APIRequestFactory()
		request = factory.post('/api/auth/register/', {
			'username': 'joiner',
			'password': 'pass1234',
			'email': 'joiner@example.com',
			'ref': self.referrer.referral_code,
		}, format='json')
		response = RegisterView.as_view()(request)

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['referred'])
		self.referrer.refresh_from_db()
		self.assertEqual(self.referrer.referral_count, 1)

	def test_register_driver_requires_phone(self):
		factory = APIRequestFactory()
		request = factory.post('/api/auth/register/', {
			'username': 'driver',
			'password': 'pass1234',
			'is_driver': True,
		}, format='json')
		response = RegisterView.as_view()(request)

		self.assertEqual(response.status_code, 400)
		self.assertIn('phone_number', response.data)


class VipLedgerTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='buyer', password='pass1234')
		self.now = timezone.now()

	def test_fresh_purchase_runs_one_term(self):
		receipt = purchase_vip(self.user.id, 2, 'pay-1', now=self.now)

		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_purchase_date, self.now)
		self.assertEqual(self.user.vip_expiry_date, self.now + VIP_TERM)
		self.assertEqual(self.user.purchased_vip_level, 2)
		self.assertEqual(self.user.vip_level, 2)
		self.assertEqual(receipt.price, 7500)

	def test_purchase_stacks_on_unexpired_subscription(self):
		original_purchase = self.now - timedelta(days=165)
		current_expiry = self.now + timedelta(days=200)
		User.objects.filter(id=self.user.id).update(
			vip_level=1,
			purchased_vip_level=1,
			vip_purchase_date=original_purchase,
			vip_expiry_date=current_expiry,
		)

		purchase_vip(self.user.id, 3, 'pay-2', now=self.now)

		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_expiry_date, self.now + timedelta(days=200) + timedelta(days=365))
		self.assertEqual(self.user.vip_purchase_date, original_purchase)

	def test_expired_subscription_restarts_the_term(self):
		User.objects.filter(id=self.user.id).update(
			vip_purchase_date=self.now - timedelta(days=400),
			vip_expiry_date=self.now - timedelta(days=35),
		)

		purchase_vip(self.user.id, 1, 'pay-3', now=self.now)

		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_purchase_date, self.now)
		self.assertEqual(self.user.vip_expiry_date, self.now + VIP_TERM)

	def test_vip_level_never_decreases(self):
		User.objects.filter(id=self.user.id).update(vip_level=4)

		purchase_vip(self.user.id, 2, 'pay-4', now=self.now)

		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_level, 4)
		self.assertEqual(self.user.purchased_vip_level, 2)
		self.assertEqual(VipPurchase.objects.get(payment_id='pay-4').previous_level, 4)

	def test_same_payment_reference_is_applied_once(self):
		first = purchase_vip(self.user.id, 2, 'pay-5', now=self.now)
		second = purchase_vip(self.user.id, 2, 'pay-5', now=self.now + timedelta(days=1))

		self.assertTrue(first.created)
		self.assertFalse(second.created)
		self.assertEqual(second.expiry_date, first.expiry_date)
		self.assertEqual(VipPurchase.objects.filter(user=self.user).count(), 1)

	def test_invalid_input(self):
		with self.assertRaises(MissingFields):
			purchase_vip(self.user.id, 2, '')
		with self.assertRaises(InvalidVipLevel):
			purchase_vip(self.user.id, 9, 'pay-6')
		with self.assertRaises(NotFound):
			purchase_vip(999999, 2, 'pay-7')

	def test_summary_ignores_expired_purchase(self):
		User.objects.filter(id=self.user.id).update(
			purchased_vip_level=3,
			vip_level=3,
			vip_expiry_date=self.now - timedelta(days=1),
			referral_count=16,
		)
		self.user.refresh_from_db()

		summary = vip_summary(self.user, now=self.now)

		self.assertEqual(summary['level'], 1)
		self.assertFalse(summary['purchase_active'])
		self.assertEqual(summary['next_tier']['level'], 2)
		self.assertEqual(summary['referrals_to_next_tier'], 4)


@override_settings(PAYMENT_WEBHOOK_SECRET='test-secret')
class PaymentWebhookTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(username='buyer', password='pass1234')

	def _post(self, payload, signature=None):
		body = json.dumps(payload).encode()
		if signature is None:
			signature = hmac.new(b'test-secret', body, hashlib.sha256).hexdigest()
		request = self.factory.post(
			'/api/vip/payment-webhook/',
			data=body,
			content_type='application/json',
			HTTP_X_PAYMENT_SIGNATURE=signature,
		)
		return payment_webhook(request)

	def test_signed_payment_upgrades_user(self):
		response = self._post({'user_id': self.user.id, 'level': 5, 'payment_reference': 'gw-1'})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['data']['name'], 'Black VIP')
		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_level, 5)

	def test_bad_signature_is_rejected(self):
		response = self._post(
			{'user_id': self.user.id, 'level': 5, 'payment_reference': 'gw-2'},
			signature='not-a-signature',
		)

		self.assertEqual(response.status_code, 403)
		self.user.refresh_from_db()
		self.assertEqual(self.user.vip_level, 0)

	def test_invalid_level_is_a_bad_request(self):
		response = self._post({'user_id': self.user.id, 'level': 7, 'payment_reference': 'gw-3'})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['code'], 'invalid_vip_level')


class NotificationTests(TestCase):
	def test_same_key_is_delivered_once(self):
		user = User.objects.create_user(username='someone', password='pass1234')

		first = send_notification(user.id, 'welcome', 'Welcome', 'Hello')
		second = send_notification(user.id, 'welcome', 'Welcome', 'Hello again')

		self.assertIsNotNone(first)
		self.assertIsNone(second)
		self.assertEqual(Notification.objects.filter(user=user).count(), 1)
		user.refresh_from_db()
		self.assertTrue(user.has_unread_notifications)


class AccountDeletionTests(TestCase):
	def setUp(self):
		self.customer = User.objects.create_user(username='leaving', password='pass1234')
		self.driver = User.objects.create_user(
			username='driver', password='pass1234', is_driver=True, phone_number='+2348000000000'
		)
		booking = create_request(self.customer, car_type='SUV', location='Lekki')
		make_offer(self.driver, booking.id, car_make='Corolla', price=15000)
		self.drivers_own = create_request(self.driver, car_type='Bus', location='Yaba')
		open_or_create_thread(self.customer, self.customer.id, self.driver.id)
		Trip.objects.create(driver=self.driver, customer=self.customer, pickup_location='A', destination='B')
		TrackingToken.objects.create(user=self.customer)
		set_resume_state(self.customer.id)

	def test_delete_removes_account_and_data(self):
		request = APIRequestFactory().delete('/api/auth/me/')
		force_authenticate(request, user=self.customer)

		response = MeView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		per_model = response.data['stats']['per_model']
		self.assertEqual(per_model['bookings.BookingRequest'], 1)
		self.assertEqual(per_model['bookings.Offer'], 1)
		self.assertEqual(per_model['chats.ChatThread'], 1)
		self.assertEqual(per_model['trips.Trip'], 1)
		self.assertEqual(per_model['trips.TrackingToken'], 1)

		self.assertFalse(User.objects.filter(username='leaving').exists())
		self.assertFalse(ChatThread.objects.exists())
		self.assertIsNone(get_resume_state(self.customer.id))
		# The other party keeps their own data
		self.assertTrue(User.objects.filter(id=self.driver.id).exists())
		self.assertTrue(BookingRequest.objects.filter(id=self.drivers_own.id).exists())
