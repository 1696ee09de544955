from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from kombu.exceptions import OperationalError as BrokerError
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services.chat import (
	list_threads_for,
	mark_read,
	open_or_create_thread,
	purge_expired_threads,
	send_message,
	unread_count,
	is_expired,
)
from services.exceptions import PermissionDenied, ValidationError

from .models import ChatMessage, ChatThread
from .tasks import sweep_expired_threads
from .views import ChatThreadListView


def _age_thread(thread, days):
	stamp = timezone.now() - timedelta(days=days)
	ChatThread.objects.filter(id=thread.id).update(created_at=stamp, last_activity=stamp)
	thread.refresh_from_db()


class ChatThreadTests(TestCase):
	def setUp(self):
		self.customer = User.objects.create_user(username='customer', password='pass1234', full_name='Tola')
		self.driver = User.objects.create_user(username='driver', password='pass1234', is_driver=True)
		self.thread, _ = open_or_create_thread(
			self.customer, self.customer.id, self.driver.id, {'id': 'car-9', 'title': 'Toyota Camry'}
		)

	def test_same_pair_and_car_reuses_the_thread(self):
		again, created = open_or_create_thread(
			self.driver, self.driver.id, self.customer.id, {'id': 'car-9', 'title': 'Toyota Camry'}
		)
		general, general_created = open_or_create_thread(self.customer, self.customer.id, self.driver.id)

		self.assertFalse(created)
		self.assertEqual(again.id, self.thread.id)
		self.assertTrue(general_created)
		self.assertEqual(general.car_info, {'id': 'general', 'title': 'Car Rental Request'})

	def test_sending_pings_each_participant_once(self):
		with patch('realtime.notifications.notify_chat_threads_changed') as mock_ping:
			with self.captureOnCommitCallbacks(execute=True):
				send_message(self.customer, self.thread.id, self.customer.id, 'Is it free on Friday?')

		mock_ping.assert_called_once_with(self.thread.participant_ids, self.thread.id)

	def test_cannot_open_for_others(self):
		outsider = User.objects.create_user(username='outsider', password='pass1234')

		with self.assertRaises(PermissionDenied):
			open_or_create_thread(outsider, self.customer.id, self.driver.id)

	def test_mark_read_clears_only_received_messages(self):
		send_message(self.driver, self.thread.id, self.driver.id, 'Car is ready')
		send_message(self.driver, self.thread.id, self.driver.id, 'At the gate')
		send_message(self.customer, self.thread.id, self.customer.id, 'Coming')

		self.assertEqual(unread_count(self.thread, self.customer.id), 2)
		updated = mark_read(self.customer, self.thread.id, self.customer.id)

		self.assertEqual(updated, 2)
		self.assertEqual(unread_count(self.thread, self.customer.id), 0)
		self.assertEqual(unread_count(self.thread, self.driver.id), 1)

	def test_message_after_mark_read_stays_unread(self):
		send_message(self.driver, self.thread.id, self.driver.id, 'Hello')
		mark_read(self.customer, self.thread.id, self.customer.id)
		send_message(self.driver, self.thread.id, self.driver.id, 'Still there?')

		self.assertEqual(ChatMessage.objects.filter(thread=self.thread).count(), 2)
		self.assertEqual(unread_count(self.thread, self.customer.id), 1)

	def test_blank_message_is_rejected(self):
		with self.assertRaises(ValidationError):
			send_message(self.customer, self.thread.id, self.customer.id, '   ')

	def test_outsider_cannot_post(self):
		outsider = User.objects.create_user(username='outsider', password='pass1234')

		with self.assertRaises(PermissionDenied):
			send_message(outsider, self.thread.id, outsider.id, 'hi')

	def test_listing_is_newest_first_with_unread_totals(self):
		other_driver = User.objects.create_user(username='driver2', password='pass1234', is_driver=True)
		second, _ = open_or_create_thread(self.customer, self.customer.id, other_driver.id)
		send_message(self.driver, self.thread.id, self.driver.id, 'Older')
		send_message(other_driver, second.id, other_driver.id, 'Newer')
		ChatMessage.objects.filter(text='Older').update(timestamp=timezone.now() - timedelta(hours=2))

		listing = list_threads_for(self.customer.id)

		self.assertEqual([s.thread_id for s in listing.summaries], [second.id, self.thread.id])
		self.assertEqual(listing.summaries[0].last_message, 'Newer')
		self.assertEqual(listing.unread_total, 2)
		self.assertEqual(listing.expired_ids, [])

	def test_empty_thread_shows_placeholder_and_driver_name(self):
		listing = list_threads_for(self.customer.id)

		summary = listing.summaries[0]
		self.assertEqual(summary.last_message, 'No messages yet')
		self.assertEqual(summary.other_user_name, 'driver')
		self.assertTrue(summary.other_is_driver)
		self.assertEqual(summary.car_info['title'], 'Toyota Camry')


@override_settings(CHAT_THREAD_EXPIRY=timedelta(days=7))
class ChatExpiryTests(TestCase):
	def setUp(self):
		self.customer = User.objects.create_user(username='customer', password='pass1234')
		self.driver = User.objects.create_user(username='driver', password='pass1234', is_driver=True)
		self.old, _ = open_or_create_thread(self.customer, self.customer.id, self.driver.id, {'id': 'old'})
		self.recent, _ = open_or_create_thread(self.customer, self.customer.id, self.driver.id, {'id': 'recent'})
		_age_thread(self.old, 8)
		_age_thread(self.recent, 6)

	def test_eight_days_idle_is_expired_six_is_not(self):
		self.assertTrue(is_expired(self.old))
		self.assertFalse(is_expired(self.recent))

		listing = list_threads_for(self.customer.id)

		self.assertEqual([s.thread_id for s in listing.summaries], [self.recent.id])
		self.assertEqual(listing.expired_ids, [self.old.id])

	def test_purge_rechecks_before_deleting(self):
		listing = list_threads_for(self.customer.id)
		# A message arrives between listing and purge
		send_message(self.driver, self.old.id, self.driver.id, 'Are you still interested?')

		deleted = purge_expired_threads(listing.expired_ids + [self.recent.id])

		self.assertEqual(deleted, 0)
		self.assertEqual(ChatThread.objects.count(), 2)

	def test_listing_endpoint_queues_purge(self):
		factory = APIRequestFactory()
		request = factory.get('/api/chats/')
		force_authenticate(request, user=self.customer)

		with patch('chats.views.purge_expired_threads.delay') as mock_delay:
			response = ChatThreadListView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data['threads']), 1)
		mock_delay.assert_called_once_with([self.old.id])

	def test_listing_survives_an_unreachable_broker(self):
		factory = APIRequestFactory()
		request = factory.get('/api/chats/')
		force_authenticate(request, user=self.customer)

		with patch('chats.views.purge_expired_threads.delay', side_effect=BrokerError('broker down')):
			response = ChatThreadListView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([t['thread_id'] for t in response.data['threads']], [self.recent.id])
		self.assertTrue(ChatThread.objects.filter(id=self.old.id).exists())

	def test_sweep_deletes_expired_threads(self):
		send_message(self.driver, self.recent.id, self.driver.id, 'Hi')
		ChatMessage.objects.create(thread=self.old, sender=self.driver, text='stale')

		sweep_expired_threads()

		self.assertEqual(list(ChatThread.objects.values_list('id', flat=True)), [self.recent.id])
		self.assertFalse(ChatMessage.objects.filter(text='stale').exists())

	def test_purge_command_dry_run_keeps_threads(self):
		out = StringIO()
		call_command('purge_expired_chats', '--dry-run', stdout=out)

		self.assertIn('Would delete 1', out.getvalue())
		self.assertEqual(ChatThread.objects.count(), 2)

		call_command('purge_expired_chats', stdout=StringIO())
		self.assertFalse(ChatThread.objects.filter(id=self.old.id).exists())
