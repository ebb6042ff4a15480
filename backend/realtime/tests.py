import uuid
from unittest.mock import patch

from asgiref.sync import async_to_sync, sync_to_async
from channels.layers import InMemoryChannelLayer, get_channel_layer
from channels.testing import WebsocketCommunicator
from django.test import TestCase, TransactionTestCase

from accounts.models import User
from jobs.models import JobRequest
from realtime.consumers import TechnicianConsumer
from realtime.notifications import (
	build_job_request_payload,
	notify_customer_event,
	publish_technician_response,
	send_push,
)
from services.assignment import ResponseSubscription, response_group_name
from technicians.models import TechnicianProfile


async def failing_group_send(layer, group, message):
	raise ConnectionError('redis down')


class ResponseSubscriptionTests(TestCase):
	def setUp(self):
		self.job_id = uuid.uuid4()
		self.layer = InMemoryChannelLayer()

	def test_receives_answer_and_leaves_group(self):
		group = response_group_name(self.job_id, 5)

		async def scenario():
			async with ResponseSubscription(self.job_id, 5, channel_layer=self.layer) as subscription:
				self.assertTrue(subscription.is_active)
				await self.layer.group_send(group, {'type': 'technician.response', 'response': 'accepted'})
				answer = await subscription.wait(1)
			return answer, subscription

		answer, subscription = async_to_sync(scenario)()

		self.assertEqual(answer, 'accepted')
		self.assertFalse(subscription.is_active)
		self.assertFalse(self.layer.groups.get(group))

	def test_timeout_returns_none_and_leaves_group(self):
		group = response_group_name(self.job_id, 6)

		async def scenario():
			async with ResponseSubscription(self.job_id, 6, channel_layer=self.layer) as subscription:
				return await subscription.wait(0.05)

		self.assertIsNone(async_to_sync(scenario)())
		self.assertFalse(self.layer.groups.get(group))

	def test_ignores_messages_without_answer(self):
		group = response_group_name(self.job_id, 7)

		async def scenario():
			async with ResponseSubscription(self.job_id, 7, channel_layer=self.layer) as subscription:
				await self.layer.group_send(group, {'type': 'technician.response', 'response': 'maybe'})
				await self.layer.group_send(group, {'type': 'technician.response', 'response': 'rejected'})
				return await subscription.wait(1)

		self.assertEqual(async_to_sync(scenario)(), 'rejected')

	def test_other_technicians_answers_not_seen(self):
		async def scenario():
			async with ResponseSubscription(self.job_id, 8, channel_layer=self.layer) as subscription:
				await self.layer.group_send(
					response_group_name(self.job_id, 9),
					{'type': 'technician.response', 'response': 'accepted'}
				)
				return await subscription.wait(0.05)

		self.assertIsNone(async_to_sync(scenario)())

	def test_published_response_reaches_subscriber(self):
		job_id = self.job_id

		async def scenario():
			async with ResponseSubscription(job_id, 10, channel_layer=get_channel_layer()) as subscription:
				await sync_to_async(publish_technician_response)(job_id, 10, 'rejected')
				return await subscription.wait(1)

		self.assertEqual(async_to_sync(scenario)(), 'rejected')


class NotificationGatewayTests(TestCase):
	def setUp(self):
		self.job = JobRequest.objects.create(
			customer_id='42',
			customer_name='Nimal',
			customer_latitude=6.9271,
			customer_longitude=79.8612,
			service_category='homes',
			property_info={'type': 'house'},
		)

	def test_offline_technician_not_delivered(self):
		technician = TechnicianProfile.objects.create(name='Offline', service_category='homes')

		result = send_push(technician.id, build_job_request_payload(self.job))

		self.assertFalse(result.delivered)
		self.assertEqual(result.reason, 'no_registered_endpoint')

	def test_missing_technician_not_delivered(self):
		result = send_push(123456, build_job_request_payload(self.job))

		self.assertFalse(result.delivered)

	def test_online_technician_receives_push(self):
		technician = TechnicianProfile.objects.create(
			name='Online', service_category='homes', is_online=True
		)
		layer = get_channel_layer()
		payload = build_job_request_payload(self.job)

		async def scenario():
			channel = await layer.new_channel()
			await layer.group_add('technician_%d' % technician.id, channel)
			result = await sync_to_async(send_push)(technician.id, payload)
			message = await layer.receive(channel)
			await layer.group_discard('technician_%d' % technician.id, channel)
			return result, message

		result, message = async_to_sync(scenario)()

		self.assertTrue(result.delivered)
		self.assertEqual(message['type'], 'job_request')
		self.assertEqual(message['data']['jobId'], str(self.job.id))

	def test_customer_event_sent_to_customer_group(self):
		layer = get_channel_layer()

		async def scenario():
			channel = await layer.new_channel()
			await layer.group_add('customer_42', channel)
			sent = await sync_to_async(notify_customer_event)(
				'no_technician_available', self.job, 'Nobody accepted'
			)
			message = await layer.receive(channel)
			await layer.group_discard('customer_42', channel)
			return sent, message

		sent, message = async_to_sync(scenario)()

		self.assertTrue(sent)
		self.assertEqual(message['type'], 'no_technician_available')
		self.assertEqual(message['job_id'], str(self.job.id))
		self.assertEqual(message['message'], 'Nobody accepted')

	def test_channel_layer_error_reported_as_undelivered(self):
		technician = TechnicianProfile.objects.create(
			name='Online', service_category='homes', is_online=True
		)

		with patch.object(InMemoryChannelLayer, 'group_send', failing_group_send):
			result = send_push(technician.id, build_job_request_payload(self.job))

		self.assertFalse(result.delivered)
		self.assertEqual(result.reason, 'channel_layer_error')

	def test_failed_response_publish_returns_false(self):
		with patch.object(InMemoryChannelLayer, 'group_send', failing_group_send):
			self.assertFalse(publish_technician_response(self.job.id, 7, 'accepted'))

	def test_customer_event_skipped_without_customer(self):
		self.job.customer_id = ''

		self.assertFalse(notify_customer_event('job_confirmed', self.job))


class TechnicianConsumerTests(TransactionTestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='sunil', password='pass1234', role='technician')
		self.technician = TechnicianProfile.objects.create(
			user=self.user, name='Sunil', service_category='homes', status='approved', is_active=True
		)
		self.job = JobRequest.objects.create(
			customer_latitude=6.9271,
			customer_longitude=79.8612,
			service_category='homes',
			property_info={'type': 'house'},
		)

	def connect(self, user):
		communicator = WebsocketCommunicator(TechnicianConsumer.as_asgi(), '/ws/technician/')
		communicator.scope['user'] = user
		return communicator

	def test_accept_over_websocket_assigns_job(self):
		async def scenario():
			communicator = self.connect(self.user)
			connected, _ = await communicator.connect()
			welcome = await communicator.receive_json_from()
			online = await sync_to_async(
				lambda: TechnicianProfile.objects.get(pk=self.technician.pk).is_online
			)()
			await communicator.send_json_to({
				'type': 'job_response',
				'jobId': str(self.job.id),
				'response': 'accepted',
			})
			reply = await communicator.receive_json_from()
			await communicator.disconnect()
			return connected, welcome, online, reply

		connected, welcome, online, reply = async_to_sync(scenario)()

		self.assertTrue(connected)
		self.assertEqual(welcome['technician_id'], self.technician.id)
		self.assertTrue(online)
		self.assertEqual(reply['type'], 'job_response_recorded')
		self.assertTrue(reply['assigned'])

		self.job.refresh_from_db()
		self.technician.refresh_from_db()
		self.assertEqual(self.job.technician_id, self.technician.id)
		self.assertFalse(self.technician.is_online)

	def test_unknown_job_reported_as_error(self):
		async def scenario():
			communicator = self.connect(self.user)
			await communicator.connect()
			await communicator.receive_json_from()
			await communicator.send_json_to({
				'type': 'job_response',
				'jobId': str(uuid.uuid4()),
				'response': 'accepted',
			})
			reply = await communicator.receive_json_from()
			await communicator.disconnect()
			return reply

		reply = async_to_sync(scenario)()

		self.assertEqual(reply['type'], 'error')
		self.assertEqual(reply['message'], 'Job request not found')

	def test_customer_cannot_connect_as_technician(self):
		customer = User.objects.create_user(username='nimal', password='pass1234', role='customer')

		async def scenario():
			communicator = self.connect(customer)
			await communicator.connect()
			reply = await communicator.receive_json_from()
			await communicator.disconnect()
			return reply

		reply = async_to_sync(scenario)()

		self.assertEqual(reply['type'], 'error')
