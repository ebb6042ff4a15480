import math
import uuid
from unittest.mock import MagicMock, patch

from channels.layers import InMemoryChannelLayer
from django.test import TestCase, TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import User
from jobs.models import JobRequest, TechnicianResponse
from technicians.models import TechnicianProfile
from technicians.services import update_technician_location

COLOMBO = (6.9271, 79.8612)


def north_of(lat, lng, meters):
	return lat + math.degrees(meters / 6371000), lng


class DispatchEndpointTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.near = TechnicianProfile.objects.create(
			name='Near', service_category='homes', status='approved', is_active=True
		)
		self.far = TechnicianProfile.objects.create(
			name='Far', service_category='homes', status='approved', is_active=True
		)
		for technician, meters in [(self.near, 800), (self.far, 2500)]:
			lat, lng = north_of(*COLOMBO, meters)
			update_technician_location(technician.id, lat, lng, 'homes')

		self.payload = {
			'customerLocation': {'latitude': COLOMBO[0], 'longitude': COLOMBO[1]},
			'serviceCategory': 'homes',
			'propertyInfo': {'type': 'house', 'floors': 2},
			'selectedIssues': ['no power'],
			'customerId': 'cust-1',
			'customerName': 'Nimal',
		}

	def test_find_nearest_assigns_technician(self):
		response = self.client.post('/jobRequests/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 200)
		body = response.json()
		self.assertTrue(body['success'])
		self.assertEqual(body['data']['technician']['id'], self.near.id)
		self.assertAlmostEqual(body['data']['distance'], 800, delta=0.01)
		self.assertEqual(body['data']['jobRequest']['status'], 'confirmed')
		self.assertEqual(body['data']['jobRequest']['technicianId'], self.near.id)

		job = JobRequest.objects.get()
		self.assertEqual(job.technician_id, self.near.id)
		self.assertIsNotNone(job.assigned_at)

	def test_find_nearest_without_candidates_is_404_and_pending(self):
		self.payload['serviceCategory'] = 'vehicles'

		response = self.client.post('/jobRequests/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 404)
		body = response.json()
		self.assertFalse(body['success'])
		self.assertEqual(body['data']['nearbyTechnicians'], 2)
		job = JobRequest.objects.get()
		self.assertEqual(job.status, 'pending')
		self.assertIsNone(job.technician_id)

	def test_invalid_category_writes_nothing(self):
		self.payload['serviceCategory'] = 'boats'

		response = self.client.post('/jobRequests/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.json()['error'], 'Validation failed')
		self.assertEqual(JobRequest.objects.count(), 0)

	def test_missing_location_or_property_info(self):
		for field in ('customerLocation', 'propertyInfo'):
			payload = dict(self.payload)
			del payload[field]
			response = self.client.post('/jobRequests/findNearestTechnician', payload, format='json')
			self.assertEqual(response.status_code, 400, field)
		self.assertEqual(JobRequest.objects.count(), 0)

	def test_out_of_range_location_rejected(self):
		self.payload['customerLocation'] = {'latitude': 95, 'longitude': 79.8612}

		response = self.client.post('/jobRequests/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(JobRequest.objects.count(), 0)

	def test_authenticated_customer_owns_job(self):
		user = User.objects.create_user(username='nimal', password='pass1234', role='customer')
		self.client.force_authenticate(user=user)
		del self.payload['customerId']

		self.client.post('/jobRequests/findNearestTechnician', self.payload, format='json')

		self.assertEqual(JobRequest.objects.get().customer_id, str(user.id))

	def test_negotiated_dispatch_schedules_task(self):
		task = MagicMock()
		with patch('jobs.tasks.negotiate_assignment_task', task):
			response = self.client.post('/jobs/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 200)
		body = response.json()
		job = JobRequest.objects.get()
		self.assertEqual(body['jobId'], str(job.id))
		self.assertEqual(body['eligibleTechnicians'], 2)
		task.delay.assert_called_once_with(str(job.id))
		self.assertEqual(job.status, 'pending')

	def test_negotiated_dispatch_without_candidates_still_200(self):
		self.payload['customerLocation'] = {'latitude': 7.2906, 'longitude': 80.6337}
		task = MagicMock()
		with patch('jobs.tasks.negotiate_assignment_task', task):
			response = self.client.post('/jobs/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json()['eligibleTechnicians'], 0)
		task.delay.assert_not_called()

	def test_negotiated_dispatch_validation(self):
		self.payload['serviceCategory'] = 'boats'

		response = self.client.post('/jobs/findNearestTechnician', self.payload, format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(JobRequest.objects.count(), 0)


class JobAcceptOrRejectTests(TestCase):
	url = '/technicians/jobAcceptOrReject'

	def setUp(self):
		self.client = APIClient()
		self.job = JobRequest.objects.create(
			customer_id='cust-1',
			customer_latitude=COLOMBO[0],
			customer_longitude=COLOMBO[1],
			service_category='homes',
			property_info={'type': 'house'},
		)
		self.first = TechnicianProfile.objects.create(name='First', service_category='homes')
		self.second = TechnicianProfile.objects.create(name='Second', service_category='homes')

	def answer(self, technician_id, response, job_id=None):
		return self.client.post(self.url, {
			'jobId': str(job_id or self.job.id),
			'technicianId': technician_id,
			'response': response,
			'timestamp': '2024-05-01T10:00:00Z',
		}, format='json')

	def test_only_first_accept_is_assigned(self):
		first = self.answer(self.first.id, 'accepted')
		second = self.answer(self.second.id, 'accepted')

		self.assertEqual(first.status_code, 200)
		self.assertEqual(second.status_code, 200)
		self.assertTrue(first.json()['assigned'])
		self.assertFalse(second.json()['assigned'])
		self.assertEqual(second.json()['response'], 'accepted')

		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'confirmed')
		self.assertEqual(self.job.technician_id, self.first.id)
		self.assertEqual(set(self.job.responses_map()), {str(self.first.id), str(self.second.id)})

	def test_reaccept_is_idempotent(self):
		self.answer(self.first.id, 'accepted')
		self.job.refresh_from_db()
		updated_at = self.job.updated_at

		response = self.answer(self.first.id, 'accepted')

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.json()['assigned'])
		self.job.refresh_from_db()
		self.assertEqual(self.job.updated_at, updated_at)
		self.assertEqual(TechnicianResponse.objects.count(), 1)

	def test_reject_only_appends(self):
		response = self.answer(self.first.id, 'rejected')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json()['jobId'], str(self.job.id))
		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'pending')
		self.assertIsNone(self.job.technician_id)
		self.assertEqual(self.job.responses_map()[str(self.first.id)]['response'], 'rejected')

	def test_invalid_response_is_400(self):
		response = self.answer(self.first.id, 'maybe')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(TechnicianResponse.objects.count(), 0)

	def test_missing_fields_is_400(self):
		response = self.client.post(self.url, {'jobId': str(self.job.id)}, format='json')

		self.assertEqual(response.status_code, 400)

	def test_unknown_job_is_500(self):
		for job_id in (uuid.uuid4(), 'not-a-job'):
			response = self.answer(self.first.id, 'accepted', job_id=job_id)
			self.assertEqual(response.status_code, 500)
			self.assertEqual(response.json()['error'], 'Job request not found')

	def test_unknown_technician_is_404(self):
		response = self.answer(987654, 'accepted')

		self.assertEqual(response.status_code, 404)
		self.job.refresh_from_db()
		self.assertIsNone(self.job.technician_id)
		self.assertEqual(TechnicianResponse.objects.count(), 0)


async def failing_group_send(layer, group, message):
	raise ConnectionError('redis down')


class AcceptWithBrokenChannelLayerTests(TransactionTestCase):
	def setUp(self):
		self.client = APIClient()
		self.job = JobRequest.objects.create(
			customer_id='cust-1',
			customer_latitude=COLOMBO[0],
			customer_longitude=COLOMBO[1],
			service_category='homes',
			property_info={'type': 'house'},
		)
		self.technician = TechnicianProfile.objects.create(name='First', service_category='homes')

	def test_committed_accept_still_reported(self):
		with patch.object(InMemoryChannelLayer, 'group_send', failing_group_send):
			response = self.client.post('/technicians/jobAcceptOrReject', {
				'jobId': str(self.job.id),
				'technicianId': self.technician.id,
				'response': 'accepted',
			}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.json()['assigned'])
		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'confirmed')
		self.assertEqual(self.job.technician_id, self.technician.id)
