import math
import threading
import uuid
from unittest.mock import MagicMock, patch

from asgiref.sync import sync_to_async
from channels.layers import InMemoryChannelLayer
from django.db import OperationalError, connections
from django.test import TestCase, TransactionTestCase, override_settings

from jobs.models import JobRequest, TechnicianResponse
from realtime.notifications import DeliveryResult
from services.assignment import (
	GreedyAssignment,
	NegotiatedAssignment,
	dispatch_nearest,
	finalize_assignment,
	record_response_timeout,
	record_technician_response,
	run_job_request_transaction,
	run_negotiated_assignment,
)
from services.exceptions import (
	AssignmentConflictError,
	DispatchValidationError,
	JobRequestNotFoundError,
	TechnicianNotFoundError,
	TechnicianVanishedError,
	UpstreamUnavailableError,
)
from services.proximity import Candidate, filter_candidates, find_nearby_technicians
from technicians.geo_index import GeoIndexUnavailableError
from technicians.models import TechnicianLocation, TechnicianProfile
from technicians.services import update_technician_location

COLOMBO = (6.9271, 79.8612)


def north_of(lat, lng, meters):
	"""Point exactly `meters` due north on the haversine sphere."""
	return lat + math.degrees(meters / 6371000), lng


def make_technician(name, category='homes', status='approved', is_active=True, is_online=True):
	return TechnicianProfile.objects.create(
		name=name,
		service_category=category,
		status=status,
		is_active=is_active,
		is_online=is_online,
	)


def make_job(category='homes', lat=COLOMBO[0], lng=COLOMBO[1]):
	return JobRequest.objects.create(
		customer_id='42',
		customer_name='Nimal',
		customer_latitude=lat,
		customer_longitude=lng,
		service_category=category,
		property_info={'type': 'house'},
	)


def candidate(technician, distance, category=None):
	return Candidate(
		technician_id=technician.id,
		latitude=COLOMBO[0],
		longitude=COLOMBO[1],
		geohash='tc3',
		service_category=category or technician.service_category,
		distance_meters=distance,
		technician=technician,
	)


class ProximitySearchTests(TestCase):
	def test_radius_is_exact(self):
		inside = north_of(*COLOMBO, 4999)
		outside = north_of(*COLOMBO, 5001)
		update_technician_location(1, inside[0], inside[1], 'homes')
		update_technician_location(2, outside[0], outside[1], 'homes')

		results = find_nearby_technicians(COLOMBO[0], COLOMBO[1], 5000)

		self.assertEqual([c.technician_id for c in results], [1])
		self.assertAlmostEqual(results[0].distance_meters, 4999, delta=0.01)

	def test_results_sorted_by_distance(self):
		for technician_id, meters in [(7, 3000), (8, 1000), (9, 2000)]:
			lat, lng = north_of(*COLOMBO, meters)
			update_technician_location(technician_id, lat, lng, 'homes')

		results = find_nearby_technicians(COLOMBO[0], COLOMBO[1], 10000)

		self.assertEqual([c.technician_id for c in results], [8, 9, 7])

	def test_equal_distance_ties_break_on_id_string(self):
		lat, lng = north_of(*COLOMBO, 1500)
		for technician_id in (3, 12, 25):
			update_technician_location(technician_id, lat, lng, 'homes')

		first = [c.technician_id for c in find_nearby_technicians(COLOMBO[0], COLOMBO[1], 5000)]
		second = [c.technician_id for c in find_nearby_technicians(COLOMBO[0], COLOMBO[1], 5000)]

		self.assertEqual(first, [12, 25, 3])
		self.assertEqual(first, second)

	def test_duplicates_across_bounds_are_dropped(self):
		lat, lng = north_of(*COLOMBO, 100)
		record = TechnicianLocation(
			technician_id=5, geohash='tc3', latitude=lat, longitude=lng, service_category='homes'
		)
		geo_index = MagicMock()
		geo_index.range_query.return_value = [record, record]

		results = find_nearby_technicians(COLOMBO[0], COLOMBO[1], 5000, geo_index=geo_index)

		self.assertEqual([c.technician_id for c in results], [5])

	def test_profile_snapshot_attached(self):
		technician = make_technician('Kamal')
		lat, lng = north_of(*COLOMBO, 500)
		update_technician_location(technician.id, lat, lng, 'homes')

		result = find_nearby_technicians(COLOMBO[0], COLOMBO[1], 1000)[0]

		self.assertEqual(result.technician, technician)
		self.assertEqual(result.to_dict()['name'], 'Kamal')

	def test_invalid_input_rejected(self):
		with self.assertRaises(DispatchValidationError):
			find_nearby_technicians(91, 79.8, 1000)
		with self.assertRaises(DispatchValidationError):
			find_nearby_technicians(6.9, 79.8, 0)
		with self.assertRaises(DispatchValidationError):
			find_nearby_technicians(6.9, float('nan'), 1000)

	def test_unreachable_index_fails_whole_search(self):
		geo_index = MagicMock()
		geo_index.range_query.side_effect = GeoIndexUnavailableError('connection refused')

		with self.assertRaises(UpstreamUnavailableError):
			find_nearby_technicians(COLOMBO[0], COLOMBO[1], 5000, geo_index=geo_index)


class EligibilityFilterTests(TestCase):
	def test_filters_by_exact_category(self):
		a = make_technician('A', 'homes')
		b = make_technician('B', 'vehicles')

		result = filter_candidates([candidate(a, 10), candidate(b, 20)], 'homes')

		self.assertEqual([c.technician_id for c in result], [a.id])

	def test_require_active_drops_unapproved_and_inactive(self):
		approved = make_technician('Approved')
		pending = make_technician('Pending', status='pending')
		inactive = make_technician('Inactive', is_active=False)
		candidates = [candidate(pending, 1), candidate(approved, 2), candidate(inactive, 3)]

		self.assertEqual(len(filter_candidates(candidates, 'homes')), 3)
		self.assertEqual(
			[c.technician_id for c in filter_candidates(candidates, 'homes', require_active=True)],
			[approved.id]
		)

	def test_malformed_input_rejected(self):
		with self.assertRaises(DispatchValidationError):
			filter_candidates('not a list', 'homes')
		with self.assertRaises(DispatchValidationError):
			filter_candidates([], None)


class JobRequestTransactionTests(TestCase):
	def setUp(self):
		self.job = make_job()
		self.technician = make_technician('Sunil')

	def test_conflicts_are_retried(self):
		mutate = MagicMock(side_effect=[OperationalError('database is locked'), 'done'])

		result = run_job_request_transaction(self.job.id, mutate)

		self.assertEqual(result, 'done')
		self.assertEqual(mutate.call_count, 2)

	@override_settings(DISPATCH_FINALIZE_MAX_RETRIES=3)
	def test_conflict_surfaces_after_retries_exhausted(self):
		mutate = MagicMock(side_effect=OperationalError('database is locked'))

		with self.assertRaises(AssignmentConflictError):
			run_job_request_transaction(self.job.id, mutate)
		self.assertEqual(mutate.call_count, 3)

	def test_unknown_job_request(self):
		with self.assertRaises(JobRequestNotFoundError):
			finalize_assignment(uuid.uuid4(), self.technician.id)
		with self.assertRaises(JobRequestNotFoundError):
			finalize_assignment('not-a-uuid', self.technician.id)

	def test_finalize_never_overwrites_confirmed_job(self):
		other = make_technician('Other')
		finalize_assignment(self.job.id, self.technician.id)

		result = finalize_assignment(self.job.id, other.id)

		self.assertFalse(result.assigned)
		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'confirmed')
		self.assertEqual(self.job.technician_id, self.technician.id)

	def test_vanished_technician_leaves_job_pending(self):
		with self.assertRaises(TechnicianVanishedError):
			finalize_assignment(self.job.id, 999999)

		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'pending')
		self.assertIsNone(self.job.technician_id)

	def test_first_accept_wins(self):
		second = make_technician('Second')

		first_result = record_technician_response(self.job.id, self.technician.id, 'accepted')
		second_result = record_technician_response(self.job.id, second.id, 'accepted')

		self.assertTrue(first_result.assigned)
		self.assertFalse(second_result.assigned)
		self.assertTrue(second_result.recorded)
		self.job.refresh_from_db()
		self.assertEqual(self.job.technician_id, self.technician.id)
		self.assertEqual(
			self.job.responses_map()[str(second.id)]['response'], 'accepted'
		)

	def test_repeat_response_is_noop(self):
		record_technician_response(self.job.id, self.technician.id, 'rejected')
		result = record_technician_response(self.job.id, self.technician.id, 'accepted')

		self.assertFalse(result.recorded)
		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'pending')
		self.assertEqual(self.job.technician_responses.count(), 1)

	def test_unknown_technician_writes_nothing(self):
		with self.assertRaises(TechnicianNotFoundError):
			record_technician_response(self.job.id, 424242, 'accepted')
		self.assertFalse(TechnicianResponse.objects.exists())

	def test_invalid_response_rejected_before_write(self):
		with self.assertRaises(DispatchValidationError):
			record_technician_response(self.job.id, self.technician.id, 'maybe')
		self.assertFalse(TechnicianResponse.objects.exists())

	def test_timeout_entry_only_when_no_answer(self):
		record_response_timeout(self.job.id, self.technician.id)
		record_technician_response(self.job.id, self.technician.id, 'accepted')

		self.job.refresh_from_db()
		self.assertEqual(self.job.responses_map()[str(self.technician.id)]['response'], 'timed_out')
		self.assertIsNone(self.job.technician_id)

	def test_ledger_entries_are_append_only(self):
		record_technician_response(self.job.id, self.technician.id, 'rejected')
		entry = TechnicianResponse.objects.get()
		entry.response = 'accepted'

		with self.assertRaises(ValueError):
			entry.save()

	def test_answer_published_after_commit(self):
		with patch('realtime.notifications.publish_technician_response') as publish:
			with self.captureOnCommitCallbacks(execute=True):
				record_technician_response(self.job.id, self.technician.id, 'rejected')

		publish.assert_called_once_with(self.job.id, self.technician.id, 'rejected')

	def test_customer_notified_on_assignment(self):
		with patch('realtime.notifications.notify_customer_event') as notify:
			with self.captureOnCommitCallbacks(execute=True):
				record_technician_response(self.job.id, self.technician.id, 'accepted')

		notify.assert_called_once()
		self.assertEqual(notify.call_args[0][0], 'job_confirmed')


class ConcurrentAcceptTests(TransactionTestCase):
	workers = 4

	def setUp(self):
		self.job = make_job()
		self.technicians = [make_technician('Racer %d' % i) for i in range(self.workers)]

	@override_settings(DISPATCH_FINALIZE_MAX_RETRIES=50)
	def test_exactly_one_concurrent_accept_is_assigned(self):
		barrier = threading.Barrier(self.workers)
		results = []
		errors = []

		def accept(technician):
			try:
				barrier.wait()
				results.append(record_technician_response(self.job.id, technician.id, 'accepted'))
			except Exception as e:
				errors.append(e)
			finally:
				connections.close_all()

		threads = [threading.Thread(target=accept, args=(technician,)) for technician in self.technicians]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(errors, [])
		winners = [result.technician_id for result in results if result.assigned]
		self.assertEqual(len(winners), 1)
		self.assertTrue(all(result.recorded for result in results))

		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'confirmed')
		self.assertEqual(self.job.technician_id, winners[0])
		self.assertEqual(self.job.technician_responses.count(), self.workers)

		record_technician_response(self.job.id, make_technician('Late').id, 'accepted')
		self.job.refresh_from_db()
		self.assertEqual(self.job.technician_id, winners[0])


class GreedyDispatchTests(TestCase):
	def setUp(self):
		self.near = make_technician('Near')
		self.far = make_technician('Far')
		self.mechanic = make_technician('Mechanic', 'vehicles')
		for technician, meters in [(self.near, 1200), (self.far, 4000), (self.mechanic, 300)]:
			lat, lng = north_of(*COLOMBO, meters)
			update_technician_location(technician.id, lat, lng, technician.service_category)

		self.payload = {
			'customerLocation': {'latitude': COLOMBO[0], 'longitude': COLOMBO[1]},
			'serviceCategory': 'homes',
			'propertyInfo': {'type': 'apartment'},
			'selectedIssues': ['leaking tap'],
		}

	def test_assigns_nearest_eligible(self):
		result = dispatch_nearest(self.payload)

		self.assertTrue(result.success)
		self.assertEqual(result.technician, self.near)
		self.assertAlmostEqual(result.distance, 1200, delta=0.01)
		self.assertEqual(result.job_request.status, 'confirmed')
		self.assertEqual(result.job_request.technician_id, self.near.id)

	def test_no_eligible_technician_leaves_job_pending(self):
		self.payload['customerLocation'] = {'latitude': 7.2906, 'longitude': 80.6337}

		result = dispatch_nearest(self.payload)

		self.assertFalse(result.success)
		self.assertEqual(result.extra['nearbyTechnicians'], 0)
		job = JobRequest.objects.get()
		self.assertEqual(job.status, 'pending')
		self.assertIsNone(job.technician_id)

	def test_validation_happens_before_any_write(self):
		self.payload['serviceCategory'] = 'boats'

		with self.assertRaises(DispatchValidationError):
			dispatch_nearest(self.payload)
		self.assertEqual(JobRequest.objects.count(), 0)

	def test_greedy_strategy_reports_winner_of_earlier_assignment(self):
		job = make_job()
		finalize_assignment(job.id, self.far.id)

		outcome = GreedyAssignment().assign(job, [candidate(self.near, 1200), candidate(self.far, 4000)])

		self.assertEqual(outcome.technician_id, self.far.id)
		self.assertEqual(outcome.candidate.technician_id, self.far.id)

	def test_profile_deleted_after_commit_keeps_assignment(self):
		class AssignThenDelete(GreedyAssignment):
			def assign(self, job_request, candidates):
				outcome = super().assign(job_request, candidates)
				TechnicianProfile.objects.filter(pk=outcome.technician_id).delete()
				return outcome

		result = dispatch_nearest(self.payload, strategy=AssignThenDelete())

		self.assertTrue(result.success)
		self.assertIsNone(result.technician)
		self.assertEqual(result.job_request.status, 'confirmed')
		self.assertEqual(result.job_request.technician_id, self.near.id)


class FakeSubscription:
	"""Stands in for ResponseSubscription with scripted technician answers."""

	answers = {}
	entered = []
	exited = []

	def __init__(self, job_request_id, technician_id):
		self.job_request_id = job_request_id
		self.technician_id = technician_id

	async def __aenter__(self):
		self.entered.append(self.technician_id)
		return self

	async def __aexit__(self, exc_type, exc, tb):
		self.exited.append(self.technician_id)
		return False

	async def wait(self, timeout):
		answer = self.answers.get(self.technician_id)
		if answer is None:
			return None
		await sync_to_async(record_technician_response)(self.job_request_id, self.technician_id, answer)
		return answer


class NegotiatedAssignmentTests(TestCase):
	def setUp(self):
		self.job = make_job()
		self.offline = make_technician('Offline', is_online=False)
		self.rejecting = make_technician('Rejecting')
		self.silent = make_technician('Silent')
		self.accepting = make_technician('Accepting')
		self.never_asked = make_technician('Never Asked')
		self.candidates = [
			candidate(technician, distance)
			for distance, technician in enumerate(
				[self.offline, self.rejecting, self.silent, self.accepting, self.never_asked], start=1
			)
		]

		FakeSubscription.answers = {
			self.rejecting.id: 'rejected',
			self.accepting.id: 'accepted',
			self.never_asked.id: 'accepted',
		}
		FakeSubscription.entered = []
		FakeSubscription.exited = []

		self.pushed = []

		def push(technician_id, payload):
			self.pushed.append((technician_id, payload))
			if technician_id == self.offline.id:
				return DeliveryResult(False, 'no_registered_endpoint')
			return DeliveryResult(True)

		self.strategy = NegotiatedAssignment(
			timeout=0.01, push=push, subscription_class=FakeSubscription
		)

	def test_notifies_in_order_until_accepted(self):
		outcome = self.strategy.assign(self.job, self.candidates)

		self.assertEqual(outcome.technician_id, self.accepting.id)
		self.assertEqual(outcome.notified, 3)
		self.assertEqual(
			[technician_id for technician_id, _ in self.pushed],
			[self.offline.id, self.rejecting.id, self.silent.id, self.accepting.id]
		)

		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'confirmed')
		self.assertEqual(self.job.responses_map(), {
			str(self.rejecting.id): {'response': 'rejected', 'timestamp': None},
			str(self.silent.id): {'response': 'timed_out', 'timestamp': None},
			str(self.accepting.id): {'response': 'accepted', 'timestamp': None},
		})

	def test_every_subscription_released(self):
		self.strategy.assign(self.job, self.candidates)

		self.assertEqual(FakeSubscription.entered, FakeSubscription.exited)
		self.assertNotIn(self.never_asked.id, FakeSubscription.entered)

	def test_push_payload(self):
		self.strategy.assign(self.job, self.candidates[:2])

		payload = self.pushed[0][1]
		self.assertEqual(payload['title'], 'New Job Request')
		self.assertEqual(payload['body'], 'Nimal needs your help!')
		self.assertEqual(payload['data']['jobId'], str(self.job.id))
		self.assertEqual(payload['data']['type'], 'JOB_REQUEST')

	def test_nobody_accepts(self):
		outcome = self.strategy.assign(self.job, self.candidates[:3])

		self.assertFalse(outcome.assigned)
		self.job.refresh_from_db()
		self.assertEqual(self.job.status, 'pending')
		self.assertIsNone(self.job.technician_id)

	def test_stops_when_job_already_assigned(self):
		finalize_assignment(self.job.id, self.never_asked.id)

		outcome = self.strategy.assign(self.job, self.candidates)

		self.assertEqual(outcome.technician_id, self.never_asked.id)
		self.assertEqual(self.pushed, [])

	def test_channel_layer_failure_moves_on_to_next_candidate(self):
		send = InMemoryChannelLayer.group_send
		broken_group = 'technician_%d' % self.rejecting.id

		async def group_send(layer, group, message):
			if group == broken_group:
				raise ConnectionError('redis down')
			return await send(layer, group, message)

		strategy = NegotiatedAssignment(timeout=0.01, subscription_class=FakeSubscription)
		with patch.object(InMemoryChannelLayer, 'group_send', group_send):
			outcome = strategy.assign(
				self.job, [candidate(self.rejecting, 1), candidate(self.accepting, 2)]
			)

		self.assertEqual(outcome.technician_id, self.accepting.id)
		self.assertEqual(outcome.notified, 1)
		self.assertEqual(FakeSubscription.entered, FakeSubscription.exited)
		self.job.refresh_from_db()
		self.assertEqual(list(self.job.responses_map()), [str(self.accepting.id)])

	@patch('realtime.notifications.notify_customer_event')
	def test_run_negotiated_assignment_without_candidates_notifies_customer(self, notify):
		result = run_negotiated_assignment(self.job.id, strategy=self.strategy)

		self.assertFalse(result.success)
		notify.assert_called_once()
		self.assertEqual(notify.call_args[0][0], 'no_technician_available')
