import math

from django.test import TestCase
from rest_framework.test import APIClient

from common.utils import encode_geohash
from technicians.models import TechnicianLocation, TechnicianProfile

COLOMBO = (6.9271, 79.8612)


def north_of(lat, lng, meters):
	return lat + math.degrees(meters / 6371000), lng


class LocationUpdateTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	def test_update_writes_geohash_record(self):
		response = self.client.post(
			'/utility/updateTechnicianLocation/17',
			{'lat': COLOMBO[0], 'lng': COLOMBO[1], 'serviceCategory': 'homes'},
			format='json'
		)

		self.assertEqual(response.status_code, 200)
		record = TechnicianLocation.objects.get(technician_id=17)
		self.assertEqual(record.geohash, encode_geohash(COLOMBO[0], COLOMBO[1], 10))
		self.assertEqual(response.json()['geohash'], record.geohash)

	def test_update_overwrites_previous_record(self):
		self.client.post(
			'/utility/updateTechnicianLocation/17',
			{'lat': COLOMBO[0], 'lng': COLOMBO[1], 'serviceCategory': 'homes'},
			format='json'
		)
		self.client.post(
			'/utility/updateTechnicianLocation/17',
			{'lat': 7.2906, 'lng': 80.6337, 'serviceCategory': 'vehicles'},
			format='json'
		)

		record = TechnicianLocation.objects.get(technician_id=17)
		self.assertEqual(TechnicianLocation.objects.count(), 1)
		self.assertEqual(record.service_category, 'vehicles')
		self.assertEqual(record.latitude, 7.2906)
		self.assertEqual(record.geohash, encode_geohash(7.2906, 80.6337, 10))

	def test_bad_coordinates_rejected(self):
		for body in (
			{'lat': 120, 'lng': COLOMBO[1], 'serviceCategory': 'homes'},
			{'lat': 'north', 'lng': COLOMBO[1], 'serviceCategory': 'homes'},
			{'lng': COLOMBO[1], 'serviceCategory': 'homes'},
			{'lat': COLOMBO[0], 'lng': COLOMBO[1], 'serviceCategory': 'boats'},
		):
			response = self.client.post('/utility/updateTechnicianLocation/17', body, format='json')
			self.assertEqual(response.status_code, 400, body)
		self.assertFalse(TechnicianLocation.objects.exists())


class NearestTechniciansEndpointTests(TestCase):
	url = '/utility/findNearestTechnicians'

	def setUp(self):
		self.client = APIClient()
		self.plumber = TechnicianProfile.objects.create(
			name='Plumber', service_category='homes', status='approved', is_active=True
		)
		self.pending = TechnicianProfile.objects.create(
			name='Pending', service_category='homes', status='pending'
		)
		self.mechanic = TechnicianProfile.objects.create(
			name='Mechanic', service_category='vehicles', status='approved', is_active=True
		)
		for technician, meters in [(self.pending, 500), (self.mechanic, 1000), (self.plumber, 1500)]:
			lat, lng = north_of(*COLOMBO, meters)
			TechnicianLocation.objects.create(
				technician_id=technician.id,
				geohash=encode_geohash(lat, lng, 10),
				latitude=lat,
				longitude=lng,
				service_category=technician.service_category,
			)
		self.body = {'lat': COLOMBO[0], 'lng': COLOMBO[1], 'radiusInM': 5000}

	def ids(self, response):
		return [item['id'] for item in response.json()['data']]

	def test_returns_all_nearby_sorted(self):
		response = self.client.post(self.url, self.body, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(self.ids(response), [self.pending.id, self.mechanic.id, self.plumber.id])
		self.assertEqual(response.json()['count'], 3)

	def test_search_has_no_side_effects(self):
		self.client.post(self.url, self.body, format='json')

		self.assertEqual(TechnicianLocation.objects.count(), 3)

	def test_category_filter(self):
		response = self.client.post(self.url + '?serviceCategory=homes', self.body, format='json')

		self.assertEqual(self.ids(response), [self.pending.id, self.plumber.id])

	def test_require_active(self):
		response = self.client.post(
			self.url + '?serviceCategory=homes&requireActive=true', self.body, format='json'
		)
		self.assertEqual(self.ids(response), [self.plumber.id])

		response = self.client.post(self.url + '?requireActive=true', self.body, format='json')
		self.assertEqual(self.ids(response), [self.mechanic.id, self.plumber.id])

	def test_radius_limits_results(self):
		self.body['radiusInM'] = 750

		response = self.client.post(self.url, self.body, format='json')

		self.assertEqual(self.ids(response), [self.pending.id])

	def test_invalid_inputs(self):
		response = self.client.post(self.url + '?serviceCategory=boats', self.body, format='json')
		self.assertEqual(response.status_code, 400)

		self.body['radiusInM'] = -5
		response = self.client.post(self.url, self.body, format='json')
		self.assertEqual(response.status_code, 400)

		response = self.client.post(self.url, {'lat': 91, 'lng': 0}, format='json')
		self.assertEqual(response.status_code, 400)
