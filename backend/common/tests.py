import math

from django.test import SimpleTestCase

from common.utils import calculate_distance, encode_geohash, geohash_query_bounds, is_valid_coordinate


def _in_bounds(geohash, bounds):
	for start, end in bounds:
		if end.endswith('~'):
			if geohash >= start and geohash.startswith(end[:-1]):
				return True
		elif start <= geohash <= end:
			return True
	return False


class GeohashTests(SimpleTestCase):
	def test_encode_known_geohash(self):
		self.assertEqual(encode_geohash(57.64911, 10.40744, 11), 'u4pruydqqvj')

	def test_encode_is_deterministic_and_prefix_stable(self):
		full = encode_geohash(6.9271, 79.8612, 10)
		self.assertEqual(len(full), 10)
		self.assertEqual(full, encode_geohash(6.9271, 79.8612, 10))
		self.assertTrue(full.startswith(encode_geohash(6.9271, 79.8612, 5)))

	def test_bounds_cover_points_inside_radius(self):
		center_lat, center_lng = 6.9271, 79.8612
		bounds = geohash_query_bounds(center_lat, center_lng, 5000)

		self.assertTrue(bounds)
		self.assertEqual(len(bounds), len(set(bounds)))

		# Points on a ring just inside the radius, in eight directions
		for bearing in range(0, 360, 45):
			lat, lng = _offset(center_lat, center_lng, 4990, bearing)
			self.assertTrue(
				_in_bounds(encode_geohash(lat, lng, 10), bounds),
				'point at bearing %d not covered' % bearing
			)

	def test_bounds_near_antimeridian(self):
		bounds = geohash_query_bounds(0.0, 179.99, 10000)
		lat, lng = _offset(0.0, 179.99, 5000, 90)
		self.assertTrue(_in_bounds(encode_geohash(lat, lng, 10), bounds))


class DistanceTests(SimpleTestCase):
	def test_zero_distance(self):
		self.assertEqual(calculate_distance(6.9271, 79.8612, 6.9271, 79.8612), 0)

	def test_one_degree_of_latitude(self):
		distance = calculate_distance(0, 0, 1, 0)
		self.assertAlmostEqual(distance, 6371000 * math.pi / 180, delta=0.5)

	def test_coordinate_validation(self):
		self.assertTrue(is_valid_coordinate(6.9271, 79.8612))
		self.assertTrue(is_valid_coordinate(-90, 180))
		self.assertFalse(is_valid_coordinate(91, 0))
		self.assertFalse(is_valid_coordinate(0, -181))
		self.assertFalse(is_valid_coordinate(float('nan'), 0))
		self.assertFalse(is_valid_coordinate(0, float('inf')))
		self.assertFalse(is_valid_coordinate('6.9', 79.8))
		self.assertFalse(is_valid_coordinate(True, 0))
		self.assertFalse(is_valid_coordinate(None, 0))


def _offset(lat, lng, distance, bearing_degrees):
	"""Destination point `distance` meters from (lat, lng) along a bearing."""
	radius = 6371000
	delta = distance / radius
	bearing = math.radians(bearing_degrees)
	lat1 = math.radians(lat)
	lng1 = math.radians(lng)

	lat2 = math.asin(
		math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(bearing)
	)
	lng2 = lng1 + math.atan2(
		math.sin(bearing) * math.sin(delta) * math.cos(lat1),
		math.cos(delta) - math.sin(lat1) * math.sin(lat2)
	)
	lng2 = (math.degrees(lng2) + 540) % 360 - 180
	return math.degrees(lat2), lng2
