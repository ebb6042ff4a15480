import importlib
import os
from unittest.mock import patch

from django.test import SimpleTestCase

from fixme_backend.settings import settings as base_settings


class ChannelLayerSettingsTests(SimpleTestCase):
	def channel_layer_for(self, environ):
		try:
			with patch.dict(os.environ, environ, clear=True), patch('dotenv.load_dotenv'):
				return dict(importlib.reload(base_settings).CHANNEL_LAYERS['default'])
		finally:
			importlib.reload(base_settings)

	def test_redis_layer_when_redis_url_set(self):
		layer = self.channel_layer_for({'REDIS_URL': 'redis://cache:6379/1'})

		self.assertEqual(layer['BACKEND'], 'channels_redis.core.RedisChannelLayer')
		self.assertEqual(layer['CONFIG']['hosts'], ['redis://cache:6379/1'])

	def test_in_memory_layer_without_redis_url(self):
		layer = self.channel_layer_for({})

		self.assertEqual(layer['BACKEND'], 'channels.layers.InMemoryChannelLayer')
