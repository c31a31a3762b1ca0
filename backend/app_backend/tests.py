from django.test import TestCase
from rest_framework.test import APIClient
from unittest.mock import patch


class HealthCheckTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	@patch('app_backend.views.redis.Redis.from_url')
	def test_all_services_healthy(self, mock_from_url):
		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['services'], {
			'database': 'healthy', 'redis': 'healthy', 'celery': 'healthy',
		})
		mock_from_url.return_value.ping.assert_called_once()

	@patch('app_backend.views.redis.Redis.from_url')
	def test_redis_down_is_503(self, mock_from_url):
		mock_from_url.return_value.ping.side_effect = ConnectionError('refused')

		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['status'], 'unhealthy')
		self.assertEqual(response.data['services']['redis'], 'unhealthy: refused')
		self.assertEqual(response.data['services']['database'], 'healthy')
