"""
Tests for the dashboard statistics page.
Run with: python manage.py test dashboard
"""
from unittest.mock import patch

from django.test import TestCase, Client
from django.urls import reverse

from services.errors import ConfigurationError

RECORDS = [
    {'id': 'a1', 'title': 'Groceries', 'amount': 85.5, 'date': '2024-01-15', 'category': 'Food & Dining'},
    {'id': 'a2', 'title': 'Bus pass', 'amount': 45, 'date': '2024-01-14', 'category': 'Transportation'},
    {'id': 'a3', 'title': 'Cinema', 'amount': 20, 'date': '2023-12-30', 'category': 'Entertainment'},
]


@patch('services.stores.reference_today', return_value='2024-03-01')
class DashboardTestCase(TestCase):

    def setUp(self):
        self.client = Client()

    @patch('services.expense_api.get_all_expenses', return_value=RECORDS)
    def test_statistics_displayed(self, mock_get_all, mock_today):
        response = self.client.get(reverse('dashboard'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, '<strong id="stat-total">$150.50</strong>', html=True)
        self.assertContains(response, '<strong id="stat-count">3</strong>', html=True)
        # (130.50 + 20.00) / 2 months
        self.assertContains(response, '<strong id="stat-average">$75.25</strong>', html=True)
        self.assertContains(response, '<strong id="stat-ytd">$130.50</strong>', html=True)

    @patch('services.expense_api.get_all_expenses', return_value=[])
    def test_no_expenses(self, mock_get_all, mock_today):
        response = self.client.get(reverse('dashboard'))

        self.assertContains(response, '<strong id="stat-total">$0.00</strong>', html=True)
        self.assertContains(response, '<strong id="stat-average">$0.00</strong>', html=True)

    @patch('services.expense_api.get_service_client')
    def test_missing_configuration_shows_error(self, mock_supabase, mock_today):
        mock_supabase.side_effect = ConfigurationError()

        with self.assertLogs('dashboard.views', level='WARNING'):
            response = self.client.get(reverse('dashboard'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Supabase client not initialized')
        self.assertContains(response, '<strong id="stat-count">0</strong>', html=True)
