"""
Test suite for expense validation and CRUD views.
Run with: python manage.py test expenses.tests
"""

from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.messages import get_messages
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, Client
from django.urls import reverse

from services.errors import TransientServiceError
from .forms import ExpenseForm

CATEGORIES = [
    {'id': 'c1', 'name': 'Food & Dining', 'color': '#B45309'},
    {'id': 'c2', 'name': 'Transportation', 'color': '#1D4ED8'},
]

RECORDS = [
    {'id': 'a1', 'title': 'Groceries', 'amount': 85.5, 'date': '2024-01-15',
     'category': 'Food & Dining', 'category_id': 'c1', 'note': 'weekly shop', 'created_at': None},
    {'id': 'a2', 'title': 'Bus pass', 'amount': 45.0, 'date': '2024-01-14',
     'category': 'Transportation', 'category_id': 'c2', 'note': None, 'created_at': None},
]

VALID_EXPENSE = {
    'title': 'Lunch',
    'amount': '50.75',
    'date': '2024-01-15',
    'category': 'Food & Dining',
    'note': 'Lunch at restaurant',
}


def message_texts(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


@patch('services.category_api.get_all_categories', return_value=CATEGORIES)
class NewExpenseTestCase(TestCase):
    """Test the new expense form and its validation."""

    def setUp(self):
        self.client = Client()

    def test_form_lists_categories(self, mock_categories):
        response = self.client.get(reverse('expenses:new'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Food &amp; Dining')
        self.assertContains(response, 'data-validate="amount"')

    @patch('services.expense_api.get_all_expenses', return_value=RECORDS)
    @patch('services.expense_api.create_expense')
    def test_valid_expense_submission(self, mock_create, mock_get_all, mock_categories):
        """Test that valid expense data is saved and the user lands on the history page."""
        mock_create.return_value = {'id': 'new', **VALID_EXPENSE}

        response = self.client.post(reverse('expenses:new'), VALID_EXPENSE)

        self.assertRedirects(response, reverse('expenses:history'), fetch_redirect_response=False)
        payload = mock_create.call_args[0][0]
        self.assertEqual(payload['amount'], Decimal('50.75'))
        self.assertEqual(payload['category_id'], 'c1')
        self.assertEqual(payload['note'], 'Lunch at restaurant')
        self.assertIn('✅ Expense of $50.75 added successfully!', message_texts(response))

    @patch('services.expense_api.get_all_expenses', return_value=[])
    @patch('services.expense_api.create_expense')
    def test_amount_is_canonicalized_on_submit(self, mock_create, mock_get_all, mock_categories):
        mock_create.return_value = {'id': 'new'}

        self.client.post(reverse('expenses:new'), {**VALID_EXPENSE, 'amount': '12.5', 'note': '   '})

        payload = mock_create.call_args[0][0]
        self.assertEqual(payload['amount'], Decimal('12.50'))
        self.assertIsNone(payload['note'])

    @patch('services.expense_api.create_expense')
    def test_negative_amount_rejected(self, mock_create, mock_categories):
        """Test that negative amounts are rejected."""
        response = self.client.post(reverse('expenses:new'), {**VALID_EXPENSE, 'amount': '-50'})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Amount cannot be negative')
        mock_create.assert_not_called()

    @patch('services.expense_api.create_expense')
    def test_amount_too_large_rejected(self, mock_create, mock_categories):
        response = self.client.post(reverse('expenses:new'), {**VALID_EXPENSE, 'amount': '1000000'})

        self.assertContains(response, 'Amount cannot exceed $999,999.99')
        mock_create.assert_not_called()

    @patch('services.expense_api.create_expense')
    def test_non_ascii_digits_rejected(self, mock_create, mock_categories):
        """Full-width digits are not silently saved as some other amount."""
        response = self.client.post(reverse('expenses:new'), {**VALID_EXPENSE, 'amount': '１２'})

        self.assertEqual(response.context['form'].errors['amount'], ['Please enter a valid number'])
        mock_create.assert_not_called()

    @patch('services.expense_api.create_expense')
    def test_future_date_rejected(self, mock_create, mock_categories):
        response = self.client.post(reverse('expenses:new'), {**VALID_EXPENSE, 'date': '2999-01-01'})

        self.assertContains(response, 'Date cannot be in the future')
        mock_create.assert_not_called()

    def test_missing_required_fields(self, mock_categories):
        """Test that every required field reports its own error."""
        response = self.client.post(reverse('expenses:new'), {})

        form = response.context['form']
        self.assertEqual(set(form.errors), {'title', 'amount', 'date', 'category'})
        self.assertEqual(form.errors['title'], ['Title is required'])
        self.assertEqual(form.errors['category'], ['Category is required'])

    @patch('services.expense_api.create_expense')
    def test_service_failure_shown_on_form(self, mock_create, mock_categories):
        mock_create.side_effect = TransientServiceError("Failed to create expense")

        response = self.client.post(reverse('expenses:new'), VALID_EXPENSE)

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Failed to create expense')
        # The typed values are kept
        self.assertContains(response, 'value="Lunch"')


@patch('services.expense_api.get_all_expenses', return_value=RECORDS)
class ExpenseHistoryTestCase(TestCase):
    """Test the history table page."""

    def setUp(self):
        self.client = Client()

    def test_expense_list_fetched(self, mock_get_all):
        response = self.client.get(reverse('expenses:history'))

        self.assertEqual(response.status_code, 200)
        table = response.context['table']
        self.assertEqual(table['total_matching_count'], 2)
        self.assertEqual(table['total_matching_amount'], Decimal('130.50'))
        self.assertContains(response, 'Total: $130.50')
        self.assertContains(response, 'Jan 15, 2024')
        self.assertEqual(response.context['categories'], ['Food & Dining', 'Transportation'])

    def test_query_parameters_filter_the_table(self, mock_get_all):
        response = self.client.get(reverse('expenses:history'), {'q': 'bus'})

        table = response.context['table']
        self.assertEqual(table['total_matching_count'], 1)
        self.assertEqual(table['rows'][0]['expenses'][0]['id'], 'a2')
        self.assertNotContains(response, 'Groceries</td>')

    def test_no_matches_message(self, mock_get_all):
        response = self.client.get(reverse('expenses:history'), {'q': 'zzz'})
        self.assertContains(response, 'No expenses found matching your filters.')

    def test_sort_links_toggle_direction(self, mock_get_all):
        response = self.client.get(reverse('expenses:history'))

        links = response.context['sort_links']
        self.assertEqual(links['date'], reverse('expenses:history') + '?dir=asc')
        self.assertEqual(links['amount'], reverse('expenses:history') + '?sort=amount&dir=asc')

    def test_fetch_failure_shows_error(self, mock_get_all):
        mock_get_all.side_effect = TransientServiceError("Failed to fetch expenses")

        response = self.client.get(reverse('expenses:history'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Error: Failed to fetch expenses')
        self.assertContains(response, 'No expenses found.')

    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    def test_edit_parameter_renders_inline_form(self, mock_categories, mock_get_all):
        response = self.client.get(reverse('expenses:history'), {'edit': 'a1'})

        form = response.context['edit_form']
        self.assertIsNotNone(form)
        self.assertEqual(form.initial['amount'], '85.50')
        self.assertContains(response, reverse('expenses:edit', args=['a1']))

    def test_edit_parameter_for_missing_expense(self, mock_get_all):
        response = self.client.get(reverse('expenses:history'), {'edit': 'gone'})

        self.assertIsNone(response.context['edit_form'])
        self.assertIsNone(response.context['params'].editing_id)
        self.assertIn('⚠️ The expense you tried to edit no longer exists.', message_texts(response))


class EditExpenseTestCase(TestCase):
    """Test fetching and updating a single expense."""

    def setUp(self):
        self.client = Client()
        self.url = reverse('expenses:edit', args=['a1'])

    @patch('services.expense_api.get_expense_by_id', return_value=RECORDS[0])
    def test_edit_expense_get(self, mock_get):
        """Test that GET returns the expense as JSON."""
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['title'], 'Groceries')
        self.assertEqual(data['amount'], 85.5)
        mock_get.assert_called_once_with('a1')

    @patch('services.expense_api.get_expense_by_id', return_value=None)
    def test_edit_expense_get_missing(self, mock_get):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 404)

    @patch('services.expense_api.get_expense_by_id')
    def test_edit_expense_get_service_failure(self, mock_get):
        mock_get.side_effect = TransientServiceError("Failed to fetch expense")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {'error': 'Failed to fetch expense'})

    @patch('services.expense_api.get_expense_by_id', return_value=RECORDS[0])
    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    @patch('services.expense_api.get_all_expenses', return_value=RECORDS)
    @patch('services.expense_api.update_expense')
    def test_edit_expense_post_valid(self, mock_update, mock_get_all, mock_categories, mock_get):
        """Test that a valid edit is saved and the history view parameters are kept."""
        mock_update.return_value = RECORDS[1]
        data = {**VALID_EXPENSE, 'category': 'Transportation', 'return_query': 'q=bus&page=2&edit=a1'}

        response = self.client.post(self.url, data)

        self.assertRedirects(response, reverse('expenses:history') + '?q=bus&page=2',
                             fetch_redirect_response=False)
        expense_id, payload = mock_update.call_args[0]
        self.assertEqual(expense_id, 'a1')
        self.assertEqual(payload['category_id'], 'c2')
        self.assertIn('✅ Expense updated successfully!', message_texts(response))

    @patch('services.expense_api.get_expense_by_id', return_value=RECORDS[0])
    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    @patch('services.expense_api.update_expense')
    def test_edit_expense_validation_negative(self, mock_update, mock_categories, mock_get):
        """Invalid edits leave the row in edit mode and report the error."""
        data = {**VALID_EXPENSE, 'amount': '-5', 'return_query': 'sort=amount'}

        response = self.client.post(self.url, data)

        self.assertRedirects(response, reverse('expenses:history') + '?sort=amount&edit=a1',
                             fetch_redirect_response=False)
        self.assertIn('⚠️ Amount cannot be negative', message_texts(response))
        mock_update.assert_not_called()

    @patch('services.expense_api.get_expense_by_id', return_value=RECORDS[0])
    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    @patch('services.expense_api.update_expense')
    def test_edit_expense_service_failure(self, mock_update, mock_categories, mock_get):
        mock_update.side_effect = TransientServiceError("Failed to update expense")

        response = self.client.post(self.url, VALID_EXPENSE)

        self.assertRedirects(response, reverse('expenses:history') + '?edit=a1', fetch_redirect_response=False)
        self.assertIn('⚠️ Failed to update expense', message_texts(response))

    @patch('services.expense_api.get_expense_by_id')
    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    @patch('services.expense_api.get_all_expenses', return_value=RECORDS)
    @patch('services.expense_api.update_expense')
    def test_edit_keeps_renamed_category(self, mock_update, mock_get_all, mock_categories, mock_get):
        """A row whose category no longer exists can still be saved as shown."""
        mock_get.return_value = {**RECORDS[0], 'category': 'Groceries (old)'}
        mock_update.return_value = RECORDS[0]

        response = self.client.post(self.url, {**VALID_EXPENSE, 'category': 'Groceries (old)'})

        self.assertRedirects(response, reverse('expenses:history'), fetch_redirect_response=False)
        payload = mock_update.call_args[0][1]
        self.assertEqual(payload['category'], 'Groceries (old)')
        self.assertNotIn('category_id', payload)

    @patch('services.expense_api.get_expense_by_id', return_value=None)
    @patch('services.expense_api.update_expense')
    def test_edit_missing_expense(self, mock_update, mock_get):
        response = self.client.post(self.url, {**VALID_EXPENSE, 'return_query': 'q=lunch&edit=a1'})

        self.assertRedirects(response, reverse('expenses:history') + '?q=lunch', fetch_redirect_response=False)
        self.assertIn('⚠️ The expense you tried to edit no longer exists.', message_texts(response))
        mock_update.assert_not_called()

    @patch('services.expense_api.get_expense_by_id', return_value=RECORDS[0])
    @patch('services.category_api.get_all_categories', return_value=CATEGORIES)
    @patch('services.expense_api.update_expense')
    def test_edit_rejects_exponent_amount(self, mock_update, mock_categories, mock_get):
        response = self.client.post(self.url, {**VALID_EXPENSE, 'amount': '1E-1'})

        self.assertIn('⚠️ Please enter a valid number', message_texts(response))
        mock_update.assert_not_called()


class DeleteExpenseTestCase(TestCase):
    """Test expense deletion."""

    def setUp(self):
        self.client = Client()
        self.url = reverse('expenses:delete', args=['a1'])

    @patch('services.expense_api.get_all_expenses', return_value=RECORDS[1:])
    @patch('services.expense_api.delete_expense')
    def test_delete_expense_valid(self, mock_delete, mock_get_all):
        response = self.client.post(self.url, {'return_query': 'group=month'})

        self.assertRedirects(response, reverse('expenses:history') + '?group=month', fetch_redirect_response=False)
        mock_delete.assert_called_once_with('a1')
        mock_get_all.assert_called_once()
        self.assertIn('✅ Expense deleted successfully!', message_texts(response))

    @patch('services.expense_api.delete_expense')
    def test_delete_expense_failure(self, mock_delete):
        mock_delete.side_effect = TransientServiceError("Failed to delete expense")

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, 302)
        self.assertIn('⚠️ Failed to delete expense', message_texts(response))

    @patch('services.expense_api.delete_expense')
    def test_delete_expense_get_request_rejected(self, mock_delete):
        """Test that GET requests don't delete anything."""
        response = self.client.get(self.url)

        self.assertRedirects(response, reverse('expenses:history'), fetch_redirect_response=False)
        mock_delete.assert_not_called()


class ValidateFieldTestCase(TestCase):
    """Test the blur-time validation endpoint."""

    def setUp(self):
        self.client = Client()
        self.url = reverse('expenses:validate_field')

    def test_amount_is_canonicalized(self):
        response = self.client.post(self.url, {'field': 'amount', 'value': '12.5'})
        self.assertEqual(response.json(), {'field': 'amount', 'value': '12.50', 'error': None})

    def test_exponent_amount_left_as_typed(self):
        response = self.client.post(self.url, {'field': 'amount', 'value': '1e2'})
        self.assertEqual(response.json(), {'field': 'amount', 'value': '1e2', 'error': 'Please enter a valid number'})

    def test_invalid_title(self):
        response = self.client.post(self.url, {'field': 'title', 'value': 'a'})
        self.assertEqual(response.json()['error'], 'Title must be at least 2 characters')

    def test_unknown_field(self):
        response = self.client.post(self.url, {'field': 'note', 'value': 'x'})
        self.assertEqual(response.status_code, 400)

    def test_get_not_allowed(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 405)


class ExpenseFormTestCase(TestCase):
    """Test ExpenseForm directly."""

    def test_payload_carries_category_id(self):
        form = ExpenseForm(VALID_EXPENSE, categories=CATEGORIES, today='2024-06-01')

        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['category_id'], 'c1')
        self.assertEqual(payload['title'], 'Lunch')

    def test_only_plain_digit_amounts_accepted(self):
        """The amount that passes validation is the amount that gets saved."""
        for raw in ['1e2', '1E-1', '１２', '1,000', '$5']:
            form = ExpenseForm({**VALID_EXPENSE, 'amount': raw}, categories=CATEGORIES, today='2024-06-01')
            self.assertFalse(form.is_valid(), msg=raw)
            self.assertEqual(form.errors['amount'], ['Please enter a valid number'], msg=raw)

        form = ExpenseForm({**VALID_EXPENSE, 'amount': ' 100.5 '}, categories=CATEGORIES, today='2024-06-01')
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['amount'], Decimal('100.50'))

    def test_unknown_category_rejected(self):
        form = ExpenseForm({**VALID_EXPENSE, 'category': 'Pets'}, categories=CATEGORIES, today='2024-06-01')

        self.assertFalse(form.is_valid())
        self.assertIn('category', form.errors)

    def test_date_checked_against_given_today(self):
        form = ExpenseForm({**VALID_EXPENSE, 'date': '2024-06-02'}, categories=CATEGORIES, today='2024-06-01')

        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['date'], ['Date cannot be in the future'])

    def test_initial_from_expense_keeps_renamed_category(self):
        expense = {**RECORDS[0], 'amount': Decimal('85.5'), 'category': 'Groceries (old)'}

        form = ExpenseForm(initial=ExpenseForm.initial_from_expense(expense), categories=CATEGORIES)

        self.assertEqual(form.initial['amount'], '85.50')
        self.assertIn(('Groceries (old)', 'Groceries (old)'), form.fields['category'].choices)


@patch('services.expense_api.get_all_expenses', return_value=RECORDS)
class ExpenseReportCommandTestCase(TestCase):
    """Test the expense_report management command."""

    def test_default_report(self, mock_get_all):
        out = StringIO()
        call_command('expense_report', stdout=out)

        output = out.getvalue()
        self.assertIn('Groceries', output)
        self.assertIn('Jan 15, 2024', output)
        self.assertIn('Total: $130.50', output)
        self.assertIn('Showing 1-2 of 2 expenses', output)

    def test_grouped_by_category(self, mock_get_all):
        out = StringIO()
        call_command('expense_report', group='category', stdout=out)

        output = out.getvalue()
        self.assertIn('Food & Dining ($85.50)', output)
        self.assertIn('Transportation ($45.00)', output)

    def test_no_matches(self, mock_get_all):
        out = StringIO()
        call_command('expense_report', search='zzz', stdout=out)
        self.assertIn('No expenses found matching criteria.', out.getvalue())

    def test_fetch_failure(self, mock_get_all):
        mock_get_all.side_effect = TransientServiceError("Failed to fetch expenses")
        with self.assertRaises(CommandError):
            call_command('expense_report', stdout=StringIO())
