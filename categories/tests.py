"""
Tests for category management views and the seed_categories command.
Run with: python manage.py test categories
"""
from io import StringIO
from unittest.mock import patch, MagicMock

from django.contrib.messages import get_messages
from django.core.management import call_command
from django.test import TestCase, Client
from django.urls import reverse

from services.category_api import DUPLICATE_MESSAGE
from services.errors import ConflictError
from .forms import CategoryForm

CATEGORIES = [
    {'id': 'c1', 'name': 'Food & Dining', 'color': '#B45309'},
    {'id': 'c2', 'name': 'Transportation', 'color': '#1D4ED8'},
]

EXPENSES = [
    {'id': 'a1', 'title': 'Groceries', 'amount': 85.5, 'date': '2024-01-15',
     'category': 'Food & Dining', 'category_id': 'c1', 'note': None, 'created_at': None},
]


def message_texts(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


@patch('services.expense_api.get_all_expenses', return_value=EXPENSES)
@patch('services.category_api.get_all_categories', return_value=CATEGORIES)
class CategoryListTestCase(TestCase):
    """Test listing and creating categories."""

    def setUp(self):
        self.client = Client()
        self.url = reverse('categories:list')

    def test_categories_listed_with_usage(self, mock_categories, mock_expenses):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        rows = response.context['categories']
        self.assertEqual([r['name'] for r in rows], ['Food & Dining', 'Transportation'])
        self.assertEqual(rows[0]['usage_count'], 1)
        self.assertEqual(rows[1]['usage_count'], 0)
        self.assertEqual(rows[0]['palette']['bg_color'], '#fffbeb')
        self.assertContains(response, '1 expense')

    @patch('services.category_api.create_category')
    def test_create_category(self, mock_create, mock_categories, mock_expenses):
        mock_create.return_value = {'id': 'c9', 'name': 'Gifts', 'color': '#FF0000'}

        response = self.client.post(self.url, {'name': '  Gifts ', 'color': '#ff0000'})

        self.assertRedirects(response, self.url, fetch_redirect_response=False)
        mock_create.assert_called_once_with({'name': 'Gifts', 'color': '#FF0000'})
        self.assertIn("✅ Category 'Gifts' created successfully!", message_texts(response))

    @patch('services.category_api.create_category')
    def test_duplicate_name_rejected_before_saving(self, mock_create, mock_categories, mock_expenses):
        response = self.client.post(self.url, {'name': 'food & dining', 'color': '#FF0000'})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Category already exists')
        mock_create.assert_not_called()

    @patch('services.category_api.create_category')
    def test_duplicate_reported_by_database(self, mock_create, mock_categories, mock_expenses):
        """A concurrent insert of the same name is caught by the unique index."""
        mock_create.side_effect = ConflictError(DUPLICATE_MESSAGE)

        response = self.client.post(self.url, {'name': 'Gifts', 'color': '#FF0000'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['form'].errors['name'], [DUPLICATE_MESSAGE])

    @patch('services.category_api.create_category')
    def test_invalid_color_rejected(self, mock_create, mock_categories, mock_expenses):
        response = self.client.post(self.url, {'name': 'Gifts', 'color': 'blue'})

        self.assertContains(response, 'Please enter a valid hex color')
        mock_create.assert_not_called()


@patch('services.category_api.get_all_categories', return_value=CATEGORIES)
class CategoryEditTestCase(TestCase):
    """Test renaming and recoloring categories."""

    def setUp(self):
        self.client = Client()

    @patch('services.category_api.update_category')
    def test_rename_category(self, mock_update, mock_categories):
        mock_update.return_value = {'id': 'c1', 'name': 'Groceries', 'color': '#B45309'}

        response = self.client.post(reverse('categories:edit', args=['c1']),
                                    {'name': 'Groceries', 'color': '#b45309'})

        self.assertRedirects(response, reverse('categories:list'), fetch_redirect_response=False)
        mock_update.assert_called_once_with('c1', {'name': 'Groceries', 'color': '#B45309'})
        self.assertIn('✅ Category updated successfully!', message_texts(response))

    @patch('services.category_api.update_category')
    def test_recolor_keeps_own_name(self, mock_update, mock_categories):
        """Saving a category under its own name is not a duplicate."""
        mock_update.return_value = CATEGORIES[0]

        self.client.post(reverse('categories:edit', args=['c1']), {'name': 'Food & Dining', 'color': '#000000'})

        mock_update.assert_called_once()

    @patch('services.category_api.update_category')
    def test_rename_to_existing_name_rejected(self, mock_update, mock_categories):
        response = self.client.post(reverse('categories:edit', args=['c1']),
                                    {'name': 'TRANSPORTATION', 'color': '#B45309'})

        self.assertIn('⚠️ Category already exists', message_texts(response))
        mock_update.assert_not_called()

    def test_edit_missing_category(self, mock_categories):
        response = self.client.post(reverse('categories:edit', args=['nope']), {'name': 'X y', 'color': '#000000'})

        self.assertIn('⚠️ Category not found.', message_texts(response))

    def test_edit_requires_post(self, mock_categories):
        response = self.client.get(reverse('categories:edit', args=['c1']))
        self.assertEqual(response.status_code, 405)


class CategoryDeleteTestCase(TestCase):
    """Test deleting categories, including the in-use guard."""

    def setUp(self):
        self.client = Client()
        self.url = reverse('categories:delete', args=['c1'])

    @patch('services.category_api.get_service_client')
    @patch('services.category_api.get_category_usage_count', return_value=2)
    def test_delete_category_in_use_blocked(self, mock_usage, mock_supabase):
        response = self.client.post(self.url)

        self.assertRedirects(response, reverse('categories:list'), fetch_redirect_response=False)
        self.assertIn('⚠️ Cannot delete category: it is used by 2 expenses', message_texts(response))
        mock_supabase.assert_not_called()

    @patch('services.category_api.get_all_categories', return_value=CATEGORIES[1:])
    @patch('services.category_api.get_service_client')
    @patch('services.category_api.get_category_usage_count', return_value=0)
    def test_delete_unused_category(self, mock_usage, mock_supabase, mock_categories):
        mock_client = MagicMock()
        mock_supabase.return_value = mock_client

        response = self.client.post(self.url)

        mock_client.table.return_value.delete.return_value.eq.assert_called_once_with('id', 'c1')
        self.assertIn('✅ Category deleted successfully!', message_texts(response))
        mock_categories.assert_called_once()

    def test_delete_requires_post(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 405)


class CategoryFormTestCase(TestCase):
    """Test CategoryForm directly."""

    def test_defaults_to_muted_blue(self):
        self.assertEqual(CategoryForm().fields['color'].initial, '#DBEAFE')

    def test_name_too_short(self):
        form = CategoryForm({'name': 'x', 'color': '#DBEAFE'})
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors['name'], ['Category name must be at least 2 characters'])

    def test_color_uppercased(self):
        form = CategoryForm({'name': 'Gifts', 'color': '#abcdef'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data, {'name': 'Gifts', 'color': '#ABCDEF'})


@patch('services.category_api.create_category')
@patch('services.category_api.get_all_categories', return_value=CATEGORIES)
class SeedCategoriesCommandTestCase(TestCase):
    """Test the seed_categories management command."""

    def test_creates_missing_palette_categories(self, mock_categories, mock_create):
        mock_create.side_effect = lambda data: {'id': 'new', **data}
        out = StringIO()

        call_command('seed_categories', stdout=out)

        created = [c[0][0]['name'] for c in mock_create.call_args_list]
        self.assertEqual(len(created), 8)
        self.assertNotIn('Food & Dining', created)
        self.assertEqual(mock_create.call_args_list[0][0][0], {'name': 'Shopping', 'color': '#7E22CE'})
        self.assertIn('Created Other', out.getvalue())

    def test_dry_run(self, mock_categories, mock_create):
        out = StringIO()

        call_command('seed_categories', dry_run=True, stdout=out)

        mock_create.assert_not_called()
        self.assertIn('Would create Shopping', out.getvalue())
