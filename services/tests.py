"""
Tests for the shared services: formatting, validation, category colors,
the Supabase data-access functions and the in-memory stores.
Run with: python manage.py test services
"""
import os
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch, MagicMock

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, override_settings

from services import category_api, expense_api
from services.category_colors import CATEGORY_COLORS, color_for, category_names
from services.errors import ConfigurationError, ConflictError, TransientServiceError
from services.formatting import format_currency, format_date, month_label, normalize_amount_string
from services.stores import CategoryStore, ExpenseStore, compute_stats
from services.validation import (
    blur_field,
    reference_today,
    validate_amount,
    validate_category,
    validate_category_name,
    validate_color,
    validate_date,
    validate_expense,
    validate_field,
    validate_title,
)


class FakeAPIError(Exception):
    """Stands in for postgrest's APIError, which carries a PostgreSQL error code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


def response(data=None, count=None):
    mock_response = MagicMock()
    mock_response.data = data
    mock_response.count = count
    return mock_response


SAMPLE_RECORDS = [
    {'id': 'a1', 'title': 'Groceries', 'amount': 85.5, 'date': '2024-01-15',
     'category': 'Food & Dining', 'category_id': 'c1', 'note': 'weekly shop', 'created_at': '2024-01-15T10:00:00Z'},
    {'id': 'a2', 'title': 'Bus pass', 'amount': 45, 'date': '2024-01-14',
     'category': 'Transportation', 'category_id': 'c2', 'note': None, 'created_at': '2024-01-14T10:00:00Z'},
    {'id': 'a3', 'title': 'Cinema', 'amount': 20.25, 'date': '2023-12-30',
     'category': 'Entertainment', 'category_id': 'c3', 'note': None, 'created_at': '2023-12-30T10:00:00Z'},
]


class AmountFormattingTestCase(SimpleTestCase):
    """Test amount normalization and display formatting."""

    def test_normalize_examples(self):
        """Test the documented normalization examples."""
        self.assertEqual(normalize_amount_string("12.5"), "12.50")
        self.assertEqual(normalize_amount_string("7"), "7.00")
        self.assertEqual(normalize_amount_string("3.999"), "3.99")

    def test_normalize_strips_non_numeric_characters(self):
        self.assertEqual(normalize_amount_string("$1,234.5"), "1234.50")
        self.assertEqual(normalize_amount_string("-5"), "5.00")
        self.assertEqual(normalize_amount_string("abc"), "0.00")

    def test_normalize_folds_extra_decimal_points_into_fraction(self):
        """Only the first point separates whole from fraction."""
        self.assertEqual(normalize_amount_string("1.2.345"), "1.23")
        self.assertEqual(normalize_amount_string("1..5"), "1.50")

    def test_normalize_fills_missing_whole_part(self):
        self.assertEqual(normalize_amount_string(".5"), "0.50")
        self.assertEqual(normalize_amount_string(""), "0.00")
        self.assertEqual(normalize_amount_string("."), "0.00")

    def test_normalize_is_idempotent(self):
        """Normalizing twice gives the same result as normalizing once."""
        samples = ["", "0", "12.5", "7", "3.999", "1.2.345", "$1,234.5", ".", "..", "abc",
                   "-5", "00012", "1e5", "٣.5", "12.", "9999999.999", " 4 . 2 "]
        for sample in samples:
            once = normalize_amount_string(sample)
            self.assertEqual(normalize_amount_string(once), once, msg=repr(sample))
            self.assertRegex(once, r"^\d+\.\d{2}$")

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal("1234.5")), "$1,234.50")
        self.assertEqual(format_currency(130.5), "$130.50")
        self.assertEqual(format_currency(-5), "-$5.00")
        self.assertEqual(format_currency(None), "$0.00")

    def test_format_date(self):
        self.assertEqual(format_date("2024-01-15"), "Jan 15, 2024")
        self.assertEqual(format_date("2024-11-05"), "Nov 5, 2024")
        self.assertEqual(format_date("not a date"), "not a date")

    def test_month_label(self):
        self.assertEqual(month_label("2024-01-15"), "January 2024")
        self.assertEqual(month_label("garbage"), "")


class FieldValidationTestCase(SimpleTestCase):
    """Test the per-field validators and their error codes."""

    TODAY = "2024-06-01"

    def assertRejects(self, validator, value, code, **kwargs):
        with self.assertRaises(ValidationError) as ctx:
            validator(value, **kwargs)
        self.assertEqual(ctx.exception.code, code)

    def test_title_rules(self):
        self.assertRejects(validate_title, "", "required")
        self.assertRejects(validate_title, "   ", "required")
        self.assertRejects(validate_title, "a", "too_short")
        self.assertRejects(validate_title, "x" * 101, "too_long")
        validate_title("x" * 100)
        validate_title("  ab  ")

    def test_amount_rules(self):
        self.assertRejects(validate_amount, "", "required")
        self.assertRejects(validate_amount, "abc", "not_a_number")
        self.assertRejects(validate_amount, "NaN", "not_a_number")
        self.assertRejects(validate_amount, "-5", "negative")
        self.assertRejects(validate_amount, "1.234", "too_precise")
        self.assertRejects(validate_amount, "1000000", "too_large")
        validate_amount("0")
        validate_amount("12.5")
        validate_amount("999999.99")

    def test_amount_must_be_plain_digits(self):
        """Exponents, separators and non-ASCII digits are not numbers here."""
        for raw in ["1e2", "1E-1", "１２", "٣.5", "1,000", "$5", "Infinity", ".", "-"]:
            self.assertRejects(validate_amount, raw, "not_a_number")
        validate_amount(".5")
        validate_amount(" 12 ")

    def test_date_rules(self):
        self.assertRejects(validate_date, "", "required", today=self.TODAY)
        self.assertRejects(validate_date, "2024-13-01", "invalid", today=self.TODAY)
        self.assertRejects(validate_date, "15-10-2025", "invalid", today=self.TODAY)
        self.assertRejects(validate_date, "2024-06-02", "future", today=self.TODAY)
        self.assertRejects(validate_date, "1899-12-31", "too_old", today=self.TODAY)
        validate_date("1900-01-01", today=self.TODAY)
        validate_date(self.TODAY, today=self.TODAY)

    def test_category_required(self):
        self.assertRejects(validate_category, "", "required")
        self.assertRejects(validate_category, None, "required")
        validate_category("Food & Dining")

    def test_category_name_rules(self):
        existing = ["Food & Dining", "Travel"]
        self.assertRejects(validate_category_name, "", "required", existing_names=existing)
        self.assertRejects(validate_category_name, "x", "too_short", existing_names=existing)
        self.assertRejects(validate_category_name, "x" * 51, "too_long", existing_names=existing)
        self.assertRejects(validate_category_name, " travel ", "duplicate", existing_names=existing)
        # Renaming a category to a different casing of its own name is fine
        validate_category_name("TRAVEL", existing_names=existing, exclude="Travel")
        validate_category_name("Gifts", existing_names=existing)

    def test_color_rules(self):
        self.assertRejects(validate_color, "", "required")
        self.assertRejects(validate_color, "blue", "invalid")
        self.assertRejects(validate_color, "#12345", "invalid")
        validate_color("#DBEAFE")
        validate_color("#dbeafe")

    def test_validate_field_returns_message(self):
        self.assertEqual(validate_field("amount", "-5"), "Amount cannot be negative")
        self.assertEqual(validate_field("amount", "1000000"), "Amount cannot exceed $999,999.99")
        self.assertEqual(validate_field("title", "a"), "Title must be at least 2 characters")
        self.assertIsNone(validate_field("title", "Lunch"))
        self.assertEqual(validate_field("date", "2024-06-02", today=self.TODAY), "Date cannot be in the future")

    def test_blur_canonicalizes_amount_before_validating(self):
        self.assertEqual(blur_field("amount", "12.5"), ("12.50", None))
        self.assertEqual(blur_field("amount", "3.999"), ("3.99", None))
        self.assertEqual(blur_field("amount", ""), ("", "Amount is required"))
        self.assertEqual(blur_field("title", "a"), ("a", "Title must be at least 2 characters"))

    def test_blur_leaves_non_digit_amounts_as_typed(self):
        self.assertEqual(blur_field("amount", "1e2"), ("1e2", "Please enter a valid number"))
        self.assertEqual(blur_field("amount", "1E-1"), ("1E-1", "Please enter a valid number"))
        self.assertEqual(blur_field("amount", "１２"), ("１２", "Please enter a valid number"))
        self.assertEqual(blur_field("amount", "-5"), ("-5", "Amount cannot be negative"))

    def test_validate_expense_reports_every_failing_field(self):
        errors = validate_expense({}, today=self.TODAY)
        self.assertEqual(set(errors), {"title", "amount", "date", "category"})
        self.assertEqual(errors["title"], "Title is required")

    def test_validate_expense_valid(self):
        data = {"title": "Lunch", "amount": "12.50", "date": "2024-05-31", "category": "Food & Dining"}
        self.assertEqual(validate_expense(data, today=self.TODAY), {})

    @patch('django.utils.timezone.now')
    def test_reference_today_uses_phoenix_time(self, mock_now):
        """05:00 UTC on Jan 1st is still Dec 31st in Phoenix (UTC-7)."""
        mock_now.return_value = datetime(2024, 1, 1, 5, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(reference_today(), "2023-12-31")

    @override_settings(EXPENSE_REFERENCE_TIME_ZONE="UTC")
    @patch('django.utils.timezone.now')
    def test_reference_time_zone_is_configurable(self, mock_now):
        mock_now.return_value = datetime(2024, 1, 1, 5, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(reference_today(), "2024-01-01")


class CategoryColorTestCase(SimpleTestCase):
    """Test the category palette lookup."""

    def test_exact_match_is_case_insensitive(self):
        colors = color_for("food & dining")
        self.assertEqual(colors["name"], "Food & Dining")
        self.assertEqual(colors["bg_color"], "#fffbeb")

    def test_unknown_names_fall_back_to_other(self):
        other = color_for("Other")
        for name in ["Pets", "", None, "Food", "food & dining "]:
            self.assertEqual(color_for(name), other, msg=repr(name))

    def test_every_palette_entry_resolves_to_itself(self):
        for entry in CATEGORY_COLORS:
            self.assertEqual(color_for(entry["name"].upper()), entry)

    def test_returns_a_copy(self):
        color_for("Travel")["bg_color"] = "#000000"
        self.assertEqual(color_for("Travel")["bg_color"], "#ecfeff")

    def test_category_names(self):
        self.assertEqual(len(category_names()), 10)
        self.assertEqual(category_names()[-1], "Other")


class SupabaseServiceTestCase(SimpleTestCase):
    """Test client construction and configuration checks."""

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_url_raises_configuration_error(self):
        from supabase_service import get_service_client
        with self.assertRaises(ConfigurationError):
            get_service_client()

    @patch.dict(os.environ, {"SUPABASE_URL": "https://example.supabase.co"}, clear=True)
    def test_missing_keys_raise_configuration_error(self):
        from supabase_service import get_service_client
        with self.assertRaises(ConfigurationError):
            get_service_client()

    @patch.dict(os.environ, {"SUPABASE_URL": "https://example.supabase.co",
                             "SUPABASE_KEY": "anon", "SUPABASE_SERVICE_KEY": "service"}, clear=True)
    @patch('supabase_service.create_client')
    def test_service_client_prefers_service_key(self, mock_create):
        from supabase_service import get_service_client
        get_service_client()
        mock_create.assert_called_once_with("https://example.supabase.co", "service")

    @patch.dict(os.environ, {"SUPABASE_URL": "https://example.supabase.co", "SUPABASE_KEY": "anon"}, clear=True)
    @patch('supabase_service.create_client')
    def test_service_client_falls_back_to_anon_key(self, mock_create):
        from supabase_service import get_service_client
        get_service_client()
        mock_create.assert_called_once_with("https://example.supabase.co", "anon")

    @patch.dict(os.environ, {"SUPABASE_KEY": "anon"}, clear=True)
    def test_validate_config_lists_missing_variables(self):
        from supabase_service import validate_config
        with self.assertLogs('supabase_service', level='ERROR'):
            self.assertEqual(validate_config(), ["SUPABASE_URL"])


class ExpenseApiTestCase(SimpleTestCase):
    """Test the Supabase expense queries."""

    @patch('services.expense_api.get_service_client')
    def test_get_all_expenses_orders_by_date_desc(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.order.return_value.execute.return_value = response(SAMPLE_RECORDS)
        mock_supabase.return_value = mock_client

        self.assertEqual(expense_api.get_all_expenses(), SAMPLE_RECORDS)
        mock_client.table.assert_called_with('expenses')
        mock_client.table.return_value.select.return_value.order.assert_called_once_with('date', desc=True)

    @patch('services.expense_api.get_service_client')
    def test_service_failure_becomes_transient_error(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.order.return_value.execute.side_effect = Exception("boom")
        mock_supabase.return_value = mock_client

        with self.assertLogs('services.expense_api', level='ERROR'):
            with self.assertRaises(TransientServiceError) as ctx:
                expense_api.get_all_expenses()
        self.assertEqual(ctx.exception.message, "Failed to fetch expenses")

    @patch('services.expense_api.get_service_client')
    def test_configuration_error_is_not_wrapped(self, mock_supabase):
        mock_supabase.side_effect = ConfigurationError()
        with self.assertRaises(ConfigurationError):
            expense_api.get_all_expenses()

    @patch('services.expense_api.get_service_client')
    def test_get_expense_by_id_returns_none_when_missing(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = response([])
        mock_supabase.return_value = mock_client

        self.assertIsNone(expense_api.get_expense_by_id('missing'))

    @patch('services.expense_api.get_service_client')
    def test_create_expense_sends_json_friendly_payload(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.insert.return_value.execute.return_value = response([{'id': 'new', **SAMPLE_RECORDS[0]}])
        mock_supabase.return_value = mock_client

        expense_api.create_expense({
            'title': 'Groceries', 'amount': Decimal('85.50'), 'date': '2024-01-15',
            'category': 'Food & Dining', 'category_id': 'c1', 'note': None, 'unexpected': 'dropped',
        })

        payload = mock_client.table.return_value.insert.call_args[0][0]
        self.assertEqual(payload['amount'], 85.5)
        self.assertIsInstance(payload['amount'], float)
        self.assertNotIn('unexpected', payload)
        self.assertNotIn('id', payload)

    @patch('services.expense_api.get_service_client')
    def test_update_expense_is_partial(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.update.return_value.eq.return_value.execute.return_value = response([SAMPLE_RECORDS[0]])
        mock_supabase.return_value = mock_client

        expense_api.update_expense('a1', {'title': 'Weekly groceries'})

        mock_client.table.return_value.update.assert_called_once_with({'title': 'Weekly groceries'})
        mock_client.table.return_value.update.return_value.eq.assert_called_once_with('id', 'a1')

    @patch('services.expense_api.get_service_client')
    def test_update_missing_expense_fails(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.update.return_value.eq.return_value.execute.return_value = response([])
        mock_supabase.return_value = mock_client

        with self.assertLogs('services.expense_api', level='ERROR'):
            with self.assertRaises(TransientServiceError):
                expense_api.update_expense('missing', {'title': 'x'})

    @patch('services.expense_api.get_service_client')
    def test_date_range_query_is_inclusive(self, mock_supabase):
        mock_client = MagicMock()
        chain = mock_client.table.return_value.select.return_value
        chain.gte.return_value.lte.return_value.order.return_value.execute.return_value = response(SAMPLE_RECORDS[:2])
        mock_supabase.return_value = mock_client

        result = expense_api.get_expenses_by_date_range('2024-01-01', '2024-01-31')

        self.assertEqual(len(result), 2)
        chain.gte.assert_called_once_with('date', '2024-01-01')
        chain.gte.return_value.lte.assert_called_once_with('date', '2024-01-31')

    @patch('services.expense_api.get_service_client')
    def test_total_and_monthly_average(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.execute.return_value = response(SAMPLE_RECORDS)
        mock_supabase.return_value = mock_client

        self.assertEqual(expense_api.get_total_amount(), Decimal('150.75'))
        # Jan 2024: 130.50, Dec 2023: 20.25 -> 75.375 -> 75.38
        self.assertEqual(expense_api.get_monthly_average(), Decimal('75.38'))

    def test_monthly_average_of_nothing_is_zero(self):
        self.assertEqual(expense_api.monthly_average([]), Decimal('0.00'))

    def test_map_expense(self):
        row = expense_api.map_expense(SAMPLE_RECORDS[0])
        self.assertEqual(row['amount'], Decimal('85.5'))
        self.assertEqual(row['created_at'], '2024-01-15T10:00:00Z')
        self.assertEqual(row['note'], 'weekly shop')


class CategoryApiTestCase(SimpleTestCase):
    """Test the Supabase category queries and error translation."""

    @patch('services.category_api.get_service_client')
    def test_get_all_categories_orders_by_name(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.order.return_value.execute.return_value = response([{'id': 'c1', 'name': 'Travel'}])
        mock_supabase.return_value = mock_client

        self.assertEqual(len(category_api.get_all_categories()), 1)
        mock_client.table.assert_called_with('categories')
        mock_client.table.return_value.select.return_value.order.assert_called_once_with('name')

    @patch('services.category_api.get_service_client')
    def test_get_category_by_name_returns_none_when_missing(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = response([])
        mock_supabase.return_value = mock_client

        self.assertIsNone(category_api.get_category_by_name('Nope'))

    @patch('services.category_api.get_service_client')
    def test_duplicate_name_becomes_conflict(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.insert.return_value.execute.side_effect = FakeAPIError("duplicate key", code="23505")
        mock_supabase.return_value = mock_client

        with self.assertLogs('services.category_api', level='ERROR'):
            with self.assertRaises(ConflictError) as ctx:
                category_api.create_category({'name': 'Travel', 'color': '#ECFEFF'})
        self.assertEqual(ctx.exception.message, "A category with this name already exists")

    @patch('services.category_api.get_service_client')
    def test_usage_count_uses_exact_count(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value = response([], count=3)
        mock_supabase.return_value = mock_client

        self.assertEqual(category_api.get_category_usage_count('c1'), 3)
        mock_client.table.assert_called_with('expenses')
        mock_client.table.return_value.select.assert_called_once_with('id', count='exact')
        mock_client.table.return_value.select.return_value.eq.assert_called_once_with('category_id', 'c1')

    @patch('services.category_api.get_service_client')
    def test_is_category_in_use(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = response([{'id': 'a1'}])
        mock_supabase.return_value = mock_client

        self.assertTrue(category_api.is_category_in_use('c1'))

    @patch('services.category_api.get_service_client')
    def test_delete_used_category_is_refused_with_count(self, mock_supabase):
        """Deleting a category referenced by 2 expenses fails with the usage count."""
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value = response([], count=2)
        mock_supabase.return_value = mock_client

        with self.assertRaises(ConflictError) as ctx:
            category_api.delete_category('c1')

        self.assertEqual(ctx.exception.usage_count, 2)
        self.assertIn("used by 2 expenses", ctx.exception.message)
        mock_client.table.return_value.delete.assert_not_called()

    @patch('services.category_api.get_service_client')
    def test_delete_refused_by_foreign_key(self, mock_supabase):
        """An expense inserted after the usage check is caught by the FK constraint."""
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value = response([], count=0)
        mock_client.table.return_value.delete.return_value.eq.return_value.execute.side_effect = FakeAPIError(
            "violates foreign key constraint", code="23503")
        mock_supabase.return_value = mock_client

        with self.assertLogs('services.category_api', level='ERROR'):
            with self.assertRaises(ConflictError):
                category_api.delete_category('c1')

    @patch('services.category_api.get_service_client')
    def test_delete_generic_failure(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value = response([], count=0)
        mock_client.table.return_value.delete.return_value.eq.return_value.execute.side_effect = Exception("timeout")
        mock_supabase.return_value = mock_client

        with self.assertLogs('services.category_api', level='ERROR'):
            with self.assertRaises(TransientServiceError) as ctx:
                category_api.delete_category('c1')
        self.assertEqual(ctx.exception.message, "Failed to delete category")

    @patch('services.category_api.get_service_client')
    def test_delete_unused_category(self, mock_supabase):
        mock_client = MagicMock()
        mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value = response([], count=0)
        mock_supabase.return_value = mock_client

        category_api.delete_category('c1')

        mock_client.table.return_value.delete.return_value.eq.assert_called_once_with('id', 'c1')


class ExpenseStoreTestCase(SimpleTestCase):
    """Test the expense cache and its reload-after-mutate policy."""

    @patch('services.stores.reference_today', return_value='2024-03-01')
    @patch('services.expense_api.get_all_expenses')
    def test_fetch_maps_rows_and_computes_stats(self, mock_get_all, mock_today):
        mock_get_all.return_value = SAMPLE_RECORDS
        store = ExpenseStore()
        store.fetch()

        self.assertTrue(store.loaded)
        self.assertIsNone(store.error)
        self.assertEqual([e['id'] for e in store.expenses], ['a1', 'a2', 'a3'])
        self.assertEqual(store.stats['total_amount'], Decimal('150.75'))
        self.assertEqual(store.stats['transaction_count'], 3)
        self.assertEqual(store.stats['monthly_average'], Decimal('75.38'))
        self.assertEqual(store.stats['year_to_date_total'], Decimal('130.50'))

    @patch('services.expense_api.get_all_expenses')
    def test_fetch_failure_is_kept_as_error_state(self, mock_get_all):
        mock_get_all.side_effect = TransientServiceError("Failed to fetch expenses")
        store = ExpenseStore()

        self.assertEqual(store.fetch(), [])
        self.assertEqual(store.error, "Failed to fetch expenses")
        self.assertFalse(store.loaded)

    @patch('services.expense_api.get_all_expenses')
    @patch('services.expense_api.create_expense')
    def test_create_reloads_the_whole_list(self, mock_create, mock_get_all):
        mock_create.return_value = SAMPLE_RECORDS[0]
        mock_get_all.return_value = SAMPLE_RECORDS
        store = ExpenseStore()

        store.create({'title': 'Groceries'})

        mock_create.assert_called_once_with({'title': 'Groceries'})
        mock_get_all.assert_called_once()
        self.assertEqual(len(store.expenses), 3)

    @patch('services.expense_api.get_all_expenses')
    @patch('services.expense_api.delete_expense')
    def test_mutation_failure_sets_error_and_reraises(self, mock_delete, mock_get_all):
        mock_delete.side_effect = TransientServiceError("Failed to delete expense")
        store = ExpenseStore()

        with self.assertRaises(TransientServiceError):
            store.delete('a1')

        self.assertEqual(store.error, "Failed to delete expense")
        mock_get_all.assert_not_called()

    @patch('services.expense_api.get_expense_by_id')
    def test_get_maps_record(self, mock_get):
        mock_get.return_value = SAMPLE_RECORDS[1]
        self.assertEqual(ExpenseStore().get('a2')['amount'], Decimal('45'))
        mock_get.return_value = None
        self.assertIsNone(ExpenseStore().get('missing'))

    def test_compute_stats_on_empty_list(self):
        stats = compute_stats([], today='2024-03-01')
        self.assertEqual(stats['total_amount'], Decimal('0.00'))
        self.assertEqual(stats['transaction_count'], 0)
        self.assertEqual(stats['monthly_average'], Decimal('0.00'))

    @patch('services.expense_api.get_expenses_by_date_range')
    def test_by_date_range_maps_rows(self, mock_range):
        mock_range.return_value = SAMPLE_RECORDS[:2]
        store = ExpenseStore()

        rows = store.by_date_range('2024-01-01', '2024-01-31')

        mock_range.assert_called_once_with('2024-01-01', '2024-01-31')
        self.assertEqual([r['id'] for r in rows], ['a1', 'a2'])
        self.assertEqual(rows[0]['amount'], Decimal('85.5'))
        self.assertIsNone(store.error)
        # Queries don't touch the cached list
        self.assertEqual(store.expenses, [])

    @patch('services.expense_api.get_expenses_by_category')
    def test_by_category_maps_rows(self, mock_by_category):
        mock_by_category.return_value = [SAMPLE_RECORDS[2]]

        rows = ExpenseStore().by_category('Entertainment')

        mock_by_category.assert_called_once_with('Entertainment')
        self.assertEqual(rows[0]['amount'], Decimal('20.25'))
        self.assertEqual(rows[0]['category'], 'Entertainment')

    @patch('services.expense_api.get_expenses_by_category')
    @patch('services.expense_api.get_expenses_by_date_range')
    def test_query_failure_sets_error_and_reraises(self, mock_range, mock_by_category):
        mock_range.side_effect = TransientServiceError("Failed to fetch expenses by date range")
        mock_by_category.side_effect = TransientServiceError("Failed to fetch expenses by category")
        store = ExpenseStore()

        with self.assertRaises(TransientServiceError):
            store.by_date_range('2024-01-01', '2024-01-31')
        self.assertEqual(store.error, "Failed to fetch expenses by date range")

        with self.assertRaises(TransientServiceError):
            store.by_category('Travel')
        self.assertEqual(store.error, "Failed to fetch expenses by category")


class CategoryStoreTestCase(SimpleTestCase):
    """Test the category cache."""

    @patch('services.category_api.get_all_categories')
    def test_fetch_sorts_by_name(self, mock_get_all):
        mock_get_all.return_value = [{'id': '2', 'name': 'travel'}, {'id': '1', 'name': 'Food & Dining'}]
        store = CategoryStore()
        store.fetch()
        self.assertEqual(store.names, ['Food & Dining', 'travel'])

    @patch('services.category_api.get_all_categories')
    @patch('services.category_api.delete_category')
    def test_blocked_delete_sets_error(self, mock_delete, mock_get_all):
        mock_delete.side_effect = ConflictError("Cannot delete category: it is used by 2 expenses", usage_count=2)
        store = CategoryStore()

        with self.assertRaises(ConflictError) as ctx:
            store.delete('c1')

        self.assertEqual(ctx.exception.usage_count, 2)
        self.assertEqual(store.error, "Cannot delete category: it is used by 2 expenses")
        mock_get_all.assert_not_called()

    @patch('services.category_api.get_all_categories')
    @patch('services.category_api.update_category')
    def test_update_reloads(self, mock_update, mock_get_all):
        mock_update.return_value = {'id': 'c1', 'name': 'Groceries'}
        mock_get_all.return_value = [{'id': 'c1', 'name': 'Groceries'}]
        store = CategoryStore()

        store.update('c1', {'name': 'Groceries'})

        self.assertEqual(store.names, ['Groceries'])

    @patch('services.category_api.get_category_by_name')
    def test_get_by_name(self, mock_get_by_name):
        mock_get_by_name.return_value = {'id': 'c9', 'name': 'Travel'}
        store = CategoryStore()

        self.assertEqual(store.get_by_name('Travel')['id'], 'c9')
        mock_get_by_name.assert_called_once_with('Travel')

        mock_get_by_name.return_value = None
        self.assertIsNone(store.get_by_name('Pets'))

    @patch('services.category_api.get_category_usage_count', return_value=3)
    @patch('services.category_api.is_category_in_use', return_value=True)
    def test_usage_queries(self, mock_in_use, mock_count):
        store = CategoryStore()

        self.assertTrue(store.is_in_use('c1'))
        self.assertEqual(store.usage_count('c1'), 3)
        mock_in_use.assert_called_once_with('c1')
        mock_count.assert_called_once_with('c1')
        self.assertIsNone(store.error)

    @patch('services.category_api.get_category_usage_count')
    @patch('services.category_api.is_category_in_use')
    @patch('services.category_api.get_category_by_name')
    def test_query_failure_sets_error_and_reraises(self, mock_get_by_name, mock_in_use, mock_count):
        mock_get_by_name.side_effect = TransientServiceError("Failed to fetch category by name")
        mock_in_use.side_effect = TransientServiceError("Failed to check category usage")
        mock_count.side_effect = TransientServiceError("Failed to get category usage count")
        store = CategoryStore()

        with self.assertRaises(TransientServiceError):
            store.get_by_name('Travel')
        self.assertEqual(store.error, "Failed to fetch category by name")

        with self.assertRaises(TransientServiceError):
            store.is_in_use('c1')
        self.assertEqual(store.error, "Failed to check category usage")

        with self.assertRaises(TransientServiceError):
            store.usage_count('c1')
        self.assertEqual(store.error, "Failed to get category usage count")
