"""
In-memory caches over the data-access layer.

A store is built per request by the views. ``fetch()`` loads the full list;
every mutation calls the API and then reloads the whole list rather than
patching the cache (reload-after-mutate). Failures are kept in ``error`` as a
user-facing message: ``fetch()`` records it and returns what it has, while
mutations record it and re-raise so the caller can show it on the form.
"""
from decimal import Decimal
import logging

from . import category_api, expense_api
from .errors import ExpenseTrackerError
from .validation import reference_today

logger = logging.getLogger(__name__)


def compute_stats(expenses, today=None):
    """Aggregate statistics over mapped expense rows."""
    year_prefix = (today or reference_today())[:4] + "-"
    total = sum((e['amount'] for e in expenses), Decimal('0.00'))
    year_to_date = sum(
        (e['amount'] for e in expenses if (e['date'] or '').startswith(year_prefix)),
        Decimal('0.00'),
    )
    return {
        'total_amount': total,
        'transaction_count': len(expenses),
        'monthly_average': expense_api.monthly_average(expenses),
        'year_to_date_total': year_to_date,
    }


class ExpenseStore:
    """Cached list of expenses plus derived statistics."""

    def __init__(self):
        self.expenses = []
        self.error = None
        self.loaded = False
        self.stats = {
            'total_amount': Decimal('0.00'),
            'transaction_count': 0,
            'monthly_average': Decimal('0.00'),
            'year_to_date_total': Decimal('0.00'),
        }

    def fetch(self):
        self.error = None
        try:
            records = expense_api.get_all_expenses()
        except ExpenseTrackerError as e:
            self.error = e.message
            return self.expenses
        self.expenses = [expense_api.map_expense(r) for r in records]
        self.stats = compute_stats(self.expenses)
        self.loaded = True
        logger.info(f"Loaded {len(self.expenses)} expenses")
        return self.expenses

    def _call(self, func, *args):
        self.error = None
        try:
            return func(*args)
        except ExpenseTrackerError as e:
            self.error = e.message
            raise

    def create(self, data):
        created = self._call(expense_api.create_expense, data)
        self.fetch()
        return created

    def update(self, expense_id, data):
        updated = self._call(expense_api.update_expense, expense_id, data)
        self.fetch()
        return updated

    def delete(self, expense_id):
        self._call(expense_api.delete_expense, expense_id)
        self.fetch()

    def get(self, expense_id):
        record = self._call(expense_api.get_expense_by_id, expense_id)
        return expense_api.map_expense(record) if record else None

    def by_date_range(self, start_date, end_date):
        records = self._call(expense_api.get_expenses_by_date_range, start_date, end_date)
        return [expense_api.map_expense(r) for r in records]

    def by_category(self, category):
        records = self._call(expense_api.get_expenses_by_category, category)
        return [expense_api.map_expense(r) for r in records]


class CategoryStore:
    """Cached list of categories, kept sorted by name."""

    def __init__(self):
        self.categories = []
        self.error = None
        self.loaded = False

    @property
    def names(self):
        return [c['name'] for c in self.categories]

    def fetch(self):
        self.error = None
        try:
            records = category_api.get_all_categories()
        except ExpenseTrackerError as e:
            self.error = e.message
            return self.categories
        self.categories = sorted(records, key=lambda c: (c.get('name') or '').lower())
        self.loaded = True
        return self.categories

    def _call(self, func, *args):
        self.error = None
        try:
            return func(*args)
        except ExpenseTrackerError as e:
            self.error = e.message
            raise

    def create(self, data):
        created = self._call(category_api.create_category, data)
        self.fetch()
        return created

    def update(self, category_id, data):
        updated = self._call(category_api.update_category, category_id, data)
        self.fetch()
        return updated

    def delete(self, category_id):
        self._call(category_api.delete_category, category_id)
        self.fetch()

    def get(self, category_id):
        return self._call(category_api.get_category_by_id, category_id)

    def get_by_name(self, name):
        return self._call(category_api.get_category_by_name, name)

    def is_in_use(self, category_id):
        return self._call(category_api.is_category_in_use, category_id)

    def usage_count(self, category_id):
        return self._call(category_api.get_category_usage_count, category_id)
