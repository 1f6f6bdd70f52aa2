from django.shortcuts import render
import logging

from services.stores import ExpenseStore

logger = logging.getLogger(__name__)


def dashboard_view(request):
    """Landing page: quick links plus the statistics derived from the cached expense list.

    Shows:
    - Total of all expenses
    - Number of transactions
    - Average spend per month with expenses
    - Year-to-date total (reference time zone)
    """
    expense_store = ExpenseStore()
    expense_store.fetch()
    if expense_store.error:
        logger.warning(f"Dashboard rendered without data: {expense_store.error}")

    context = {
        'stats': expense_store.stats,
        'error': expense_store.error,
    }
    return render(request, 'dashboard/index.html', context)
