"""
Expense data access.

Thin wrappers around the Supabase ``expenses`` table. Every function logs the
underlying failure and re-raises it as a ``TransientServiceError`` carrying a
fixed, user-facing message. A missing configuration surfaces as
``ConfigurationError`` from ``get_service_client`` and is not wrapped.
"""
from collections import defaultdict
from decimal import Decimal
import logging

from supabase_service import get_service_client
from .errors import TransientServiceError

logger = logging.getLogger(__name__)

TABLE = "expenses"

MUTABLE_FIELDS = ("title", "amount", "date", "category", "category_id", "note")


def map_expense(record):
    """Convert a Supabase expense record to the row shape used by the app."""
    return {
        'id': record.get('id'),
        'title': record.get('title') or '',
        'amount': Decimal(str(record.get('amount') or 0)),
        'date': record.get('date') or '',
        'category': record.get('category') or '',
        'category_id': record.get('category_id'),
        'note': record.get('note'),
        'created_at': record.get('created_at'),
    }


def _payload(data):
    """Keep only mutable columns and make them JSON friendly."""
    payload = {}
    for field in MUTABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == 'amount' and value is not None:
            value = float(value)
        payload[field] = value
    return payload


def _sum_amounts(records):
    return sum((Decimal(str(r.get('amount') or 0)) for r in records), Decimal('0.00'))


def monthly_average(records):
    """
    Average spend per month that has at least one expense.

    Months are keyed by the YYYY-MM prefix of the date; months with no
    expenses don't count towards the divisor.
    """
    monthly_totals = defaultdict(Decimal)
    for record in records:
        month_key = (record.get('date') or '')[:7]
        monthly_totals[month_key] += Decimal(str(record.get('amount') or 0))
    if not monthly_totals:
        return Decimal('0.00')
    return (sum(monthly_totals.values()) / len(monthly_totals)).quantize(Decimal('0.01'))


def get_all_expenses():
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .order('date', desc=True)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching expenses: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch expenses") from e
    return response.data or []


def get_expense_by_id(expense_id):
    """Return the expense record or None when no row has this id."""
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .eq('id', expense_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching expense {expense_id}: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch expense") from e
    return response.data[0] if response.data else None


def create_expense(data):
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE).insert(_payload(data)).execute()
    except Exception as e:
        logger.error(f"Error creating expense: {e}", exc_info=True)
        raise TransientServiceError("Failed to create expense") from e
    if not response.data:
        logger.error("Error creating expense: no data returned from Supabase insert")
        raise TransientServiceError("Failed to create expense")
    created = response.data[0]
    logger.info(f"Expense created: id={created.get('id')}, amount={created.get('amount')}, "
                f"category={created.get('category')}, date={created.get('date')}")
    return created


def update_expense(expense_id, data):
    """Partial update: only the fields present in ``data`` are sent."""
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .update(_payload(data))\
            .eq('id', expense_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error updating expense {expense_id}: {e}", exc_info=True)
        raise TransientServiceError("Failed to update expense") from e
    if not response.data:
        logger.error(f"Error updating expense {expense_id}: no matching row")
        raise TransientServiceError("Failed to update expense")
    logger.info(f"Expense updated: id={expense_id}")
    return response.data[0]


def delete_expense(expense_id):
    supabase = get_service_client()
    try:
        supabase.table(TABLE)\
            .delete()\
            .eq('id', expense_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error deleting expense {expense_id}: {e}", exc_info=True)
        raise TransientServiceError("Failed to delete expense") from e
    logger.info(f"Expense deleted: id={expense_id}")


def get_expenses_by_date_range(start_date, end_date):
    """Expenses with start_date <= date <= end_date, newest first."""
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .gte('date', start_date)\
            .lte('date', end_date)\
            .order('date', desc=True)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching expenses by date range: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch expenses by date range") from e
    return response.data or []


def get_expenses_by_category(category):
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .eq('category', category)\
            .order('date', desc=True)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching expenses by category: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch expenses by category") from e
    return response.data or []


def get_total_amount():
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE).select('amount').execute()
    except Exception as e:
        logger.error(f"Error fetching total amount: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch total amount") from e
    return _sum_amounts(response.data or [])


def get_monthly_average():
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE).select('amount, date').execute()
    except Exception as e:
        logger.error(f"Error fetching monthly average: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch monthly average") from e
    return monthly_average(response.data or [])
