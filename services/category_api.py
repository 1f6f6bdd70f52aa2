"""
Category data access.

Wraps the Supabase ``categories`` table plus the usage queries against
``expenses``. PostgreSQL error codes are translated into the app's error types:

- ``23505`` unique violation      -> ConflictError (duplicate name)
- ``23503`` foreign key violation -> ConflictError (category still in use)
- anything else                   -> TransientServiceError
"""
import logging

from supabase_service import get_service_client
from .errors import ConflictError, TransientServiceError

logger = logging.getLogger(__name__)

TABLE = "categories"
EXPENSES_TABLE = "expenses"

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

DUPLICATE_MESSAGE = "A category with this name already exists"


def _error_code(exc):
    return str(getattr(exc, "code", "") or "")


def _error_message(exc):
    return str(getattr(exc, "message", "") or exc)


def in_use_message(usage_count):
    noun = "expense" if usage_count == 1 else "expenses"
    return f"Cannot delete category: it is used by {usage_count} {noun}"


def _payload(data):
    payload = {}
    if "name" in data:
        payload["name"] = (data["name"] or "").strip()
    if "color" in data:
        payload["color"] = data["color"]
    return payload


def get_all_categories():
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .order('name')\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching categories: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch categories") from e
    return response.data or []


def get_category_by_id(category_id):
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .eq('id', category_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching category {category_id}: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch category") from e
    return response.data[0] if response.data else None


def get_category_by_name(name):
    """Exact-name lookup. Returns None when nothing matches."""
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .select('*')\
            .eq('name', name)\
            .limit(1)\
            .execute()
    except Exception as e:
        logger.error(f"Error fetching category by name: {e}", exc_info=True)
        raise TransientServiceError("Failed to fetch category by name") from e
    return response.data[0] if response.data else None


def create_category(data):
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE).insert(_payload(data)).execute()
    except Exception as e:
        logger.error(f"Error creating category: {e}", exc_info=True)
        if _error_code(e) == UNIQUE_VIOLATION:
            raise ConflictError(DUPLICATE_MESSAGE) from e
        raise TransientServiceError("Failed to create category") from e
    if not response.data:
        raise TransientServiceError("Failed to create category")
    created = response.data[0]
    logger.info(f"Category created: id={created.get('id')}, name={created.get('name')}")
    return created


def update_category(category_id, data):
    supabase = get_service_client()
    try:
        response = supabase.table(TABLE)\
            .update(_payload(data))\
            .eq('id', category_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error updating category {category_id}: {e}", exc_info=True)
        if _error_code(e) == UNIQUE_VIOLATION:
            raise ConflictError(DUPLICATE_MESSAGE) from e
        raise TransientServiceError("Failed to update category") from e
    if not response.data:
        raise TransientServiceError("Failed to update category")
    logger.info(f"Category updated: id={category_id}")
    return response.data[0]


def get_category_usage_count(category_id):
    supabase = get_service_client()
    try:
        response = supabase.table(EXPENSES_TABLE)\
            .select('id', count='exact')\
            .eq('category_id', category_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error getting category usage count: {e}", exc_info=True)
        raise TransientServiceError("Failed to get category usage count") from e
    return response.count or 0


def is_category_in_use(category_id):
    supabase = get_service_client()
    try:
        response = supabase.table(EXPENSES_TABLE)\
            .select('id')\
            .eq('category_id', category_id)\
            .limit(1)\
            .execute()
    except Exception as e:
        logger.error(f"Error checking category usage: {e}", exc_info=True)
        raise TransientServiceError("Failed to check category usage") from e
    return bool(response.data)


def delete_category(category_id):
    """
    Delete a category that no expense refers to.

    The usage count is checked first so the user gets a precise message. The
    check alone can race with a concurrent insert; the ``expenses.category_id``
    foreign key (ON DELETE RESTRICT) makes the delete itself refuse, and that
    refusal is reported the same way.
    """
    usage_count = get_category_usage_count(category_id)
    if usage_count > 0:
        logger.warning(f"Refusing to delete category {category_id}: used by {usage_count} expenses")
        raise ConflictError(in_use_message(usage_count), usage_count=usage_count)

    supabase = get_service_client()
    try:
        supabase.table(TABLE)\
            .delete()\
            .eq('id', category_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error deleting category {category_id}: {e}", exc_info=True)
        message = _error_message(e)
        if _error_code(e) == FOREIGN_KEY_VIOLATION:
            raise ConflictError("Cannot delete category: it is used by existing expenses") from e
        if "Cannot delete category" in message:
            raise ConflictError(message) from e
        raise TransientServiceError("Failed to delete category") from e
    logger.info(f"Category deleted: id={category_id}")
