from collections import Counter
from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST
import logging

from services.category_colors import color_for
from services.errors import ConflictError, ExpenseTrackerError
from services.stores import CategoryStore, ExpenseStore
from .forms import CategoryForm

logger = logging.getLogger(__name__)


def _with_usage(categories, expenses):
    """Annotate each category with how many cached expenses reference it."""
    usage = Counter(e['category_id'] for e in expenses if e.get('category_id'))
    rows = []
    for category in categories:
        row = dict(category)
        row['usage_count'] = usage.get(category['id'], 0)
        row['palette'] = color_for(category['name'])
        rows.append(row)
    return rows


def categories_view(request):
    """
    GET: Lists categories with their colors and usage counts.
    POST: Creates a new category (Supabase) then redirects (PRG).
    """
    category_store = CategoryStore()
    category_store.fetch()

    if request.method == 'POST':
        form = CategoryForm(request.POST, existing_names=category_store.names)
        if form.is_valid():
            try:
                created = category_store.create(form.cleaned_data)
            except ConflictError as e:
                form.add_error('name', e.message)
            except ExpenseTrackerError as e:
                form.add_error(None, e.message)
            else:
                messages.success(request, f"✅ Category '{created['name']}' created successfully!")
                return redirect('categories:list')
        else:
            logger.info(f"Invalid category submission: {form.errors.as_json()}")
    else:
        form = CategoryForm()

    expense_store = ExpenseStore()
    expense_store.fetch()

    context = {
        'form': form,
        'categories': _with_usage(category_store.categories, expense_store.expenses),
        'error': category_store.error or expense_store.error,
    }
    return render(request, 'categories/categories.html', context)


@require_POST
def edit_category_view(request, category_id):
    category_store = CategoryStore()
    category_store.fetch()

    current = next((c for c in category_store.categories if str(c['id']) == str(category_id)), None)
    if current is None:
        messages.error(request, "⚠️ Category not found.")
        return redirect('categories:list')

    form = CategoryForm(
        request.POST,
        existing_names=category_store.names,
        current_name=current['name'],
    )
    if not form.is_valid():
        for field, errors in form.errors.items():
            for error in errors:
                messages.error(request, f"⚠️ {error}")
        return redirect('categories:list')

    try:
        category_store.update(category_id, form.cleaned_data)
    except ExpenseTrackerError as e:
        messages.error(request, f"⚠️ {e.message}")
    else:
        messages.success(request, "✅ Category updated successfully!")
    return redirect('categories:list')


@require_POST
def delete_category_view(request, category_id):
    """Deletes a category unless an expense still refers to it."""
    category_store = CategoryStore()
    try:
        category_store.delete(category_id)
    except ConflictError as e:
        logger.info(f"Category delete blocked: id={category_id}, usage={e.usage_count}")
        messages.error(request, f"⚠️ {e.message}")
    except ExpenseTrackerError as e:
        messages.error(request, f"⚠️ {e.message}")
    else:
        messages.success(request, "✅ Category deleted successfully!")
    return redirect('categories:list')
