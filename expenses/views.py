from django.shortcuts import render, redirect
from django.contrib import messages
from django.http import JsonResponse, Http404, QueryDict
from django.urls import reverse
from django.views.decorators.http import require_POST
import logging

from services.errors import ExpenseTrackerError
from services.stores import CategoryStore, ExpenseStore
from services.validation import blur_field, EXPENSE_FIELDS
from .forms import ExpenseForm
from .table import SORT_FIELDS, ViewParameters, category_options, present

logger = logging.getLogger(__name__)


def _history_url(query=''):
    url = reverse('expenses:history')
    return f"{url}?{query}" if query else url


def _return_params(request):
    """View parameters of the history page that submitted the form, minus the edit marker."""
    params = ViewParameters.from_querydict(QueryDict(request.POST.get('return_query', '')))
    return params.replace(editing_id=None, page=params.page)


def history_view(request):
    """
    Expense history table.

    GET parameters drive the view-model (search, category, date range, sort,
    grouping, page). ``?edit=<id>`` turns that row into an inline edit form
    which posts to ``edit_expense_view``.
    """
    params = ViewParameters.from_querydict(request.GET)

    expense_store = ExpenseStore()
    expense_store.fetch()

    table = present(expense_store.expenses, params)

    edit_form = None
    if params.editing_id:
        editing = next((e for e in expense_store.expenses if str(e['id']) == str(params.editing_id)), None)
        if editing is None:
            messages.warning(request, "⚠️ The expense you tried to edit no longer exists.")
            params = params.editing(None)
        else:
            category_store = CategoryStore()
            category_store.fetch()
            edit_form = ExpenseForm(
                initial=ExpenseForm.initial_from_expense(editing),
                categories=category_store.categories,
            )

    sort_links = {field: _history_url(params.toggle_sort(field).to_query()) for field in SORT_FIELDS}

    context = {
        'params': params,
        'table': table,
        'error': expense_store.error,
        'categories': category_options(expense_store.expenses),
        'sort_links': sort_links,
        'edit_form': edit_form,
        'current_query': params.to_query(),
        'base_query': params.replace(editing_id=None, page=params.page).to_query(),
        'prev_url': _history_url(params.with_page(params.page - 1).to_query()) if params.page > 1 else None,
        'next_url': _history_url(params.with_page(params.page + 1).to_query())
        if params.page < table['total_pages'] else None,
        'clear_url': _history_url(),
    }
    return render(request, 'expenses/history.html', context)


def new_expense_view(request):
    """
    GET: Renders the new expense form.
    POST: Validates, creates the expense in Supabase and redirects (PRG).
    """
    category_store = CategoryStore()
    category_store.fetch()
    if category_store.error:
        messages.error(request, f"⚠️ {category_store.error}")

    if request.method == 'POST':
        form = ExpenseForm(request.POST, categories=category_store.categories)
        if form.is_valid():
            expense_store = ExpenseStore()
            try:
                expense_store.create(form.to_payload())
            except ExpenseTrackerError as e:
                form.add_submit_error(e.message)
            else:
                amount = form.cleaned_data['amount']
                messages.success(request, f"✅ Expense of ${amount:,.2f} added successfully!")
                return redirect('expenses:history')
        else:
            logger.info(f"Invalid expense submission: {form.errors.as_json()}")
    else:
        form = ExpenseForm(categories=category_store.categories)

    return render(request, 'expenses/new.html', {'form': form})


def edit_expense_view(request, expense_id):
    """
    GET: Returns the expense as JSON (used by the page script).
    POST: Validates and updates the expense, then returns to the history page.
    """
    if request.method == 'GET':
        expense_store = ExpenseStore()
        try:
            expense = expense_store.get(expense_id)
        except ExpenseTrackerError as e:
            return JsonResponse({'error': e.message}, status=e.status_code)
        if expense is None:
            raise Http404("Expense not found")
        expense['amount'] = float(expense['amount'])
        return JsonResponse(expense)

    if request.method != 'POST':
        return redirect('expenses:history')

    return_params = _return_params(request)
    # On failure the row stays in edit mode
    editing_url = _history_url(return_params.editing(str(expense_id)).to_query())

    expense_store = ExpenseStore()
    try:
        current = expense_store.get(expense_id)
    except ExpenseTrackerError as e:
        messages.error(request, f"⚠️ {e.message}")
        return redirect(editing_url)
    if current is None:
        messages.warning(request, "⚠️ The expense you tried to edit no longer exists.")
        return redirect(_history_url(return_params.to_query()))

    category_store = CategoryStore()
    category_store.fetch()
    form = ExpenseForm(
        request.POST,
        categories=category_store.categories,
        current_category=current['category'],
    )

    if not form.is_valid():
        for field, errors in form.errors.items():
            for error in errors:
                messages.error(request, f"⚠️ {error}")
        return redirect(editing_url)

    try:
        expense_store.update(expense_id, form.to_payload())
    except ExpenseTrackerError as e:
        messages.error(request, f"⚠️ {e.message}")
        return redirect(editing_url)

    messages.success(request, "✅ Expense updated successfully!")
    return redirect(_history_url(return_params.to_query()))


def delete_expense_view(request, expense_id):
    """
    POST only: Deletes the expense from Supabase.
    """
    if request.method != 'POST':
        return redirect('expenses:history')

    return_params = _return_params(request)
    expense_store = ExpenseStore()
    try:
        expense_store.delete(expense_id)
    except ExpenseTrackerError as e:
        messages.error(request, f"⚠️ {e.message}")
    else:
        messages.success(request, "✅ Expense deleted successfully!")
    return redirect(_history_url(return_params.to_query()))


@require_POST
def validate_field_view(request):
    """
    Blur-time validation for a single expense field.

    POST ``field`` and ``value``; responds with the (possibly canonicalized)
    value and the error message, or null when the field is valid.
    """
    field = request.POST.get('field', '')
    if field not in EXPENSE_FIELDS:
        return JsonResponse({'error': f"Unknown field: {field}"}, status=400)
    value, error = blur_field(field, request.POST.get('value', ''))
    return JsonResponse({'field': field, 'value': value, 'error': error})
