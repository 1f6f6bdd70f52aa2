"""
Expense table view-model.

``present(expenses, params)`` turns the cached expense rows plus the current
view parameters into exactly what the history table shows: filtered, sorted,
optionally grouped, and (when not grouped) paginated. It is a pure function;
the input list is never modified.
"""
from decimal import Decimal
from math import ceil
from urllib.parse import urlencode

from services.category_colors import color_for
from services.formatting import month_label, parse_date

PAGE_SIZE = 10

SORT_FIELDS = ('title', 'amount', 'date', 'category')
SORT_DIRECTIONS = ('asc', 'desc')
GROUP_MODES = ('none', 'month', 'category')

DEFAULT_SORT_FIELD = 'date'
DEFAULT_SORT_DIRECTION = 'desc'
DEFAULT_GROUP = 'none'

ALL_CATEGORIES = 'all'
UNGROUPED_LABEL = 'All Expenses'


def _positive_int(value, default=1):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


class ViewParameters:
    """
    Search/filter/sort/group/page selections for the history table.

    Instances are treated as immutable: the helpers return new objects. Any
    change other than moving between pages resets ``page`` to 1.
    """

    def __init__(self, search='', category='', start_date='', end_date='',
                 sort_field=DEFAULT_SORT_FIELD, sort_direction=DEFAULT_SORT_DIRECTION,
                 group_by=DEFAULT_GROUP, page=1, editing_id=None):
        self.search = search or ''
        self.category = '' if category in (None, ALL_CATEGORIES) else category
        self.start_date = start_date or ''
        self.end_date = end_date or ''
        self.sort_field = sort_field if sort_field in SORT_FIELDS else DEFAULT_SORT_FIELD
        self.sort_direction = sort_direction if sort_direction in SORT_DIRECTIONS else DEFAULT_SORT_DIRECTION
        self.group_by = group_by if group_by in GROUP_MODES else DEFAULT_GROUP
        self.page = page
        self.editing_id = editing_id or None

    @classmethod
    def from_querydict(cls, query):
        """Build parameters from ``request.GET`` (or any mapping)."""
        return cls(
            search=query.get('q', ''),
            category=query.get('category', ''),
            start_date=query.get('start', ''),
            end_date=query.get('end', ''),
            sort_field=query.get('sort', DEFAULT_SORT_FIELD),
            sort_direction=query.get('dir', DEFAULT_SORT_DIRECTION),
            group_by=query.get('group', DEFAULT_GROUP),
            page=_positive_int(query.get('page')),
            editing_id=query.get('edit'),
        )

    def _as_kwargs(self):
        return {
            'search': self.search,
            'category': self.category,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'sort_field': self.sort_field,
            'sort_direction': self.sort_direction,
            'group_by': self.group_by,
            'page': self.page,
            'editing_id': self.editing_id,
        }

    def replace(self, **changes):
        """Copy with ``changes`` applied. Page goes back to 1 unless given."""
        kwargs = self._as_kwargs()
        kwargs['page'] = 1
        kwargs.update(changes)
        return ViewParameters(**kwargs)

    def with_page(self, page):
        return self.replace(page=page)

    def editing(self, expense_id):
        return self.replace(editing_id=expense_id, page=self.page)

    def toggle_sort(self, field):
        """Clicking a column header: same column flips direction, a new column sorts ascending."""
        if field == self.sort_field:
            direction = 'asc' if self.sort_direction == 'desc' else 'desc'
            return self.replace(sort_direction=direction)
        return self.replace(sort_field=field, sort_direction='asc')

    def cleared(self):
        return ViewParameters()

    @property
    def has_active_filters(self):
        return bool(self.search or self.category or self.start_date
                    or self.end_date or self.group_by != DEFAULT_GROUP)

    @property
    def has_row_filters(self):
        return bool(self.search or self.category or self.start_date or self.end_date)

    def to_query(self, **changes):
        """Query string for these parameters; defaults are left out."""
        params = self.replace(**changes) if changes else self
        pairs = [
            ('q', params.search),
            ('category', params.category),
            ('start', params.start_date),
            ('end', params.end_date),
            ('sort', '' if params.sort_field == DEFAULT_SORT_FIELD else params.sort_field),
            ('dir', '' if params.sort_direction == DEFAULT_SORT_DIRECTION else params.sort_direction),
            ('group', '' if params.group_by == DEFAULT_GROUP else params.group_by),
            ('page', '' if params.page == 1 else params.page),
            ('edit', params.editing_id or ''),
        ]
        return urlencode([(key, value) for key, value in pairs if value not in ('', None)])

    def __eq__(self, other):
        return isinstance(other, ViewParameters) and self._as_kwargs() == other._as_kwargs()

    def __repr__(self):
        return f"ViewParameters({self._as_kwargs()!r})"


def matches(expense, params):
    """True iff the expense passes the search, category and date-range filters."""
    if params.search:
        needle = params.search.lower()
        haystacks = (expense['title'], expense['category'], expense.get('note') or '')
        if not any(needle in (text or '').lower() for text in haystacks):
            return False

    if params.category and expense['category'] != params.category:
        return False

    # YYYY-MM-DD strings compare chronologically
    if params.start_date and expense['date'] < params.start_date:
        return False
    if params.end_date and expense['date'] > params.end_date:
        return False

    return True


def _sort_key(field):
    if field == 'date':
        return lambda e: parse_date(e['date']) or parse_date('0001-01-01')
    if field == 'amount':
        return lambda e: float(e['amount'])
    return lambda e: (e[field] or '').lower()


def sort_expenses(expenses, field, direction):
    # sorted() is stable and reverse=True keeps equal keys in input order
    return sorted(expenses, key=_sort_key(field), reverse=(direction == 'desc'))


def _subtotal(expenses):
    return sum((Decimal(str(e['amount'])) for e in expenses), Decimal('0.00'))


def _group(expenses, group_by):
    buckets = {}
    for expense in expenses:
        key = month_label(expense['date']) if group_by == 'month' else expense['category']
        buckets.setdefault(key, []).append(expense)

    if group_by == 'month':
        first_dates = {key: members[0]['date'] for key, members in buckets.items()}
        ordered = sorted(buckets, key=lambda key: first_dates[key])
    else:
        ordered = sorted(buckets)

    groups = []
    for key in ordered:
        members = buckets[key]
        groups.append({
            'label': key,
            'expenses': members,
            'subtotal': _subtotal(members),
            'colors': color_for(key) if group_by == 'category' else None,
        })
    return groups


def present(expenses, params):
    """
    Compute the history table presentation.

    Returns a dict with ``rows`` (ordered groups of expenses, each with a
    ``subtotal``), ``total_matching_amount`` and ``total_matching_count`` over
    the whole filtered set, ``total_pages`` (0 when grouped or empty), the
    current ``page`` and the 1-based ``start_index``/``end_index`` of the
    visible slice.
    """
    filtered = [e for e in expenses if matches(e, params)]
    ordered = sort_expenses(filtered, params.sort_field, params.sort_direction)
    count = len(ordered)
    total = _subtotal(ordered)

    if params.group_by != 'none':
        return {
            'rows': _group(ordered, params.group_by),
            'total_matching_amount': total,
            'total_matching_count': count,
            'total_pages': 0,
            'page': 1,
            'start_index': 1 if count else 0,
            'end_index': count,
            'grouped': True,
        }

    total_pages = ceil(count / PAGE_SIZE)
    start = (params.page - 1) * PAGE_SIZE
    page_rows = ordered[start:start + PAGE_SIZE] if start >= 0 else []
    rows = []
    if page_rows:
        rows.append({
            'label': UNGROUPED_LABEL,
            'expenses': page_rows,
            'subtotal': _subtotal(page_rows),
            'colors': None,
        })

    return {
        'rows': rows,
        'total_matching_amount': total,
        'total_matching_count': count,
        'total_pages': total_pages,
        'page': params.page,
        'start_index': start + 1 if page_rows else 0,
        'end_index': start + len(page_rows),
        'grouped': False,
    }


def category_options(expenses):
    """Distinct categories present in the list, sorted, for the filter dropdown."""
    return sorted({e['category'] for e in expenses if e['category']})
