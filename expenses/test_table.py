"""
Tests for the expense history view-model (expenses.table).
Run with: python manage.py test expenses
"""
from decimal import Decimal

from django.http import QueryDict
from django.test import SimpleTestCase

from .table import PAGE_SIZE, ViewParameters, category_options, matches, present


def make_expense(expense_id, title, amount, date, category, note=None):
    return {
        'id': expense_id,
        'title': title,
        'amount': Decimal(amount),
        'date': date,
        'category': category,
        'category_id': None,
        'note': note,
        'created_at': None,
    }


def many_expenses(count):
    """``count`` expenses on distinct days of 2024, oldest first."""
    return [
        make_expense(str(i), f"Expense {i}", f"{i}.25", f"2024-{(i // 28) + 1:02d}-{(i % 28) + 1:02d}", 'Other')
        for i in range(count)
    ]


class PresentTestCase(SimpleTestCase):
    """Test filtering, totals and pagination."""

    def setUp(self):
        self.groceries = make_expense('a', 'Groceries', '85.50', '2024-01-15', 'Food & Dining', note='Weekly shop')
        self.bus = make_expense('b', 'Bus pass', '45.00', '2024-01-14', 'Transportation')
        self.cinema = make_expense('c', 'Cinema', '12.00', '2023-12-30', 'Entertainment', note='with friends')

    def test_default_view(self):
        """Two expenses with default parameters fit on one page, newest first."""
        table = present([self.bus, self.groceries], ViewParameters())

        self.assertEqual(len(table['rows']), 1)
        self.assertEqual(table['rows'][0]['label'], 'All Expenses')
        self.assertEqual([e['id'] for e in table['rows'][0]['expenses']], ['a', 'b'])
        self.assertEqual(table['total_matching_amount'], Decimal('130.50'))
        self.assertEqual(table['total_matching_count'], 2)
        self.assertEqual(table['total_pages'], 1)
        self.assertEqual((table['start_index'], table['end_index']), (1, 2))
        self.assertFalse(table['grouped'])

    def test_empty_input(self):
        table = present([], ViewParameters())
        self.assertEqual(table['rows'], [])
        self.assertEqual(table['total_matching_amount'], Decimal('0.00'))
        self.assertEqual(table['total_matching_count'], 0)
        self.assertEqual(table['total_pages'], 0)
        self.assertEqual((table['start_index'], table['end_index']), (0, 0))

    def test_input_is_not_modified(self):
        expenses = [self.bus, self.groceries]
        present(expenses, ViewParameters(sort_field='amount', sort_direction='asc', group_by='category'))
        self.assertEqual(expenses, [self.bus, self.groceries])

    def test_search_is_case_insensitive_across_title_category_and_note(self):
        expenses = [self.groceries, self.bus, self.cinema]
        self.assertEqual(self._ids(expenses, search='GROC'), ['a'])
        self.assertEqual(self._ids(expenses, search='transport'), ['b'])
        self.assertEqual(self._ids(expenses, search='Friends'), ['c'])
        self.assertEqual(self._ids(expenses, search='nothing like this'), [])

    def test_category_filter_is_exact(self):
        expenses = [self.groceries, self.bus, self.cinema]
        self.assertEqual(self._ids(expenses, category='Transportation'), ['b'])
        self.assertEqual(self._ids(expenses, category='Transport'), [])
        self.assertEqual(self._ids(expenses, category='all'), ['a', 'b', 'c'])

    def test_date_range_is_inclusive(self):
        expenses = [self.groceries, self.bus, self.cinema]
        self.assertEqual(self._ids(expenses, start_date='2024-01-14'), ['a', 'b'])
        self.assertEqual(self._ids(expenses, end_date='2024-01-14'), ['b', 'c'])
        self.assertEqual(self._ids(expenses, start_date='2024-01-14', end_date='2024-01-14'), ['b'])

    def test_every_visible_row_passes_the_filters(self):
        expenses = many_expenses(40) + [self.groceries, self.bus, self.cinema]
        params = ViewParameters(search='expense 1', start_date='2024-01-05')
        table = present(expenses, params)
        for group in table['rows']:
            for expense in group['expenses']:
                self.assertTrue(matches(expense, params))

    def test_every_match_appears_on_exactly_one_page(self):
        expenses = many_expenses(40) + [self.groceries, self.bus, self.cinema]
        params = ViewParameters(search='expense', start_date='2024-01-05', end_date='2024-02-10')
        expected = sorted(e['id'] for e in expenses if matches(e, params))
        self.assertEqual(len(expected), 34)

        first = present(expenses, params)
        self.assertEqual(first['total_pages'], 4)
        seen = []
        for page in range(1, first['total_pages'] + 1):
            table = present(expenses, params.with_page(page))
            for group in table['rows']:
                seen.extend(e['id'] for e in group['expenses'])

        self.assertEqual(len(seen), len(set(seen)))
        self.assertEqual(sorted(seen), expected)
        self.assertEqual(len(seen), first['total_matching_count'])

    def test_totals_cover_all_matches_not_just_the_page(self):
        expenses = many_expenses(23)
        expected = sum((e['amount'] for e in expenses), Decimal('0'))
        for page in (1, 2, 3):
            table = present(expenses, ViewParameters(page=page))
            self.assertEqual(table['total_matching_amount'], expected)
            self.assertEqual(table['total_matching_count'], 23)

    def test_pages_partition_the_filtered_list(self):
        expenses = many_expenses(23)
        params = ViewParameters(sort_field='amount', sort_direction='asc')
        seen = []
        for page in range(1, 4):
            table = present(expenses, params.with_page(page))
            self.assertEqual(table['total_pages'], 3)
            page_rows = table['rows'][0]['expenses']
            self.assertLessEqual(len(page_rows), PAGE_SIZE)
            self.assertEqual(table['rows'][0]['subtotal'], sum((e['amount'] for e in page_rows), Decimal('0')))
            seen.extend(e['id'] for e in page_rows)
        self.assertEqual(seen, [str(i) for i in range(23)])

        last = present(expenses, params.with_page(3))
        self.assertEqual((last['start_index'], last['end_index']), (21, 23))

    def test_page_past_the_end_is_empty(self):
        table = present(many_expenses(23), ViewParameters(page=4))
        self.assertEqual(table['rows'], [])
        self.assertEqual(table['total_pages'], 3)
        self.assertEqual(table['page'], 4)
        self.assertEqual(table['start_index'], 0)
        self.assertEqual(table['total_matching_count'], 23)

    def _ids(self, expenses, **params):
        table = present(expenses, ViewParameters(**params))
        return [e['id'] for group in table['rows'] for e in group['expenses']]


class SortTestCase(SimpleTestCase):
    """Test column sorting."""

    def _ordered(self, expenses, field, direction):
        table = present(expenses, ViewParameters(sort_field=field, sort_direction=direction))
        return [e['id'] for e in table['rows'][0]['expenses']]

    def test_sort_by_amount_is_numeric(self):
        expenses = [
            make_expense('a', 'A', '9.00', '2024-01-01', 'Other'),
            make_expense('b', 'B', '100.00', '2024-01-02', 'Other'),
            make_expense('c', 'C', '25.50', '2024-01-03', 'Other'),
        ]
        self.assertEqual(self._ordered(expenses, 'amount', 'asc'), ['a', 'c', 'b'])
        self.assertEqual(self._ordered(expenses, 'amount', 'desc'), ['b', 'c', 'a'])

    def test_sort_by_title_ignores_case(self):
        expenses = [
            make_expense('a', 'banana', '1.00', '2024-01-01', 'Other'),
            make_expense('b', 'Apple', '1.00', '2024-01-02', 'Other'),
            make_expense('c', 'cherry', '1.00', '2024-01-03', 'Other'),
        ]
        self.assertEqual(self._ordered(expenses, 'title', 'asc'), ['b', 'a', 'c'])

    def test_sort_by_date_ascending(self):
        expenses = [
            make_expense('a', 'A', '1.00', '2024-03-01', 'Other'),
            make_expense('b', 'B', '1.00', '2023-11-20', 'Other'),
            make_expense('c', 'C', '1.00', '2024-01-10', 'Other'),
        ]
        self.assertEqual(self._ordered(expenses, 'date', 'asc'), ['b', 'c', 'a'])

    def test_equal_keys_keep_their_input_order(self):
        """Ties are not reordered, in either direction."""
        expenses = [
            make_expense('first', 'X', '10.00', '2024-01-01', 'Other'),
            make_expense('second', 'Y', '10.00', '2024-01-02', 'Other'),
            make_expense('third', 'Z', '10.00', '2024-01-03', 'Other'),
        ]
        self.assertEqual(self._ordered(expenses, 'amount', 'asc'), ['first', 'second', 'third'])
        self.assertEqual(self._ordered(expenses, 'amount', 'desc'), ['first', 'second', 'third'])
        self.assertEqual(self._ordered(expenses, 'category', 'desc'), ['first', 'second', 'third'])


class GroupingTestCase(SimpleTestCase):
    """Test month and category grouping."""

    def setUp(self):
        self.expenses = [
            make_expense('1', 'Rent', '1200.00', '2024-02-01', 'Housing'),
            make_expense('2', 'Lunch', '15.00', '2024-02-10', 'Food & Dining'),
            make_expense('3', 'Taxi', '30.00', '2024-01-05', 'Transportation'),
            make_expense('4', 'Dinner', '60.00', '2023-12-20', 'Food & Dining'),
        ]

    def test_group_by_month(self):
        table = present(self.expenses, ViewParameters(group_by='month'))

        self.assertTrue(table['grouped'])
        self.assertEqual([g['label'] for g in table['rows']],
                         ['December 2023', 'January 2024', 'February 2024'])
        february = table['rows'][2]
        self.assertEqual([e['id'] for e in february['expenses']], ['2', '1'])
        self.assertEqual(february['subtotal'], Decimal('1215.00'))
        self.assertIsNone(february['colors'])

    def test_group_by_category(self):
        table = present(self.expenses, ViewParameters(group_by='category'))

        self.assertEqual([g['label'] for g in table['rows']], ['Food & Dining', 'Housing', 'Transportation'])
        food = table['rows'][0]
        self.assertEqual([e['id'] for e in food['expenses']], ['2', '4'])
        self.assertEqual(food['subtotal'], Decimal('75.00'))
        self.assertEqual(food['colors']['bg_color'], '#fffbeb')

    def test_grouped_view_is_not_paginated(self):
        table = present(many_expenses(25), ViewParameters(group_by='category', page=3))

        self.assertEqual(table['total_pages'], 0)
        self.assertEqual(table['page'], 1)
        self.assertEqual(sum(len(g['expenses']) for g in table['rows']), 25)
        self.assertEqual(sum((g['subtotal'] for g in table['rows']), Decimal('0')), table['total_matching_amount'])

    def test_grouping_applies_filters_first(self):
        table = present(self.expenses, ViewParameters(group_by='month', category='Food & Dining'))
        self.assertEqual([g['label'] for g in table['rows']], ['December 2023', 'February 2024'])
        self.assertEqual(table['total_matching_amount'], Decimal('75.00'))


class ViewParametersTestCase(SimpleTestCase):
    """Test parsing and updating the view parameters."""

    def test_invalid_values_fall_back_to_defaults(self):
        params = ViewParameters.from_querydict(QueryDict('sort=color&dir=up&group=year&page=abc'))
        self.assertEqual(params, ViewParameters())

    def test_page_must_be_positive(self):
        self.assertEqual(ViewParameters.from_querydict({'page': '0'}).page, 1)
        self.assertEqual(ViewParameters.from_querydict({'page': '-3'}).page, 1)
        self.assertEqual(ViewParameters.from_querydict({'page': '3'}).page, 3)

    def test_any_change_resets_the_page(self):
        params = ViewParameters(page=4)
        self.assertEqual(params.replace(search='rent').page, 1)
        self.assertEqual(params.replace(group_by='month').page, 1)
        self.assertEqual(params.with_page(2).page, 2)
        self.assertEqual(params.editing('x').page, 4)

    def test_toggle_sort(self):
        params = ViewParameters(page=2)
        flipped = params.toggle_sort('date')
        self.assertEqual((flipped.sort_field, flipped.sort_direction, flipped.page), ('date', 'asc', 1))
        self.assertEqual(flipped.toggle_sort('date').sort_direction, 'desc')
        other = params.toggle_sort('amount')
        self.assertEqual((other.sort_field, other.sort_direction), ('amount', 'asc'))

    def test_query_string_omits_defaults(self):
        self.assertEqual(ViewParameters().to_query(), '')
        self.assertEqual(ViewParameters(search='coffee shop', page=2).to_query(), 'q=coffee+shop&page=2')

    def test_query_string_round_trip(self):
        params = ViewParameters(search='rent', category='Housing', start_date='2024-01-01',
                                end_date='2024-03-31', sort_field='amount', sort_direction='asc',
                                group_by='month', page=1, editing_id='abc-123')
        self.assertEqual(ViewParameters.from_querydict(QueryDict(params.to_query())), params)

    def test_active_filters(self):
        self.assertFalse(ViewParameters().has_active_filters)
        self.assertTrue(ViewParameters(group_by='month').has_active_filters)
        self.assertFalse(ViewParameters(group_by='month').has_row_filters)
        self.assertTrue(ViewParameters(end_date='2024-01-01').has_row_filters)
        self.assertEqual(ViewParameters(search='x', page=3).cleared(), ViewParameters())

    def test_category_options(self):
        expenses = [
            make_expense('1', 'A', '1.00', '2024-01-01', 'Travel'),
            make_expense('2', 'B', '1.00', '2024-01-02', 'Food & Dining'),
            make_expense('3', 'C', '1.00', '2024-01-03', 'Travel'),
        ]
        self.assertEqual(category_options(expenses), ['Food & Dining', 'Travel'])
