from django.core.management.base import BaseCommand, CommandError
from tabulate import tabulate

from expenses.table import GROUP_MODES, SORT_FIELDS, ViewParameters, present
from services.formatting import format_currency, format_date
from services.stores import ExpenseStore


class Command(BaseCommand):
    help = 'Print the expense history table (same filters as the web view) from the command line'

    def add_arguments(self, parser):
        parser.add_argument(
            '--search',
            type=str,
            default='',
            help='Case-insensitive text to look for in title, category or note',
        )
        parser.add_argument(
            '--category',
            type=str,
            default='',
            help='Only show this category (exact match)',
        )
        parser.add_argument(
            '--start',
            type=str,
            default='',
            help='Earliest date to include (YYYY-MM-DD)',
        )
        parser.add_argument(
            '--end',
            type=str,
            default='',
            help='Latest date to include (YYYY-MM-DD)',
        )
        parser.add_argument(
            '--sort',
            type=str,
            choices=SORT_FIELDS,
            default='date',
            help='Column to sort by (default: date)',
        )
        parser.add_argument(
            '--asc',
            action='store_true',
            help='Sort ascending (default is descending)',
        )
        parser.add_argument(
            '--group',
            type=str,
            choices=GROUP_MODES,
            default='none',
            help='Group rows by month or category (default: none)',
        )
        parser.add_argument(
            '--page',
            type=int,
            default=1,
            help='Page to show when not grouped (default: 1)',
        )

    def handle(self, *args, **options):
        store = ExpenseStore()
        store.fetch()
        if store.error:
            raise CommandError(store.error)

        params = ViewParameters(
            search=options['search'],
            category=options['category'],
            start_date=options['start'],
            end_date=options['end'],
            sort_field=options['sort'],
            sort_direction='asc' if options['asc'] else 'desc',
            group_by=options['group'],
            page=options['page'],
        )
        table = present(store.expenses, params)

        if table['total_matching_count'] == 0:
            self.stdout.write(self.style.WARNING('No expenses found matching criteria.'))
            return

        headers = ['Title', 'Amount', 'Date', 'Category', 'Note']
        for group in table['rows']:
            table_data = []
            for expense in group['expenses']:
                table_data.append([
                    expense['title'],
                    format_currency(expense['amount']),
                    format_date(expense['date']),
                    expense['category'],
                    expense['note'] or '-',
                ])
            if table['grouped']:
                self.stdout.write('\n' + self.style.SUCCESS(
                    f"{group['label']} ({format_currency(group['subtotal'])})"
                ))
            self.stdout.write('\n' + tabulate(table_data, headers=headers, tablefmt='grid'))

        summary = f"\nTotal: {format_currency(table['total_matching_amount'])}"
        if table['grouped']:
            summary += f" across {table['total_matching_count']} expenses"
        elif table['rows']:
            summary += (f" • Showing {table['start_index']}-{table['end_index']} of "
                        f"{table['total_matching_count']} expenses (page {table['page']} of {table['total_pages']})")
        else:
            summary += f" • Page {table['page']} is past the last page ({table['total_pages']})"
        self.stdout.write(self.style.SUCCESS(summary))
