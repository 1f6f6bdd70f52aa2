from django.core.management.base import BaseCommand

from services.category_colors import CATEGORY_COLORS
from services.errors import ExpenseTrackerError
from services.stores import CategoryStore


class Command(BaseCommand):
    help = "Insert the default palette categories that don't exist yet in Supabase."

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='Only list what would be created')

    def handle(self, *args, **options):
        store = CategoryStore()
        store.fetch()
        if store.error:
            self.stderr.write(self.style.ERROR(f'Failed to load categories: {store.error}'))
            return

        existing = {name.lower() for name in store.names}
        missing = [entry for entry in CATEGORY_COLORS if entry['name'].lower() not in existing]

        if not missing:
            self.stdout.write(self.style.SUCCESS('All default categories already exist'))
            return

        for entry in missing:
            if options['dry_run']:
                self.stdout.write(f"Would create {entry['name']} ({entry['text_color']})")
                continue
            try:
                store.create({'name': entry['name'], 'color': entry['text_color'].upper()})
            except ExpenseTrackerError as e:
                self.stderr.write(self.style.ERROR(f"Failed to create {entry['name']}: {e.message}"))
            else:
                self.stdout.write(self.style.SUCCESS(f"Created {entry['name']}"))
