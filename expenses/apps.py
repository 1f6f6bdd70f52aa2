# expenses/apps.py
from django.apps import AppConfig


class ExpensesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "expenses"

    def ready(self):
        # Report missing Supabase settings once at startup instead of on first request
        from supabase_service import validate_config
        validate_config()
